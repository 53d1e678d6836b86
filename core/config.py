"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from pydantic import model_validator


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./straumur.db"
    echo: bool = False


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Straumur Payment Reconciliation")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 分组配置：数据库采用嵌套模型（DATABASE__URL）
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    # 安全配置：用于签发支付返回链接中的 JWT
    SECRET_KEY: Optional[str] = Field(
        default=None,
        description="返回链接签名密钥，所有环境必须设置"
    )
    ALGORITHM: str = Field(default="HS256")
    RETURN_TOKEN_TTL_SECONDS: int = Field(default=86400)

    # CORS配置
    CORS_ORIGINS: list = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
    )

    # 日志/请求体记录配置
    LOG_JSON: Optional[bool] = Field(default=None, description="为空时 DEBUG 用控制台格式，否则 JSON")
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @model_validator(mode="after")
    def _validate_secret_key(self):
        # 返回链接令牌依赖 SECRET_KEY，未配置时直接拒绝启动
        if not self.SECRET_KEY:
            raise ValueError(
                "SECRET_KEY 未配置。请在环境变量或 .env 中设置 SECRET_KEY"
            )
        return self

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
