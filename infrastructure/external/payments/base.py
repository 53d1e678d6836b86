"""
Base payment client implementing shared concerns: http, logging, response decoding.

Concrete providers should subclass and implement provider-specific logic.
Outbound calls are never retried here; a failed call is reported to the caller
once and the caller decides what the merchant sees.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from core.logging_config import get_logger, redact
from infrastructure.external.payments.exceptions import PaymentProviderError


logger = get_logger(__name__)


class BasePaymentClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 60.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(self._timeout)

    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self.timeouts,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _post_json(self, endpoint: str, body: dict[str, Any]) -> Any:
        """POST ``body`` and return the decoded JSON of a 2xx response.

        Raises PaymentProviderError for transport errors, non-2xx statuses and
        undecodable bodies.
        """
        url = f"{self._base_url}{endpoint}"
        self._log(
            "straumur_request",
            method="POST",
            url=url,
            headers=redact(dict(self._headers)),
            body=redact(body),
        )
        try:
            response = await self.client().post(endpoint, json=body)
        except httpx.HTTPError as exc:
            logger.error("straumur_response", provider=self.provider, url=url, error=str(exc))
            raise PaymentProviderError(str(exc) or exc.__class__.__name__, provider=self.provider) from exc

        self._log("straumur_response", url=url, code=response.status_code, body=response.text)

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("straumur_json_decode_error", provider=self.provider, url=url, error=str(exc))
            raise PaymentProviderError(
                "Malformed JSON response", provider=self.provider, provider_code=str(response.status_code)
            ) from exc

        if not 200 <= response.status_code < 300:
            raise PaymentProviderError(
                f"HTTP {response.status_code}",
                provider=self.provider,
                provider_code=str(response.status_code),
            )
        return data

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
