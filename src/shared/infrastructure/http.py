"""Base class for the ``httpx`` provider gateways.

Gateways take the ``ProviderConfig`` at construction and raise
``error_class`` (an ``UpstreamError``) when the transport fails or the
provider answers with a non-2xx status.  Retrying is left to the caller.
An ``httpx`` transport can be injected for tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Type

import httpx
import structlog

from modules.core.exceptions import UpstreamError

if TYPE_CHECKING:
    from modules.core.config import ProviderConfig

logger = structlog.get_logger(__name__)


class HttpGateway:
    provider = "http"
    error_class: Type[UpstreamError] = UpstreamError

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._config.http_timeout, transport=self._transport)

    def _post(self, url: str, **kwargs) -> httpx.Response:
        try:
            with self._client() as client:
                response = client.post(url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("gateway.transport_error", provider=self.provider, error=str(exc))
            raise self.error_class(f"{self.provider} request failed: {exc}") from exc
        if response.is_error:
            logger.warning(
                "gateway.request_failed",
                provider=self.provider,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise self.error_class(
                f"{self.provider} answered with HTTP {response.status_code}."
            )
        return response

    def _json(self, response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError as exc:
            raise self.error_class(f"{self.provider} answered with invalid JSON.") from exc
        if not isinstance(data, dict):
            raise self.error_class(f"{self.provider} answered with an unexpected body.")
        return data
