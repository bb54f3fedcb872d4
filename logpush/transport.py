"""HTTP transport — posts one JSON body per flush to the ingestion endpoint."""

import logging
from typing import Optional

import httpx

from logpush.endpoint import BasicAuth, basic_auth_header

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class TransportError(Exception):
    """Raised when a flush request cannot be completed or is rejected.

    ``status_code`` is None when no response was received; ``detail`` holds
    the response body text or the underlying network error.
    """

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(f"Failed to flush log entries: {detail}")
        self.detail = detail
        self.status_code = status_code


class HTTPTransport:
    """Sends serialized flush payloads with ``httpx.AsyncClient``."""

    def __init__(
        self,
        url: str,
        auth: Optional[BasicAuth] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = url
        self._headers = {"content-type": "application/json"}
        if auth is not None:
            self._headers["authorization"] = basic_auth_header(auth)
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    @property
    def headers(self) -> dict:
        return dict(self._headers)

    async def send(self, body: bytes) -> None:
        """POST *body*. Returns on any 2xx status, raises TransportError otherwise."""
        try:
            response = await self._client.post(self._url, content=body, headers=self._headers)
        except httpx.HTTPError as exc:
            logger.error("Request to %s failed: %s", self._url, exc)
            raise TransportError(str(exc)) from exc

        if response.is_success:
            return

        detail = response.text
        logger.error("Ingestion endpoint returned HTTP %d: %s", response.status_code, detail)
        raise TransportError(detail, status_code=response.status_code)

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
