"""HTTP client wrapper for the Sprites API.

Handles connection pooling, error mapping, and request/response serialization.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

import httpx
import structlog

from spritefs.errors import RequestTimeoutError, TransportError, raise_for_error_response

logger = structlog.get_logger()


class HTTPClient:
    """Async HTTP client for the Sprites API.

    Wraps httpx.AsyncClient with:
    - Connection pooling (one client, created on first request)
    - Automatic error response mapping to APIError
    - Mapping of httpx transport failures to TransportError
    - Request/response logging

    No retries happen here; the command execution layer owns retry policy.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HTTP client.

        Args:
            base_url: API base URL (e.g., "https://api.sprites.dev")
            access_token: Bearer token for authentication
            timeout: Default request timeout in seconds
            transport: Optional custom httpx transport (tests)
        """
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._log = logger.bind(component="http_client", base_url=self._base_url)

    @staticmethod
    def _parse_json_or_error_payload(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
            if isinstance(payload, dict):
                return payload
            return {"data": payload}
        except ValueError:
            if response.status_code >= 400:
                raw_text = response.text or ""
                snippet_limit = 500
                snippet = raw_text[:snippet_limit]
                return {
                    "error": {
                        "message": f"HTTP {response.status_code} returned non-JSON error response",
                        "details": {
                            "raw_response_snippet": snippet,
                            "raw_response_truncated": len(raw_text) > snippet_limit,
                        },
                    }
                }
            return {}

    async def __aenter__(self) -> HTTPClient:
        """Enter async context, creating HTTP client."""
        self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context, closing HTTP client."""
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                headers={
                    "Authorization": f"Bearer {self._access_token}",
                },
                transport=self._transport,
            )
        return self._client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the underlying httpx client, creating it on first use."""
        return self._ensure_client()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def aclose(self) -> None:
        """Close the underlying httpx client (a later request reopens it)."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Make an HTTP request to the Sprites API.

        Args:
            method: HTTP method (GET, POST, ...)
            path: API path (e.g., "/v1/sprites/dev-box/exec")
            json: Request body as dict (will be serialized)
            timeout: Override default timeout for this request

        Returns:
            Parsed JSON response body

        Raises:
            APIError: On API error responses
            RequestTimeoutError: If the request timed out
            TransportError: If the request could not be completed
        """
        headers: dict[str, str] = {}
        if json is not None:
            headers["Content-Type"] = "application/json"

        self._log.debug("http.request", method=method, path=path)

        try:
            response = await self.client.request(
                method,
                path,
                json=json,
                headers=headers if headers else None,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.TimeoutException as e:
            self._log.warning("http.timeout", method=method, path=path)
            raise RequestTimeoutError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            self._log.warning("http.transport_error", method=method, path=path, error=str(e))
            raise TransportError(f"Request failed: {method} {path}: {e}") from e

        self._log.debug("http.response", status=response.status_code, path=path)

        if response.status_code == 204:
            return {}

        body = self._parse_json_or_error_payload(response)
        if response.status_code >= 400:
            raise_for_error_response(response.status_code, body)
        return body

    async def post(
        self,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Make a POST request."""
        return await self.request("POST", path, json=json, timeout=timeout)
