"""SpritesClient - HTTP-backed session registry.

Each sprite session is a thin handle that posts shell commands to the
Sprites exec endpoint and returns the captured output.
"""

from __future__ import annotations

import os
from types import TracebackType
from urllib.parse import quote

import httpx
import structlog

from spritefs._http import HTTPClient
from spritefs.errors import TransportError
from spritefs.exec import coerce_result
from spritefs.types import ExecResult

logger = structlog.get_logger()

DEFAULT_ENDPOINT = "https://api.sprites.dev"
DEFAULT_EXEC_PATH = "/v1/sprites/{name}/exec"


class SpriteSession:
    """Session handle for one sprite over HTTP."""

    def __init__(self, http: HTTPClient, name: str, exec_path: str = DEFAULT_EXEC_PATH) -> None:
        self._http = http
        self._name = name
        self._path = exec_path.format(name=quote(name, safe=""))

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, command: str) -> ExecResult:
        """Run a shell command on the sprite.

        Returns:
            Captured stdout, stderr and exit code (non-zero exits included)

        Raises:
            TransportError: If the command could not be run, including API
                error responses (APIError subclasses)
        """
        response = await self._http.post(self._path, json={"command": command})
        try:
            return coerce_result(response)
        except (TypeError, ValueError) as e:
            raise TransportError(f"Malformed exec response from sprite {self._name!r}: {e}") from e


class SpritesClient:
    """Session registry for the Sprites API.

    Handles are minted lazily and share one pooled HTTP client, which is
    opened on the first command.

    Example:
        client = SpritesClient(access_token="your-token")
        provider.install_registry(client)
        ...
        await client.aclose()
    """

    def __init__(
        self,
        endpoint_url: str | None = None,
        access_token: str | None = None,
        *,
        timeout: float = 30.0,
        exec_path: str = DEFAULT_EXEC_PATH,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Sprites client.

        Args:
            endpoint_url: API base URL. Falls back to SPRITES_ENDPOINT env var,
                then the public endpoint.
            access_token: Bearer token. Falls back to SPRITES_TOKEN env var.
            timeout: Request timeout in seconds
            exec_path: Exec endpoint path template ({name} = sprite name)
            transport: Optional custom httpx transport (tests)

        Raises:
            ValueError: If access_token not provided and not in env.
        """
        self._endpoint_url = endpoint_url or os.environ.get("SPRITES_ENDPOINT") or DEFAULT_ENDPOINT
        self._access_token = access_token or os.environ.get("SPRITES_TOKEN")

        if not self._access_token:
            raise ValueError("access_token required (or set SPRITES_TOKEN env var)")

        self._exec_path = exec_path
        self._http = HTTPClient(
            base_url=self._endpoint_url,
            access_token=self._access_token,
            timeout=timeout,
            transport=transport,
        )
        self._log = logger.bind(component="sprites_client", endpoint=self._endpoint_url)

    @property
    def http(self) -> HTTPClient:
        return self._http

    def session_handle(self, name: str) -> SpriteSession:
        """Mint a session handle for a sprite (no network I/O)."""
        self._log.debug("sprites_client.session_handle", sprite=name)
        return SpriteSession(self._http, name, self._exec_path)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> SpritesClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
