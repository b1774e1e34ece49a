"""Process-wide provider runtime.

The runtime owns the single SpriteFileSystemProvider of the process and the
SpritesClient currently installed in it. Nothing is created at import time:
the runtime is built from settings on first use, and the HTTP client only
when a token is available.

Lifecycle:
    runtime = get_runtime()
    runtime.activate()              # installs a client if a token is configured
    await runtime.set_token(token)  # credential rotation, drops cached sessions
    await runtime.shutdown()
"""

from __future__ import annotations

import threading

import structlog

from spritefs.client import SpritesClient
from spritefs.config import Settings, get_settings
from spritefs.provider import SpriteFileSystemProvider

logger = structlog.get_logger()


class SpriteRuntime:
    """Provider plus the registry installed in it."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: SpritesClient | None = None
        self.provider = SpriteFileSystemProvider(
            retries=settings.exec.retries,
            retry_delay=settings.exec.retry_delay,
            ready_timeout=settings.session.ready_timeout,
        )
        self._log = logger.bind(component="runtime")

    @property
    def client(self) -> SpritesClient | None:
        return self._client

    def _make_client(self, token: str) -> SpritesClient:
        api = self._settings.api
        return SpritesClient(
            endpoint_url=api.endpoint_url,
            access_token=token,
            timeout=api.timeout,
            exec_path=api.exec_path,
        )

    def activate(self) -> bool:
        """Install a client from the configured token, if there is one.

        Returns:
            True if a client is installed after the call
        """
        if self._client is not None:
            return True

        token = self._settings.resolved_token()
        if not token:
            self._log.info("runtime.no_token")
            return False

        self._client = self._make_client(token)
        self.provider.install_registry(self._client)
        self._log.info("runtime.activated", endpoint=self._settings.api.endpoint_url)
        return True

    async def set_token(self, token: str) -> None:
        """Replace the API token.

        Installs a fresh client, which drops every cached session, and closes
        the previous client's connections.
        """
        if not token:
            raise ValueError("token must not be empty")

        previous = self._client
        self._client = self._make_client(token)
        self.provider.install_registry(self._client)
        self._log.info("runtime.token_rotated", replaced=previous is not None)

        if previous is not None:
            await previous.aclose()

    async def shutdown(self) -> None:
        """Close the installed client's connections."""
        if self._client is not None:
            await self._client.aclose()


_runtime: SpriteRuntime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> SpriteRuntime:
    """Get the process-wide runtime, building it on first call."""
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = SpriteRuntime(get_settings())
        return _runtime


def get_provider() -> SpriteFileSystemProvider:
    """Get the process-wide provider."""
    return get_runtime().provider


def reset_runtime() -> None:
    """Forget the process-wide runtime (for tests)."""
    global _runtime
    with _runtime_lock:
        _runtime = None
