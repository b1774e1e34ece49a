"""Session acquisition.

SessionManager resolves a sprite name to a session handle.

Key responsibilities:
- Gate on a readiness signal until a registry has been installed
- Cache one handle per sprite name for the manager's lifetime
- Drop every cached handle when the registry is replaced
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

import structlog

from spritefs.errors import SpriteFSError, UnavailableError, unavailable
from spritefs.types import ExecResult

logger = structlog.get_logger()

DEFAULT_READY_TIMEOUT = 5.0


@runtime_checkable
class SessionHandle(Protocol):
    """Capability bound to one remote session."""

    async def execute(self, command: str) -> ExecResult:
        """Run a shell command remotely.

        Returns the captured output whatever the exit status. Raises only
        when the command could not be run at all.
        """
        ...


@runtime_checkable
class SessionRegistry(Protocol):
    """Maps a session name to a session handle."""

    def session_handle(self, name: str) -> SessionHandle:
        """Mint a handle for the named session."""
        ...


class SessionManager:
    """Caches session handles and gates on registry installation."""

    def __init__(self, *, ready_timeout: float = DEFAULT_READY_TIMEOUT) -> None:
        self._ready_timeout = ready_timeout
        self._registry: SessionRegistry | None = None
        self._sessions: dict[str, SessionHandle] = {}
        self._ready = asyncio.Event()
        self._lock = asyncio.Lock()
        self._log = logger.bind(component="session_manager")

    @property
    def is_ready(self) -> bool:
        """Whether a registry has been installed."""
        return self._registry is not None

    @property
    def registry(self) -> SessionRegistry | None:
        return self._registry

    def install_registry(self, registry: SessionRegistry) -> None:
        """Install a registry, dropping handles minted by the previous one.

        The first installation opens the readiness gate; later installations
        (credential rotation) only reset the cache.
        """
        replaced = self._registry is not None
        self._registry = registry
        self._sessions.clear()
        self._ready.set()
        self._log.info("session.registry_installed", replaced=replaced)

    async def wait_ready(self) -> SessionRegistry:
        """Wait for a registry to be installed, bounded by the ready timeout.

        Raises:
            UnavailableError: If no registry is installed in time
        """
        if self._registry is None:
            self._log.debug("session.waiting_for_registry", timeout=self._ready_timeout)
            try:
                await asyncio.wait_for(self._ready.wait(), timeout=self._ready_timeout)
            except asyncio.TimeoutError:
                self._log.warning("session.registry_timeout", timeout=self._ready_timeout)

        registry = self._registry
        if registry is None:
            raise UnavailableError(
                message="Not connected to Sprites API",
                details={"ready_timeout": self._ready_timeout},
            )
        return registry

    async def resolve(self, name: str) -> SessionHandle:
        """Get the cached handle for a sprite, minting it on first use.

        Args:
            name: Sprite (session) name

        Returns:
            Session handle for the sprite

        Raises:
            UnavailableError: If no registry is installed within the ready
                timeout, or the registry fails to mint a handle
        """
        registry = await self.wait_ready()

        async with self._lock:
            # Registry may have been replaced while waiting for the lock
            registry = self._registry or registry
            handle = self._sessions.get(name)
            if handle is not None:
                return handle

            try:
                handle = registry.session_handle(name)
            except SpriteFSError:
                raise
            except Exception as e:
                self._log.error("session.create_failed", sprite=name, error=str(e))
                raise unavailable(
                    f"Failed to open session for sprite {name!r}", e, sprite=name
                ) from e

            self._sessions[name] = handle
            self._log.debug("session.created", sprite=name, cached=len(self._sessions))
            return handle

    def cached_count(self) -> int:
        """Number of cached handles (for testing/metrics)."""
        return len(self._sessions)
