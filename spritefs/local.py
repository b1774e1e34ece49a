"""Local shell session registry.

Runs commands on this machine through ``/bin/sh -c``. Every session name maps
to the same local host. Useful for development against a local tree and as
a real shell in tests.
"""

from __future__ import annotations

import asyncio

import structlog

from spritefs.errors import TransportError
from spritefs.types import ExecResult

logger = structlog.get_logger()


class LocalShellSession:
    """Session handle that runs commands in a local subprocess."""

    def __init__(
        self,
        name: str,
        *,
        shell: str = "/bin/sh",
        timeout: float = 30.0,
        cwd: str | None = None,
    ) -> None:
        self._name = name
        self._shell = shell
        self._timeout = timeout
        self._cwd = cwd
        self._log = logger.bind(component="local_session", sprite=name)

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, command: str) -> ExecResult:
        """Run a command via the shell.

        Returns:
            ExecResult; a timed-out command reports exit code -1

        Raises:
            TransportError: If the shell could not be started
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self._shell,
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
        except OSError as e:
            self._log.error("local_session.spawn_failed", shell=self._shell, error=str(e))
            raise TransportError(f"Failed to start {self._shell}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass
            self._log.warning("local_session.timeout", timeout=self._timeout)
            return ExecResult(
                stdout="",
                stderr=f"Command timed out after {self._timeout}s",
                exit_code=-1,
            )

        return ExecResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=process.returncode or 0,
        )


class LocalShellRegistry:
    """Registry whose sessions all run on the local machine."""

    def __init__(
        self,
        *,
        shell: str = "/bin/sh",
        timeout: float = 30.0,
        cwd: str | None = None,
    ) -> None:
        self._shell = shell
        self._timeout = timeout
        self._cwd = cwd

    def session_handle(self, name: str) -> LocalShellSession:
        return LocalShellSession(
            name,
            shell=self._shell,
            timeout=self._timeout,
            cwd=self._cwd,
        )
