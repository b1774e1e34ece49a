"""SpriteFileSystemProvider - filesystem contract over remote shell commands.

Every operation follows the same pipeline:
1. Resolve the resource URI into (sprite name, path)
2. Acquire the sprite's session handle (waiting for a registry if needed)
3. Synthesize a shell command and run it with bounded retry
4. Parse the output into a typed result, or classify the failure

Errors already in the SpriteFSError taxonomy propagate unchanged; anything
else becomes UnavailableError with the underlying message preserved.
Mutating operations notify change listeners only after the remote command
succeeded.
"""

from __future__ import annotations

import binascii
from typing import Iterable

import structlog

from spritefs import commands
from spritefs.address import SpriteAddress, parse_uri
from spritefs.errors import (
    NoPermissionsError,
    SpriteFileExistsError,
    SpriteFileNotFoundError,
    SpriteFSError,
    UnavailableError,
    unavailable,
)
from spritefs.events import ChangeEmitter, ChangeListener, Disposable
from spritefs.exec import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY, execute_with_retry
from spritefs.session import DEFAULT_READY_TIMEOUT, SessionManager, SessionRegistry
from spritefs.types import (
    DirectoryEntry,
    ExecResult,
    FileChangeEvent,
    FileChangeType,
    FileStat,
)

logger = structlog.get_logger()

Resource = str | SpriteAddress


def _not_found(address: SpriteAddress) -> SpriteFileNotFoundError:
    return SpriteFileNotFoundError(
        message=f"File not found: {address.uri}",
        details={"uri": address.uri},
    )


class SpriteFileSystemProvider:
    """Filesystem provider for trees that live on remote sprites.

    Example:
        provider = SpriteFileSystemProvider()
        provider.install_registry(SpritesClient(access_token="..."))

        stat = await provider.stat("sprite://dev-box/home/sprite")
        for entry in await provider.read_directory("sprite://dev-box/home/sprite"):
            print(entry.name, entry.type)
    """

    def __init__(
        self,
        *,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
    ) -> None:
        """Initialize provider.

        Args:
            retries: Extra attempts for each remote command on transport failure
            retry_delay: Seconds between attempts
            ready_timeout: Seconds to wait for a registry before giving up

        Raises:
            ValueError: If retries is negative
        """
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self._retries = retries
        self._retry_delay = retry_delay
        self._sessions = SessionManager(ready_timeout=ready_timeout)
        self._emitter = ChangeEmitter()
        self._log = logger.bind(component="provider")

    # Registry lifecycle

    def install_registry(self, registry: SessionRegistry) -> None:
        """Install (or replace) the session registry; clears cached sessions."""
        self._sessions.install_registry(registry)

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    # Change notifications

    def on_did_change_file(self, listener: ChangeListener) -> Disposable:
        """Subscribe to change batches caused by this provider."""
        return self._emitter.subscribe(listener)

    def watch(
        self,
        uri: Resource,
        *,
        recursive: bool = False,
        excludes: Iterable[str] = (),
    ) -> Disposable:
        """Watch a resource.

        Sprites offer no change notifications, so this is a no-op
        subscription; only changes made through this provider are reported.
        """
        return Disposable()

    # Internals

    async def _run(self, address: SpriteAddress, command: str) -> ExecResult:
        session = await self._sessions.resolve(address.sprite_name)
        return await execute_with_retry(
            session,
            command,
            retries=self._retries,
            delay=self._retry_delay,
        )

    async def _check(self, address: SpriteAddress, command: str, action: str) -> ExecResult:
        """Run a command that must exit 0."""
        result = await self._run(address, command)
        if not result.ok:
            reason = result.stderr.strip() or f"exit code {result.exit_code}"
            raise UnavailableError(
                message=f"Failed to {action} {address.path}: {reason}",
                details={
                    "sprite": address.sprite_name,
                    "path": address.path,
                    "exit_code": result.exit_code,
                    "stderr": result.stderr,
                },
            )
        return result

    async def _exists(self, address: SpriteAddress) -> bool:
        result = await self._run(address, commands.exists_command(address.path))
        return commands.parse_exists(result.stdout)

    def _fail(self, op: str, address: SpriteAddress, error: Exception) -> UnavailableError:
        """Wrap an unclassified exception escaping an operation."""
        self._log.error(
            f"provider.{op}_failed",
            uri=address.uri,
            error=str(error),
            error_type=type(error).__name__,
        )
        return unavailable(
            f"Failed to {op} {address.path}",
            error,
            sprite=address.sprite_name,
            path=address.path,
        )

    # Operations

    async def stat(self, uri: Resource) -> FileStat:
        """Get metadata for a file, directory or symlink.

        Raises:
            SpriteFileNotFoundError: If the path does not exist
            UnavailableError: On any other failure
        """
        address = parse_uri(uri)
        try:
            result = await self._run(address, commands.stat_command(address.path))
            output = result.stdout.strip()
            if commands.is_not_found(output):
                raise _not_found(address)
            if not result.ok:
                raise UnavailableError(
                    message=f"Failed to stat {address.path}: {result.stderr.strip()}",
                    details={"uri": address.uri, "exit_code": result.exit_code},
                )
            if not output:
                raise _not_found(address)
            return commands.parse_stat_output(output)
        except SpriteFSError:
            raise
        except Exception as e:
            raise self._fail("stat", address, e) from e

    async def read_directory(self, uri: Resource) -> list[DirectoryEntry]:
        """List a directory.

        Returns:
            Entries in listing order; empty for an empty directory

        Raises:
            UnavailableError: If the listing command fails
        """
        address = parse_uri(uri)
        try:
            result = await self._check(
                address, commands.list_directory_command(address.path), "list"
            )
            return commands.parse_listing(result.stdout)
        except SpriteFSError:
            raise
        except Exception as e:
            raise self._fail("list", address, e) from e

    async def read_file(self, uri: Resource) -> bytes:
        """Read a whole file.

        Raises:
            SpriteFileNotFoundError: If the path does not exist
            UnavailableError: If reading or decoding fails
        """
        address = parse_uri(uri)
        try:
            result = await self._run(address, commands.read_file_command(address.path))
            if commands.is_not_found(result.stdout):
                raise _not_found(address)
            if not result.ok:
                raise UnavailableError(
                    message=f"Failed to read {address.path}: {result.stderr.strip()}",
                    details={"uri": address.uri, "exit_code": result.exit_code},
                )
            try:
                return commands.decode_content(result.stdout)
            except (binascii.Error, ValueError) as e:
                raise unavailable(f"Failed to decode {address.path}", e, uri=address.uri) from e
        except SpriteFSError:
            raise
        except Exception as e:
            raise self._fail("read", address, e) from e

    async def write_file(
        self,
        uri: Resource,
        content: bytes,
        *,
        create: bool = True,
        overwrite: bool = True,
    ) -> None:
        """Write a whole file, creating missing parent directories.

        Args:
            uri: File to write
            content: Raw bytes
            create: Allow creating the file if it does not exist
            overwrite: Allow replacing an existing file

        Raises:
            SpriteFileExistsError: If the file exists and overwrite is False
            SpriteFileNotFoundError: If the file is missing and create is False
            UnavailableError: On any other failure
        """
        address = parse_uri(uri)
        try:
            exists = await self._exists(address)
            if exists and not overwrite:
                raise SpriteFileExistsError(
                    message=f"File exists: {address.uri}",
                    details={"uri": address.uri},
                )
            if not exists and not create:
                raise _not_found(address)

            parent = commands.parent_directory(address.path)
            await self._check(address, commands.mkdir_command(parent), "create parent of")
            for command in commands.write_file_commands(address.path, bytes(content)):
                await self._check(address, command, "write")
        except SpriteFSError:
            raise
        except Exception as e:
            raise self._fail("write", address, e) from e

        self._log.debug(
            "provider.file_written",
            uri=address.uri,
            size=len(content),
            created=not exists,
        )
        self._emitter.fire([
            FileChangeEvent(
                type=FileChangeType.CHANGED if exists else FileChangeType.CREATED,
                uri=address.uri,
            )
        ])

    async def create_directory(self, uri: Resource) -> None:
        """Create a directory and any missing parents.

        Raises:
            UnavailableError: If mkdir fails
        """
        address = parse_uri(uri)
        try:
            result = await self._check(address, commands.mkdir_command(address.path), "create")
            if "error" in result.stderr.lower():
                raise UnavailableError(
                    message=f"Failed to create {address.path}: {result.stderr.strip()}",
                    details={"uri": address.uri, "stderr": result.stderr},
                )
        except SpriteFSError:
            raise
        except Exception as e:
            raise self._fail("create", address, e) from e

        self._emitter.fire([FileChangeEvent(type=FileChangeType.CREATED, uri=address.uri)])

    async def delete(self, uri: Resource, *, recursive: bool = False) -> None:
        """Delete a file, or a directory tree when recursive.

        Deleting a missing path is not an error.

        Raises:
            UnavailableError: If rm fails
        """
        address = parse_uri(uri)
        try:
            await self._check(
                address,
                commands.delete_command(address.path, recursive=recursive),
                "delete",
            )
        except SpriteFSError:
            raise
        except Exception as e:
            raise self._fail("delete", address, e) from e

        self._emitter.fire([FileChangeEvent(type=FileChangeType.DELETED, uri=address.uri)])

    async def rename(
        self,
        old_uri: Resource,
        new_uri: Resource,
        *,
        overwrite: bool = False,
    ) -> None:
        """Move a file or directory within one sprite.

        With overwrite, an existing destination is replaced, directories
        included, so the moved entry always ends up at new_uri.

        Raises:
            NoPermissionsError: If source and destination are on different sprites
            SpriteFileExistsError: If the destination exists and overwrite is False
            UnavailableError: On any other failure
        """
        old = parse_uri(old_uri)
        new = parse_uri(new_uri)

        if old.sprite_name != new.sprite_name:
            raise NoPermissionsError(
                message="Cannot move files between different Sprites",
                details={"source": old.uri, "destination": new.uri},
            )

        try:
            if not overwrite and await self._exists(new):
                raise SpriteFileExistsError(
                    message=f"File exists: {new.uri}",
                    details={"uri": new.uri},
                )
            await self._check(
                old,
                commands.rename_command(old.path, new.path, replace=overwrite),
                "rename",
            )
        except SpriteFSError:
            raise
        except Exception as e:
            raise self._fail("rename", old, e) from e

        self._emitter.fire([
            FileChangeEvent(type=FileChangeType.DELETED, uri=old.uri),
            FileChangeEvent(type=FileChangeType.CREATED, uri=new.uri),
        ])
