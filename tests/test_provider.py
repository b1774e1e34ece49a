"""Tests for SpriteFileSystemProvider against scripted sessions."""

from __future__ import annotations

import asyncio

import pytest

from spritefs import commands
from spritefs.address import SpriteAddress
from spritefs.errors import (
    NoPermissionsError,
    SpriteFileExistsError,
    SpriteFileNotFoundError,
    TransportError,
    UnavailableError,
)
from spritefs.provider import SpriteFileSystemProvider
from spritefs.types import DirectoryEntry, FileChangeEvent, FileChangeType, FileType
from tests.fakes import FakeRegistry, FakeSession, failed, ok

URI = "sprite://dev-box/home/sprite/notes.txt"
SENTINEL = commands.NOT_FOUND_SENTINEL


class TestStat:
    async def test_parses_metadata(self, provider, session):
        session.queue(ok("directory|4096|1700000000|1700000100\n"))

        stat = await provider.stat("sprite://dev-box/home/sprite")

        assert stat.type == FileType.DIRECTORY
        assert stat.size == 4096
        assert stat.mtime == 1700000000000
        assert stat.ctime == 1700000100000
        assert session.calls == [commands.stat_command("/home/sprite")]

    async def test_sentinel_is_not_found(self, provider, session):
        session.queue(ok(f"{SENTINEL}\n"))

        with pytest.raises(SpriteFileNotFoundError) as exc_info:
            await provider.stat(URI)

        assert exc_info.value.details["uri"] == URI
        assert exc_info.value.to_dict() == {
            "code": "file_not_found",
            "message": f"File not found: {URI}",
            "details": {"uri": URI},
        }

    async def test_empty_output_is_not_found(self, provider, session):
        session.queue(ok(""))

        with pytest.raises(SpriteFileNotFoundError):
            await provider.stat(URI)

    async def test_stat_failure_is_unavailable(self, provider, session):
        session.queue(failed("stat: cannot stat: Permission denied"))

        with pytest.raises(UnavailableError, match="Permission denied"):
            await provider.stat(URI)

    async def test_transport_failure_is_unavailable(self, provider, session):
        session.queue(*(TransportError("connection refused") for _ in range(3)))

        with pytest.raises(UnavailableError) as exc_info:
            await provider.stat(URI)

        assert exc_info.value.details["cause"] == "connection refused"
        assert exc_info.value.details["cause_type"] == "TransportError"
        assert len(session.calls) == 3

    async def test_accepts_address_objects(self, provider, session):
        session.queue(ok("regular file|3|1|1"))

        stat = await provider.stat(SpriteAddress("dev-box", "/etc/hostname"))

        assert stat.type == FileType.FILE
        assert session.calls == [commands.stat_command("/etc/hostname")]


class TestReadDirectory:
    async def test_lists_entries(self, provider, session):
        session.queue(ok("data.txt\nlogs/\n"))

        entries = await provider.read_directory("sprite://dev-box/srv")

        assert entries == [
            DirectoryEntry(name="data.txt", type=FileType.FILE),
            DirectoryEntry(name="logs", type=FileType.DIRECTORY),
        ]

    async def test_empty_directory(self, provider, session):
        session.queue(ok(""))

        assert await provider.read_directory("sprite://dev-box/empty") == []

    async def test_ls_failure_is_unavailable(self, provider, session):
        session.queue(failed("ls: cannot access '/nope/': No such file or directory", exit_code=2))

        with pytest.raises(UnavailableError, match="No such file"):
            await provider.read_directory("sprite://dev-box/nope")


class TestReadFile:
    async def test_decodes_content(self, provider, session):
        session.queue(ok("aGVsbG8gd29y\nbGQ=\n"))

        assert await provider.read_file(URI) == b"hello world"

    async def test_empty_file(self, provider, session):
        session.queue(ok("\n"))

        assert await provider.read_file(URI) == b""

    async def test_missing_file(self, provider, session):
        session.queue(ok(f"{SENTINEL}\n"))

        with pytest.raises(SpriteFileNotFoundError):
            await provider.read_file(URI)

    async def test_undecodable_output_is_unavailable(self, provider, session):
        session.queue(ok("!!! not base64 !!!"))

        with pytest.raises(UnavailableError, match="decode"):
            await provider.read_file(URI)

    async def test_read_error_is_unavailable(self, provider, session):
        session.queue(failed("base64: /home/sprite: Is a directory"))

        with pytest.raises(UnavailableError, match="Is a directory"):
            await provider.read_file(URI)


class TestWriteFile:
    async def test_creates_new_file(self, provider, session, changes):
        session.queue(ok("NOTEXISTS\n"), ok(), ok())

        await provider.write_file(URI, b"hello", create=True, overwrite=False)

        assert session.calls == [
            commands.exists_command("/home/sprite/notes.txt"),
            commands.mkdir_command("/home/sprite"),
            *commands.write_file_commands("/home/sprite/notes.txt", b"hello"),
        ]
        assert changes == [[FileChangeEvent(type=FileChangeType.CREATED, uri=URI)]]

    async def test_overwrites_existing_file(self, provider, session, changes):
        session.queue(ok("EXISTS\n"), ok(), ok())

        await provider.write_file(URI, b"v2", create=False, overwrite=True)

        assert changes == [[FileChangeEvent(type=FileChangeType.CHANGED, uri=URI)]]

    @pytest.mark.parametrize("overwrite", [True, False])
    async def test_missing_without_create_is_not_found(self, provider, session, changes, overwrite):
        session.queue(ok("NOTEXISTS\n"))

        with pytest.raises(SpriteFileNotFoundError):
            await provider.write_file(URI, b"x", create=False, overwrite=overwrite)

        assert len(session.calls) == 1
        assert changes == []

    @pytest.mark.parametrize("create", [True, False])
    async def test_existing_without_overwrite_is_exists(self, provider, session, changes, create):
        session.queue(ok("EXISTS\n"))

        with pytest.raises(SpriteFileExistsError):
            await provider.write_file(URI, b"x", create=create, overwrite=False)

        assert len(session.calls) == 1
        assert changes == []

    async def test_write_failure_is_unavailable_and_silent(self, provider, session, changes):
        session.queue(ok("NOTEXISTS\n"), ok(), failed("sh: can't create: Read-only file system"))

        with pytest.raises(UnavailableError, match="Read-only"):
            await provider.write_file(URI, b"x")

        assert changes == []

    async def test_large_content_is_written_in_chunks(self, provider, session, changes):
        content = bytes(range(256)) * 800

        await provider.write_file(URI, content)

        writes = session.calls[2:]
        assert len(writes) == 6
        assert writes == commands.write_file_commands("/home/sprite/notes.txt", content)
        assert all(len(command) < 64 * 1024 for command in writes)
        assert changes == [[FileChangeEvent(type=FileChangeType.CREATED, uri=URI)]]

    async def test_failed_chunk_stops_the_write(self, provider, session, changes):
        content = b"x" * 100_000
        session.queue(ok("NOTEXISTS\n"), ok(), ok(), failed("No space left on device"))

        with pytest.raises(UnavailableError, match="No space left"):
            await provider.write_file(URI, content)

        assert len(session.calls) == 4
        assert changes == []

    async def test_mkdir_parent_failure_is_unavailable(self, provider, session, changes):
        session.queue(ok("NOTEXISTS\n"), failed("mkdir: Permission denied"))

        with pytest.raises(UnavailableError, match="Permission denied"):
            await provider.write_file(URI, b"x")

        assert len(session.calls) == 2
        assert changes == []

    async def test_transient_failures_then_success_notify_once(self, provider, session, changes):
        session.queue(
            ok("NOTEXISTS\n"),
            ok(),
            TransportError("connection not ready"),
            TransportError("connection not ready"),
            ok(),
        )

        await provider.write_file(URI, b"payload")

        assert len(session.calls) == 5
        assert changes == [[FileChangeEvent(type=FileChangeType.CREATED, uri=URI)]]

        session.queue(ok("EXISTS\n"), TransportError("blip"), TransportError("blip"), ok(), ok())

        await provider.write_file(URI, b"payload 2")

        assert changes == [
            [FileChangeEvent(type=FileChangeType.CREATED, uri=URI)],
            [FileChangeEvent(type=FileChangeType.CHANGED, uri=URI)],
        ]


class TestCreateDirectory:
    async def test_creates_directory(self, provider, session, changes):
        uri = "sprite://dev-box/srv/app"

        await provider.create_directory(uri)

        assert session.calls == ["mkdir -p /srv/app"]
        assert changes == [[FileChangeEvent(type=FileChangeType.CREATED, uri=uri)]]

    async def test_failure_is_unavailable(self, provider, session, changes):
        session.queue(failed("mkdir: cannot create directory '/proc/x': No such file or directory"))

        with pytest.raises(UnavailableError):
            await provider.create_directory("sprite://dev-box/proc/x")

        assert changes == []

    async def test_error_on_stderr_is_unavailable(self, provider, session, changes):
        session.queue(ok(stderr="Error: quota exceeded"))

        with pytest.raises(UnavailableError, match="quota"):
            await provider.create_directory("sprite://dev-box/srv/app")

        assert changes == []


class TestDelete:
    @pytest.mark.parametrize(
        ("recursive", "command"),
        [(True, "rm -rf /srv/app"), (False, "rm -f /srv/app")],
    )
    async def test_delete(self, provider, session, changes, recursive, command):
        uri = "sprite://dev-box/srv/app"

        await provider.delete(uri, recursive=recursive)

        assert session.calls == [command]
        assert changes == [[FileChangeEvent(type=FileChangeType.DELETED, uri=uri)]]

    async def test_failure_is_unavailable(self, provider, session, changes):
        session.queue(failed("rm: cannot remove '/srv/app': Is a directory"))

        with pytest.raises(UnavailableError, match="Is a directory"):
            await provider.delete("sprite://dev-box/srv/app")

        assert changes == []


class TestRename:
    async def test_rename_without_overwrite_checks_destination(self, provider, session, changes):
        old, new = "sprite://dev-box/a.txt", "sprite://dev-box/b.txt"
        session.queue(ok("NOTEXISTS\n"), ok())

        await provider.rename(old, new)

        assert session.calls == [commands.exists_command("/b.txt"), "mv /a.txt /b.txt"]
        assert changes == [[
            FileChangeEvent(type=FileChangeType.DELETED, uri=old),
            FileChangeEvent(type=FileChangeType.CREATED, uri=new),
        ]]

    async def test_rename_with_overwrite_replaces_destination(self, provider, session, changes):
        old, new = "sprite://dev-box/a.txt", "sprite://dev-box/dest"

        await provider.rename(old, new, overwrite=True)

        assert session.calls == [commands.rename_command("/a.txt", "/dest", replace=True)]
        assert changes == [[
            FileChangeEvent(type=FileChangeType.DELETED, uri=old),
            FileChangeEvent(type=FileChangeType.CREATED, uri=new),
        ]]

    async def test_existing_destination(self, provider, session, changes):
        session.queue(ok("EXISTS\n"))

        with pytest.raises(SpriteFileExistsError):
            await provider.rename("sprite://dev-box/a.txt", "sprite://dev-box/b.txt")

        assert len(session.calls) == 1
        assert changes == []

    async def test_cross_sprite_is_rejected_without_remote_calls(self, provider, registry, changes):
        with pytest.raises(NoPermissionsError, match="different Sprites"):
            await provider.rename(
                "sprite://dev-box/a.txt", "sprite://staging/a.txt", overwrite=True
            )

        assert registry.handle_calls == []
        assert all(not s.calls for s in registry.sessions.values())
        assert changes == []

    async def test_mv_failure_is_unavailable(self, provider, session, changes):
        session.queue(failed("mv: cannot stat '/a.txt': No such file or directory"))

        with pytest.raises(UnavailableError):
            await provider.rename(
                "sprite://dev-box/a.txt", "sprite://dev-box/b.txt", overwrite=True
            )

        assert changes == []


class TestRegistryLifecycle:
    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError, match="retries"):
            SpriteFileSystemProvider(retries=-1)

    async def test_operation_before_install_waits(self):
        provider = SpriteFileSystemProvider(retry_delay=0, ready_timeout=5.0)
        session = FakeSession().queue(ok("regular file|1|1|1"))

        async def install_later():
            await asyncio.sleep(0.1)
            provider.install_registry(FakeRegistry({"dev-box": session}))

        installer = asyncio.create_task(install_later())
        stat = await provider.stat(URI)
        await installer

        assert stat.type == FileType.FILE

    async def test_operation_without_registry_is_unavailable(self):
        provider = SpriteFileSystemProvider(ready_timeout=0.05)

        with pytest.raises(UnavailableError, match="Not connected"):
            await provider.read_file(URI)

    async def test_reinstall_uses_new_sessions(self, provider, session):
        await provider.delete(URI)
        replacement = FakeSession("dev-box")
        provider.install_registry(FakeRegistry({"dev-box": replacement}))

        await provider.delete(URI)

        assert len(session.calls) == 1
        assert len(replacement.calls) == 1


class TestWatchAndEvents:
    def test_watch_is_noop_disposable(self, provider):
        subscription = provider.watch(URI, recursive=True)
        subscription.dispose()
        subscription.dispose()
        assert subscription.disposed

    async def test_disposed_listener_stops_receiving(self, provider):
        received: list = []
        subscription = provider.on_did_change_file(received.append)

        assert provider._emitter.listener_count == 1
        await provider.create_directory("sprite://dev-box/a")
        subscription.dispose()
        assert provider._emitter.listener_count == 0
        await provider.create_directory("sprite://dev-box/b")

        assert len(received) == 1

    async def test_failing_listener_does_not_break_operation(self, provider, changes):
        def broken(events):
            raise RuntimeError("listener bug")

        provider.on_did_change_file(broken)

        await provider.create_directory("sprite://dev-box/a")

        assert len(changes) == 1
