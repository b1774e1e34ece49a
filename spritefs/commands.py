"""Shell command synthesis and output parsing.

Every filesystem operation is expressed as a POSIX shell command built from
standard utilities (stat, ls, base64, mkdir, rm, mv). This module builds the
command strings and parses their raw output; it performs no I/O.

All paths are quoted with shlex.quote, so paths containing quotes, spaces or
shell metacharacters are passed through literally.
"""

from __future__ import annotations

import base64
import posixpath
import shlex
import time

from spritefs.types import DirectoryEntry, FileStat, FileType

# Not a valid base64 or stat output, so it can never be mistaken for content
NOT_FOUND_SENTINEL = "__SPRITEFS_NOT_FOUND__"
EXISTS_TOKEN = "EXISTS"
NOT_EXISTS_TOKEN = "NOTEXISTS"

STAT_FORMAT = "%F|%s|%Y|%Z"

# Base64 characters per write command; Linux caps one argument at 128 KiB
WRITE_CHUNK_SIZE = 48 * 1024

# ls -F classification suffixes
_LISTING_MARKERS: dict[str, FileType] = {
    "/": FileType.DIRECTORY,
    "@": FileType.SYMLINK,
    "*": FileType.FILE,
    "=": FileType.FILE,
    "|": FileType.FILE,
}


def quote_path(path: str) -> str:
    return shlex.quote(path)


def parent_directory(path: str) -> str:
    """Parent of an absolute path ("/" for top-level entries and the root)."""
    return posixpath.dirname(path.rstrip("/")) or "/"


# Command builders


def stat_command(path: str) -> str:
    p = quote_path(path)
    return (
        f"if [ -e {p} ] || [ -L {p} ]; then stat -c '{STAT_FORMAT}' {p}; "
        f"else echo {NOT_FOUND_SENTINEL}; fi"
    )


def list_directory_command(path: str) -> str:
    # Trailing slash makes ls list a symlinked directory's contents instead of
    # reporting the link itself.
    return f"ls -1AF {quote_path(path.rstrip('/') + '/')}"


def read_file_command(path: str) -> str:
    p = quote_path(path)
    return f"if [ -e {p} ]; then base64 {p}; else echo {NOT_FOUND_SENTINEL}; fi"


def exists_command(path: str) -> str:
    return f"test -e {quote_path(path)} && echo {EXISTS_TOKEN} || echo {NOT_EXISTS_TOKEN}"


def mkdir_command(path: str) -> str:
    return f"mkdir -p {quote_path(path)}"


def write_file_commands(
    path: str,
    content: bytes,
    *,
    chunk_size: int = WRITE_CHUNK_SIZE,
) -> list[str]:
    """Commands that write content to path, to be run in order.

    The base64 payload is split into chunks of at most ``chunk_size``
    characters so no single shell argument exceeds the kernel's per-argument
    limit. The first command truncates the file, the rest append.
    """
    if chunk_size <= 0 or chunk_size % 4:
        raise ValueError("chunk_size must be a positive multiple of 4")

    encoded = base64.b64encode(content).decode("ascii")
    chunks = [encoded[i:i + chunk_size] for i in range(0, len(encoded), chunk_size)] or [""]
    p = quote_path(path)
    return [
        f"printf '%s' {shlex.quote(chunk)} | base64 -d {'>' if i == 0 else '>>'} {p}"
        for i, chunk in enumerate(chunks)
    ]


def delete_command(path: str, *, recursive: bool) -> str:
    flags = "-rf" if recursive else "-f"
    return f"rm {flags} {quote_path(path)}"


def rename_command(old_path: str, new_path: str, *, replace: bool = False) -> str:
    """Move old_path to new_path.

    With ``replace``, an existing destination is removed first so a
    destination directory is replaced rather than moved into. The
    destination is only removed when the source exists; otherwise mv runs
    alone and reports the missing source.
    """
    old, new = quote_path(old_path), quote_path(new_path)
    move = f"mv {old} {new}"
    if replace and posixpath.normpath(old_path) != posixpath.normpath(new_path):
        return f"if [ -e {old} ] || [ -L {old} ]; then rm -rf {new} && {move}; else {move}; fi"
    return move


# Output parsers


def is_not_found(output: str) -> bool:
    return output.strip() == NOT_FOUND_SENTINEL


def parse_exists(output: str) -> bool:
    return output.strip() == EXISTS_TOKEN


def _file_type_from_stat(kind: str) -> FileType:
    if "directory" in kind:
        return FileType.DIRECTORY
    if "regular" in kind or "file" in kind:
        return FileType.FILE
    if "symbolic link" in kind:
        return FileType.SYMLINK
    return FileType.UNKNOWN


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_stat_output(output: str, *, now_ms: int | None = None) -> FileStat:
    """Parse ``kind|size|mtime|ctime`` as printed by stat_command.

    Unparsable sizes default to 0 and unparsable times default to now.

    Example:
        >>> stat = parse_stat_output("directory|4096|1700000000|1700000100")
        >>> (stat.type, stat.size, stat.mtime)
        (<FileType.DIRECTORY: 'directory'>, 4096, 1700000000000)
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    line = output.strip().splitlines()[0] if output.strip() else ""
    fields = line.split("|")
    fields += [""] * (4 - len(fields))
    kind, size_str, mtime_str, ctime_str = fields[:4]

    size = _parse_int(size_str)
    mtime = _parse_int(mtime_str)
    ctime = _parse_int(ctime_str)

    return FileStat(
        type=_file_type_from_stat(kind),
        size=size if size is not None and size >= 0 else 0,
        mtime=mtime * 1000 if mtime else now_ms,
        ctime=ctime * 1000 if ctime else now_ms,
    )


def parse_listing_line(line: str) -> DirectoryEntry | None:
    """Parse one ``ls -F`` line; None for blank lines and ``.``/``..``."""
    if not line.strip():
        return None

    name = line
    file_type = FileType.FILE
    marker = _LISTING_MARKERS.get(name[-1])
    if marker is not None:
        name = name[:-1]
        file_type = marker

    if not name or name in (".", ".."):
        return None
    return DirectoryEntry(name=name, type=file_type)


def parse_listing(output: str) -> list[DirectoryEntry]:
    """Parse the output of list_directory_command, one entry per line."""
    entries: list[DirectoryEntry] = []
    for line in output.split("\n"):
        entry = parse_listing_line(line.rstrip("\r"))
        if entry is not None:
            entries.append(entry)
    return entries


def decode_content(output: str) -> bytes:
    """Decode base64 output; all-whitespace output is an empty file.

    Raises:
        binascii.Error: If the output is not valid base64
    """
    payload = "".join(output.split())
    if not payload:
        return b""
    return base64.b64decode(payload, validate=True)
