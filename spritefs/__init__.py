"""spritefs - filesystem provider for remote sprites.

Exposes stat/list/read/write/mkdir/delete/rename over sprites that can only
be reached by running shell commands on them.
"""

from importlib.metadata import PackageNotFoundError, version as _pkg_version

from spritefs.address import SCHEME, SpriteAddress, parse_uri
from spritefs.client import SpriteSession, SpritesClient
from spritefs.errors import (
    APIError,
    CommandExitError,
    ForbiddenError,
    NoPermissionsError,
    RateLimitedError,
    RequestTimeoutError,
    SpriteFileExistsError,
    SpriteFileNotFoundError,
    SpriteFSError,
    SpriteNotFoundError,
    SpriteNotReadyError,
    TransportError,
    UnauthorizedError,
    UnavailableError,
)
from spritefs.events import Disposable
from spritefs.local import LocalShellRegistry, LocalShellSession
from spritefs.provider import SpriteFileSystemProvider
from spritefs.runtime import SpriteRuntime, get_provider, get_runtime
from spritefs.session import SessionHandle, SessionManager, SessionRegistry
from spritefs.types import (
    DirectoryEntry,
    ExecResult,
    FileChangeEvent,
    FileChangeType,
    FileStat,
    FileType,
)

__all__ = [
    # Provider
    "SpriteFileSystemProvider",
    "SpriteRuntime",
    "get_provider",
    "get_runtime",
    "Disposable",
    # Addresses
    "SCHEME",
    "SpriteAddress",
    "parse_uri",
    # Sessions
    "SessionHandle",
    "SessionRegistry",
    "SessionManager",
    "SpritesClient",
    "SpriteSession",
    "LocalShellRegistry",
    "LocalShellSession",
    # Types
    "ExecResult",
    "FileType",
    "FileStat",
    "DirectoryEntry",
    "FileChangeType",
    "FileChangeEvent",
    # Errors
    "SpriteFSError",
    "SpriteFileNotFoundError",
    "SpriteFileExistsError",
    "NoPermissionsError",
    "UnavailableError",
    "TransportError",
    "CommandExitError",
    "APIError",
    "UnauthorizedError",
    "ForbiddenError",
    "SpriteNotFoundError",
    "RateLimitedError",
    "SpriteNotReadyError",
    "RequestTimeoutError",
]

try:
    __version__ = _pkg_version("spritefs")
except PackageNotFoundError:
    __version__ = "unknown"
