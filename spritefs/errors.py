"""spritefs error types.

Filesystem errors form a small, stable taxonomy that callers branch on.
Each error carries a stable ``code`` for programmatic handling.

Transport errors are raised by session collaborators and never reach
filesystem callers unwrapped: the provider maps them to UnavailableError.
"""

from __future__ import annotations

from typing import Any


class SpriteFSError(Exception):
    """Base error for all filesystem errors raised by the provider."""

    code: str = "internal_error"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (for logging and host presentation)."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class SpriteFileNotFoundError(SpriteFSError):
    """Path does not exist on the sprite.

    Note: Named to avoid shadowing Python's builtin FileNotFoundError.
    """

    code = "file_not_found"
    message = "File not found"


class SpriteFileExistsError(SpriteFSError):
    """Path already exists and the operation may not overwrite it.

    Note: Named to avoid shadowing Python's builtin FileExistsError.
    """

    code = "file_exists"
    message = "File exists"


class NoPermissionsError(SpriteFSError):
    """Operation is not permitted (e.g. moving files between sprites)."""

    code = "no_permissions"
    message = "No permissions"


class UnavailableError(SpriteFSError):
    """Sprite is unreachable or the operation failed unexpectedly.

    Wraps transport failures, unexpected command failures and parse errors.
    The underlying message is preserved in ``details["cause"]``.
    """

    code = "unavailable"
    message = "Sprite unavailable"


class TransportError(Exception):
    """A remote command could not be run at all (connection dropped, RPC failed)."""


class CommandExitError(TransportError):
    """A remote command ran but the session reported its non-zero exit as a failure.

    Carries the captured output so the execution layer can turn it back into
    a normal result.
    """

    def __init__(
        self,
        message: str,
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        super().__init__(message)


def unavailable(
    message: str,
    cause: BaseException | None = None,
    **details: Any,
) -> UnavailableError:
    """Build an UnavailableError that keeps the underlying failure for diagnostics."""
    if cause is not None:
        details["cause"] = str(cause) or type(cause).__name__
        details["cause_type"] = type(cause).__name__
        message = f"{message}: {details['cause']}"
    return UnavailableError(message=message, details=details)


class APIError(TransportError):
    """Error response from the Sprites HTTP API.

    Raised by the HTTP session registry; from the filesystem's point of view
    it is a transport failure (the command did not run).
    """

    code: str = "internal_error"
    message: str = "An internal error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)


class UnauthorizedError(APIError):
    """Authentication required (401)."""

    code = "unauthorized"
    message = "Authentication required"
    status_code = 401


class ForbiddenError(APIError):
    """Permission denied (403)."""

    code = "forbidden"
    message = "Permission denied"
    status_code = 403


class SpriteNotFoundError(APIError):
    """Sprite does not exist (404)."""

    code = "not_found"
    message = "Sprite not found"
    status_code = 404


class RateLimitedError(APIError):
    """Rate limit exceeded (429)."""

    code = "rate_limited"
    message = "Rate limit exceeded"
    status_code = 429


class SpriteNotReadyError(APIError):
    """Sprite is starting or not ready yet (503)."""

    code = "not_ready"
    message = "Sprite is starting"
    status_code = 503


class RequestTimeoutError(APIError):
    """Request timed out (504).

    Note: Named to avoid shadowing Python's builtin TimeoutError.
    """

    code = "timeout"
    message = "Request timed out"
    status_code = 504


# Error code to exception class mapping
ERROR_CODE_MAP: dict[str, type[APIError]] = {
    "unauthorized": UnauthorizedError,
    "forbidden": ForbiddenError,
    "not_found": SpriteNotFoundError,
    "rate_limited": RateLimitedError,
    "not_ready": SpriteNotReadyError,
    "timeout": RequestTimeoutError,
}

# Fallback when the body carries no known error code
STATUS_CODE_MAP: dict[int, type[APIError]] = {
    cls.status_code: cls for cls in ERROR_CODE_MAP.values()
}


def raise_for_error_response(
    status_code: int,
    response_body: dict[str, Any],
) -> None:
    """Raise appropriate APIError based on an API error response.

    Args:
        status_code: HTTP status code
        response_body: Parsed JSON response body

    Raises:
        APIError: Appropriate subclass based on error code, then status code
    """
    error_data = response_body.get("error", {})
    if not isinstance(error_data, dict):
        error_data = {"message": str(error_data)}
    code = error_data.get("code")
    message = error_data.get("message")
    details = dict(error_data.get("details") or {})
    details.setdefault("status_code", status_code)

    error_class = ERROR_CODE_MAP.get(code) or STATUS_CODE_MAP.get(status_code, APIError)
    raise error_class(message=message, details=details)
