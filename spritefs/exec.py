"""Remote command execution with bounded retry.

Policy:
- Transport failures (the command could not be run) are retried up to
  ``retries`` more times with a fixed delay, then the last error is re-raised.
- A non-zero exit status is a final result and is never retried.
- A CommandExitError carrying an exit code is the session's way of saying
  "ran, exited non-zero"; it is turned into a normal ExecResult.
"""

from __future__ import annotations

import asyncio

import structlog

from spritefs.errors import CommandExitError
from spritefs.session import SessionHandle
from spritefs.types import ExecResult

logger = structlog.get_logger()

DEFAULT_RETRIES = 2
DEFAULT_RETRY_DELAY = 0.5


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def coerce_result(raw: ExecResult | dict) -> ExecResult:
    """Normalize whatever a session returned into an ExecResult.

    Sessions may hand back bytes or omit the exit code; a missing exit code
    counts as success.
    """
    if isinstance(raw, ExecResult):
        return raw
    exit_code = raw.get("exit_code", raw.get("exitCode"))
    return ExecResult(
        stdout=_as_text(raw.get("stdout")),
        stderr=_as_text(raw.get("stderr")),
        exit_code=int(exit_code) if exit_code is not None else 0,
    )


async def execute_with_retry(
    session: SessionHandle,
    command: str,
    *,
    retries: int = DEFAULT_RETRIES,
    delay: float = DEFAULT_RETRY_DELAY,
) -> ExecResult:
    """Run a command on a session, retrying transport failures.

    Args:
        session: Session handle to run the command on
        command: Shell command string
        retries: Extra attempts after the first transport failure
        delay: Seconds to wait between attempts

    Returns:
        ExecResult of the first attempt that ran

    Raises:
        ValueError: If retries is negative
        Exception: The last transport error once all attempts are exhausted
    """
    if retries < 0:
        raise ValueError("retries must be >= 0")

    max_attempts = retries + 1
    attempt = 0

    while True:
        attempt += 1
        try:
            raw = await session.execute(command)
            return coerce_result(raw)
        except CommandExitError as e:
            if e.exit_code is not None:
                return ExecResult(
                    stdout=_as_text(e.stdout),
                    stderr=_as_text(e.stderr),
                    exit_code=e.exit_code,
                )
            error: Exception = e
        except Exception as e:
            error = e

        logger.warning(
            "exec.attempt_failed",
            attempt=attempt,
            max_attempts=max_attempts,
            error=str(error),
        )
        if attempt >= max_attempts:
            raise error
        await asyncio.sleep(delay)
