"""Change notifications.

The remote side offers no push notifications, so the only changes reported
are the ones the provider itself makes. Listeners receive a batch (list) of
FileChangeEvent per completed mutating operation.
"""

from __future__ import annotations

from typing import Callable

import structlog

from spritefs.types import FileChangeEvent

logger = structlog.get_logger()

ChangeListener = Callable[[list[FileChangeEvent]], None]


class Disposable:
    """Cancellable subscription; dispose() is idempotent."""

    def __init__(self, on_dispose: Callable[[], None] | None = None) -> None:
        self._on_dispose = on_dispose
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._on_dispose is not None:
            self._on_dispose()

    def __enter__(self) -> Disposable:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()


class ChangeEmitter:
    """Fan-out of change batches to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Disposable:
        """Register a listener; dispose the returned handle to unsubscribe."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Disposable(_remove)

    def fire(self, events: list[FileChangeEvent]) -> None:
        """Deliver one batch to every listener.

        A failing listener is logged and does not stop delivery to the rest.
        """
        for listener in list(self._listeners):
            try:
                listener(events)
            except Exception as e:
                logger.error(
                    "events.listener_failed",
                    error=str(e),
                    events=[event.model_dump(mode="json") for event in events],
                )

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
