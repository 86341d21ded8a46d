"""
Async operation tracker.

Answers "is anything happening right now?" for the whole client
without per-feature loading flags. Every async unit of work wraps
itself in track(name) (or the @tracked decorator), which calls
begin() on entry and end() on exit, whatever the outcome.

The tracker knows nothing about what an operation means. Names are
plain strings, conventionally "<feature>/<action>" such as
"auth/login" or "campaigns/fetch".

The public registry maps name → True while in flight. Overlapping
begins of the same name are counted underneath, so the name stays
registered until every begin has been matched by an end.
"""
import functools
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from authcore.utils.logger import get_logger

logger = get_logger(__name__)

BusyListener = Callable[[bool], None]
T = TypeVar("T")


class OperationTracker:
    """
    Registry of in-flight operation names.

    Usage:
        tracker = OperationTracker()
        async with tracker.track("campaigns/fetch"):
            await client.request("GET", "/campaigns")
        tracker.is_busy()
    """

    def __init__(self):
        self._counts: dict[str, int] = {}
        self._listeners: list[BusyListener] = []

    @property
    def operations(self) -> dict[str, bool]:
        """Snapshot of the in-flight registry."""
        return {name: True for name in self._counts}

    def is_busy(self) -> bool:
        return bool(self._counts)

    def is_running(self, name: str) -> bool:
        return name in self._counts

    def begin(self, name: str) -> None:
        """Mark `name` in flight. A name already in flight stays registered once."""
        was_busy = self.is_busy()
        if name in self._counts:
            self._counts[name] += 1
            logger.debug(f"Operation already in flight: {name}")
            return
        self._counts[name] = 1
        logger.debug(f"Operation started: {name}")
        if not was_busy:
            self._notify()

    def end(self, name: str) -> None:
        """Release one begin of `name`. Ending an unknown name is a no-op."""
        count = self._counts.get(name)
        if count is None:
            return
        if count > 1:
            self._counts[name] = count - 1
            return
        del self._counts[name]
        logger.debug(f"Operation finished: {name}")
        if not self.is_busy():
            self._notify()

    def clear_all(self) -> None:
        """Drop every entry, e.g. when the client is torn down."""
        if not self._counts:
            return
        logger.info(f"Clearing {len(self._counts)} in-flight operation(s)")
        self._counts.clear()
        self._notify()

    @asynccontextmanager
    async def track(self, name: str) -> AsyncIterator[None]:
        """Hold `name` in flight for the duration of the block."""
        self.begin(name)
        try:
            yield
        finally:
            self.end(name)

    def tracked(
        self, name: str
    ) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
        """Decorator form of track() for coroutine functions."""
        def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            @functools.wraps(func)
            async def wrapper(*args, **kwargs) -> T:
                async with self.track(name):
                    return await func(*args, **kwargs)
            return wrapper
        return decorator

    def subscribe(self, listener: BusyListener) -> Callable[[], None]:
        """
        Call `listener(busy)` whenever the global busy flag flips.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        busy = self.is_busy()
        for listener in list(self._listeners):
            try:
                listener(busy)
            except Exception:
                logger.exception("Busy listener failed")
