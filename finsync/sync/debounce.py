"""
Keyed debounce scheduler.

schedule(key, payload, delay) keeps at most one pending entry per key:
scheduling an existing key replaces its payload and restarts its timer.
When a timer fires the entry is removed and the callback runs with the
key and the latest payload. Coroutine callbacks run as tasks that
drain() can await.

Timers need a running event loop. Entries scheduled without one stay
pending until flush().
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Hashable, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

Callback = Callable[[Hashable, Any], Union[None, Awaitable[None]]]


class _Entry:
    __slots__ = ("payload", "handle")

    def __init__(self, payload: Any, handle: Optional[asyncio.TimerHandle]):
        self.payload = payload
        self.handle = handle


class DebounceScheduler:
    """Cancel-and-replace timers keyed by an arbitrary hashable."""

    def __init__(self, callback: Callback, delay: float):
        self._callback = callback
        self.delay = delay
        self._entries: dict[Hashable, _Entry] = {}
        self._in_flight: set[asyncio.Task] = set()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[Hashable]:
        return list(self._entries)

    def pending(self, key: Hashable) -> Any:
        """Payload waiting under `key`, or None."""
        entry = self._entries.get(key)
        return entry.payload if entry else None

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def schedule(self, key: Hashable, payload: Any, delay: Optional[float] = None) -> None:
        """Replace any pending entry for `key` and restart its timer."""
        self.cancel(key)
        self._entries[key] = _Entry(payload, self._arm(key, self.delay if delay is None else delay))

    def cancel(self, key: Hashable) -> Any:
        """Drop the pending entry for `key`; returns its payload or None."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return None
        if entry.handle is not None:
            entry.handle.cancel()
        return entry.payload

    def rekey(self, old_key: Hashable, new_key: Hashable) -> bool:
        """
        Move a pending entry to a new key, keeping its remaining delay.

        An entry already waiting under `new_key` is newer and wins.
        """
        entry = self._entries.get(old_key)
        if entry is None:
            return False
        remaining = self.delay
        if entry.handle is not None:
            remaining = max(0.0, entry.handle.when() - asyncio.get_running_loop().time())
        self.cancel(old_key)
        if new_key in self._entries:
            return False
        self._entries[new_key] = _Entry(entry.payload, self._arm(new_key, remaining))
        return True

    async def flush(self) -> None:
        """Fire every pending entry now and wait for the resulting work."""
        for key in list(self._entries):
            self._fire(key)
        await self.drain()

    async def drain(self) -> None:
        """Wait until no callback task is running, including ones they start."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel every pending timer and wait for work already started."""
        for key in list(self._entries):
            self.cancel(key)
        await self.drain()

    def _arm(self, key: Hashable, delay: float) -> Optional[asyncio.TimerHandle]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        return loop.call_later(delay, self._fire, key)

    def _fire(self, key: Hashable) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        if entry.handle is not None:
            entry.handle.cancel()

        result = self._callback(key, entry.payload)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._in_flight.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("debounced_task_failed", error=repr(error))
