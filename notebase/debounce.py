"""
Debounced note saving for notebase.

Contains the DebouncedSaver class. Rapid edits to one note collapse into a
single write of the latest content once the note has been quiet for
``delay`` seconds.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from .utils import NotFoundError

logger = structlog.get_logger(__name__)

SaveCallback = Callable[[int, str], Awaitable[object]]


class DebouncedSaver:
    """Per-note debounce timers in front of a save coroutine.

    Only the sleeping part of a timer is ever cancelled. Once a timer fires
    it leaves ``_timers`` before committing, so a new edit starts a fresh
    timer instead of interrupting a write that is already in flight.
    Serializing writes for one note is the save callback's job.

    Content whose save fails goes back to pending, unless a newer edit of the
    note has been made since, and is retried by the next flush.
    """

    def __init__(self, save: SaveCallback, delay: float):
        self._save = save
        self.delay = delay
        self._pending: dict[int, str] = {}
        self._edits: dict[int, int] = {}
        self._timers: dict[int, asyncio.Task] = {}
        self._running: set[asyncio.Task] = set()

    def pending(self, note_id: int) -> str | None:
        """Content waiting to be saved for ``note_id``, if any."""
        return self._pending.get(note_id)

    def schedule(self, note_id: int, content: str) -> None:
        """Record ``content`` as the latest edit and restart the note's timer."""
        self._pending[note_id] = content
        self._edits[note_id] = self._edits.get(note_id, 0) + 1
        timer = self._timers.pop(note_id, None)
        if timer is not None:
            timer.cancel()
        task = asyncio.get_running_loop().create_task(self._wait_then_save(note_id))
        self._timers[note_id] = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    def cancel(self, note_id: int) -> None:
        """Forget a pending edit without saving it."""
        timer = self._timers.pop(note_id, None)
        if timer is not None:
            timer.cancel()
        self._pending.pop(note_id, None)
        self._edits.pop(note_id, None)

    async def _wait_then_save(self, note_id: int) -> None:
        await asyncio.sleep(self.delay)
        self._timers.pop(note_id, None)
        await self._commit(note_id)

    async def _commit(self, note_id: int) -> None:
        content = self._pending.pop(note_id, None)
        if content is None:
            return
        edit = self._edits.get(note_id)
        try:
            await self._save(note_id, content)
        except NotFoundError as e:
            logger.warning("debounced_save_dropped", note_id=note_id, error=str(e))
        except Exception as e:
            if self._edits.get(note_id) == edit:
                self._pending.setdefault(note_id, content)
            logger.warning("debounced_save_failed", note_id=note_id, error=str(e))
            return
        if self._edits.get(note_id) == edit and note_id not in self._pending:
            self._edits.pop(note_id, None)

    async def flush(self, note_id: int | None = None) -> None:
        """Save pending edits now instead of waiting for their timers."""
        note_ids = [note_id] if note_id is not None else list(self._pending)
        for nid in note_ids:
            timer = self._timers.pop(nid, None)
            if timer is not None:
                timer.cancel()
            await self._commit(nid)
        await self.drain()

    async def drain(self) -> None:
        """Wait for every timer and in-flight save to finish."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
