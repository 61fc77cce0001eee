"""
Link resolution cache for notebase.

Contains the ResolutionCache class: memoized reference -> notes results with
explicit invalidation. The map is private; callers only look up, store and
invalidate.
"""

import structlog

from .models import Note
from .utils import normalize_title

logger = structlog.get_logger(__name__)


class ResolutionCache:
    """Memo of resolved references, keyed by normalized reference text.

    Every invalidation advances ``epoch``. A resolution records the epoch
    before it queries the store and passes it back to :meth:`put`; if any
    invalidation happened in between, the result is dropped instead of
    being cached.
    """

    def __init__(self):
        self._entries: dict[str, list[Note]] = {}
        self._epoch = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, reference: str) -> bool:
        return normalize_title(reference) in self._entries

    def get(self, reference: str) -> list[Note] | None:
        """Return a copy of the cached result, or None on a miss."""
        entry = self._entries.get(normalize_title(reference))
        if entry is None:
            return None
        return list(entry)

    def put(self, reference: str, notes: list[Note], epoch: int) -> bool:
        """Cache ``notes`` unless the cache was invalidated since ``epoch``."""
        if epoch != self._epoch:
            logger.debug("cache_put_discarded", reference=reference)
            return False
        self._entries[normalize_title(reference)] = list(notes)
        return True

    def invalidate(self, reference: str | None = None) -> None:
        """Drop one entry, or everything when no reference is given."""
        self._epoch += 1
        if reference is None:
            self._entries.clear()
            logger.debug("cache_cleared")
        else:
            self._entries.pop(normalize_title(reference), None)

    def invalidate_title(self, title: str) -> int:
        """Drop every entry whose result depends on a note titled ``title``.

        A key can match a title exactly or as a substring, so every key that
        is contained in the normalized title goes.
        """
        self._epoch += 1
        normalized = normalize_title(title)
        stale = [key for key in self._entries if key in normalized]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("cache_invalidated", title=title, keys=len(stale))
        return len(stale)

    def invalidate_note(self, note_id: int) -> int:
        """Drop every entry whose cached result contains the note."""
        self._epoch += 1
        stale = [
            key for key, notes in self._entries.items()
            if any(note.id == note_id for note in notes)
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("cache_invalidated", note_id=note_id, keys=len(stale))
        return len(stale)
