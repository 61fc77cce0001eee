"""
Wiki-link resolution for notebase.

Contains the LinkResolver class, which maps ``[[Reference]]`` text to notes by
title: exact (case-insensitive) matches win outright, otherwise every note
whose title contains the reference. Results are memoized in a
ResolutionCache that follows the store's note change events.
"""

from typing import Protocol

import structlog

from .cache import ResolutionCache
from .models import Note, NoteChange
from .utils import StoreError, normalize_title

logger = structlog.get_logger(__name__)


class TitleLookup(Protocol):
    """The part of the record store the resolver depends on."""

    async def query_notes_by_title_exact(self, title: str) -> list[Note]: ...

    async def query_notes_by_title_contains(self, text: str) -> list[Note]: ...


class LinkResolver:
    """Resolve reference text to notes, with a coherent memo cache.

    When the lookup object supports ``add_listener`` (the RecordStore does),
    the resolver subscribes to note changes and invalidates affected cache
    entries as soon as a create, update or delete commits.
    """

    def __init__(self, store: TitleLookup):
        self.store = store
        self.cache = ResolutionCache()
        self._subscribed = False
        add_listener = getattr(store, "add_listener", None)
        if add_listener is not None:
            add_listener(self.on_note_change)
            self._subscribed = True

    def close(self) -> None:
        """Stop following store changes."""
        if self._subscribed:
            self.store.remove_listener(self.on_note_change)
            self._subscribed = False

    def on_note_change(self, change: NoteChange) -> None:
        if change.kind == "created":
            self.cache.invalidate_title(change.after.title)
        elif change.kind == "deleted":
            self.cache.invalidate_note(change.before.id)
            self.cache.invalidate_title(change.before.title)
        else:
            # Cached results hold note snapshots, so any write to a cached
            # note drops it; a rename also affects keys matching either title.
            self.cache.invalidate_note(change.before.id)
            if change.title_changed:
                self.cache.invalidate_title(change.before.title)
                self.cache.invalidate_title(change.after.title)

    def invalidate(self, reference: str | None = None) -> None:
        self.cache.invalidate(reference)

    async def resolve(self, reference: str) -> list[Note]:
        """Return the notes ``reference`` points at, best matches only.

        Never raises: a store failure is logged and resolves to an empty list,
        which is not cached.
        """
        normalized = normalize_title(reference)
        if not normalized:
            return []

        cached = self.cache.get(normalized)
        if cached is not None:
            return cached

        epoch = self.cache.epoch
        try:
            matches = await self.store.query_notes_by_title_exact(normalized)
            if not matches:
                matches = await self.store.query_notes_by_title_contains(normalized)
        except StoreError as e:
            logger.warning("resolution_failed", reference=reference, error=str(e))
            return []

        self.cache.put(normalized, matches, epoch)
        logger.debug("reference_resolved", reference=reference, matches=len(matches))
        return list(matches)

    async def find_first_match(self, reference: str) -> Note | None:
        """First resolved note, or None when the link is a stub."""
        matches = await self.resolve(reference)
        return matches[0] if matches else None
