"""
Backlink computation for notebase.

A note B is a backlink of note A when B's content holds a ``[[...]]``
reference whose normalized text equals A's normalized title. Only exact title
matches count; the substring fallback used for forward resolution does not.
Backlinks are computed by a full scan, nothing is persisted.
"""

import structlog

from .models import Note
from .scanner import extract_wikilinks
from .utils import normalize_title

logger = structlog.get_logger(__name__)


def links_to(source: Note, normalized_title: str) -> bool:
    """True when ``source`` holds a reference naming ``normalized_title``."""
    return any(
        normalize_title(reference) == normalized_title
        for reference in extract_wikilinks(source.content)
    )


class BacklinkIndex:
    """Reverse-scan backlink lookups over a record store."""

    def __init__(self, store):
        self.store = store

    async def find_backlinks(self, target: Note) -> list[Note]:
        """Notes referencing ``target`` by its exact title, most recent first."""
        normalized_title = normalize_title(target.title)
        notes = await self.store.list_all_notes()
        backlinks = [
            note for note in notes
            if note.id != target.id and links_to(note, normalized_title)
        ]
        logger.debug("backlinks_computed", note_id=target.id, count=len(backlinks))
        return backlinks

    async def find_backlinks_for(self, note_id: int) -> list[Note]:
        """Backlinks by note id. A missing note has no backlinks."""
        target = await self.store.get_note(note_id)
        if target is None:
            return []
        return await self.find_backlinks(target)
