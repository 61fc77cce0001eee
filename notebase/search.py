"""
Search and statistics functions for notebase.

Matching is plain case-insensitive substring matching over title, content and
tags; results keep the store's most-recently-updated-first order.
"""

import structlog

from .models import Note, SearchResult

logger = structlog.get_logger(__name__)

SNIPPET_BEFORE = 50
SNIPPET_AFTER = 150


def note_matches(note: Note, query_lower: str) -> bool:
    """True when the lowercased query occurs in the note's title, content or tags."""
    return (
        query_lower in note.title.lower()
        or query_lower in note.content.lower()
        or any(query_lower in tag for tag in note.tags)
    )


def make_snippet(content: str, query_lower: str) -> str:
    """Extract a one-line excerpt around the first occurrence of the query."""
    idx = content.lower().find(query_lower) if query_lower else -1
    if idx >= 0:
        start = max(0, idx - SNIPPET_BEFORE)
        end = min(len(content), idx + SNIPPET_AFTER)
        return "..." + content[start:end].replace("\n", " ") + "..."
    return content[:200].replace("\n", " ") + ("..." if len(content) > 200 else "")


async def search_notes(store, query: str) -> list[Note]:
    """Notes matching ``query``, most recently updated first.

    A blank query returns every note.
    """
    query_lower = query.strip().lower()
    notes = await store.list_all_notes()
    if not query_lower:
        return notes

    results = [note for note in notes if note_matches(note, query_lower)]
    logger.debug("search_completed", query=query, results=len(results))
    return results


async def search_with_snippets(store, query: str, max_results: int = 10) -> list[SearchResult]:
    """Search results with an excerpt, for listing views."""
    query_lower = query.strip().lower()
    if not query_lower:
        return []

    return [
        SearchResult(
            id=note.id,
            title=note.title,
            snippet=make_snippet(note.content, query_lower),
            tags=note.tags,
            folder_id=note.folder_id,
            updated_at=note.updated_at,
        )
        for note in (await search_notes(store, query))[:max_results]
    ]


async def explore_by_tag(store, tag: str) -> list[Note]:
    """Notes carrying exactly ``tag`` (``#`` optional, any case), most recent first."""
    tag_lower = tag.strip().lstrip("#").lower()
    if not tag_lower:
        return []
    return await store.query_notes_by_tag(tag_lower)


async def get_stats(store, recent: int = 10) -> dict:
    """Get statistics about the knowledge base."""
    notes = await store.list_all_notes()
    folders = await store.list_folders()

    tag_counts: dict[str, int] = {}
    by_folder: dict[str, int] = {}
    folder_names = {f.id: f.name for f in folders}
    total_words = 0

    for note in notes:
        total_words += len(note.content.split())
        for tag in note.tags:
            tag_counts[tag] = tag_counts.get(tag, 0) + 1
        folder = folder_names.get(note.folder_id, "root")
        by_folder[folder] = by_folder.get(folder, 0) + 1

    return {
        "total_notes": len(notes),
        "total_folders": len(folders),
        "total_words": total_words,
        "by_folder": by_folder,
        "tags": tag_counts,
        "top_tags": sorted(tag_counts.items(), key=lambda x: x[1], reverse=True)[:20],
        "recent_notes": [{"id": n.id, "title": n.title} for n in notes[:recent]],
    }
