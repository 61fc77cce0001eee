"""
Pydantic models for notebase.

Contains the stored records (notes, folders, attachments), store change events,
and result models for search, statistics and the knowledge graph.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class Note(BaseModel):
    """A note record. Title and tags are derived from content by the store."""

    id: int
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    folder_id: int | None = None
    created_at: datetime
    updated_at: datetime


class Folder(BaseModel):
    """A folder record. ``parent_id`` is a plain key into the folder table."""

    id: int
    name: str
    parent_id: int | None = None
    created_at: datetime


class Attachment(BaseModel):
    """A binary attachment owned by a note."""

    id: int
    note_id: int
    name: str
    mime_type: str = "application/octet-stream"
    data: bytes = b""
    created_at: datetime


class NoteChange(BaseModel):
    """Committed note mutation, dispatched to store listeners."""

    kind: Literal["created", "updated", "deleted"]
    before: Note | None = None
    after: Note | None = None

    @property
    def title_changed(self) -> bool:
        if self.before is None or self.after is None:
            return True
        return self.before.title != self.after.title


class SearchResult(BaseModel):
    """Model for a search result."""

    id: int
    title: str
    snippet: str
    tags: list[str]
    folder_id: int | None = None
    updated_at: datetime


class GraphNode(BaseModel):
    """Model for a node in the knowledge graph."""

    id: str
    name: str
    node_type: Literal["note", "tag"]
    connections: int = 0


class GraphEdge(BaseModel):
    """Model for an edge in the knowledge graph."""

    source: str
    target: str
    kind: Literal["tag", "shared_tag", "link"]
