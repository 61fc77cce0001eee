"""
Record store for notebase.

Contains the RecordStore class: notes, folders and attachments kept in SQLite
through SQLAlchemy, with async CRUD, indexed lookups, all-or-nothing
transactions and note change events.
"""

import asyncio
import sqlite3
from collections.abc import Callable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .db_models import DBAttachment, DBFolder, DBNote, DBNoteTag, get_session_factory, init_db
from .models import Attachment, Folder, Note, NoteChange
from .scanner import extract_tags, extract_title
from .utils import (
    AttachmentNotFoundError,
    FolderCycleError,
    FolderNotFoundError,
    NoteNotFoundError,
    StoreError,
    normalize_title,
    validate_content_size,
    validate_folder_name,
)

logger = structlog.get_logger(__name__)

# Sentinel for "argument not given" where None is a meaningful value
UNSET: Any = object()

NoteListener = Callable[[NoteChange], None]

_RECENT_FIRST = (DBNote.updated_at.desc(), DBNote.id.desc())


class RecordStore:
    """SQLite-backed store for notes, folders and attachments.

    Every public method is a coroutine and runs under one ``asyncio.Lock``, so
    callers never interleave inside a database session. Mutations run inside
    :meth:`transaction`; anything raised in the block rolls the database
    transaction back.

    Records handed out are pydantic models detached from the database.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        try:
            self.engine = init_db(path)
        except (SQLAlchemyError, sqlite3.DatabaseError) as e:
            logger.error("store_open_failed", path=str(path), error=str(e))
            raise StoreError(f"Failed to open store: {e}") from e
        self.session_factory = get_session_factory(self.engine)
        self._lock = asyncio.Lock()
        self._listeners: list[NoteListener] = []
        self._changes: list[NoteChange] = []
        self._last_timestamp: datetime | None = None
        logger.info("store_opened", path=str(path) if path else ":memory:")

    def close(self) -> None:
        """Release the database connections."""
        self.engine.dispose()

    # ============== Transactions ==============

    @asynccontextmanager
    async def transaction(self):
        """Run a block of mutations atomically and yield its database session.

        Note change events are buffered and dispatched to listeners only after
        the commit succeeded.
        """
        async with self._lock:
            self._changes = []
            try:
                with self.session_factory() as session:
                    with session.begin():
                        yield session
            except SQLAlchemyError as e:
                self._changes = []
                logger.error("transaction_rolled_back", error=str(e))
                raise StoreError(f"Store write failed: {e}") from e
            except BaseException:
                self._changes = []
                logger.warning("transaction_rolled_back")
                raise
            changes, self._changes = self._changes, []
        self._dispatch(changes)

    @asynccontextmanager
    async def _reading(self):
        async with self._lock:
            try:
                with self.session_factory() as session:
                    yield session
            except SQLAlchemyError as e:
                logger.error("store_read_failed", error=str(e))
                raise StoreError(f"Store read failed: {e}") from e

    def _now(self) -> datetime:
        """Current UTC time, strictly increasing within this store."""
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    # ============== Listeners ==============

    def add_listener(self, listener: NoteListener) -> None:
        """Register a callback for committed note changes."""
        self._listeners.append(listener)

    def remove_listener(self, listener: NoteListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _dispatch(self, changes: list[NoteChange]) -> None:
        for change in changes:
            for listener in list(self._listeners):
                try:
                    listener(change)
                except Exception:
                    logger.exception("store_listener_failed", kind=change.kind)

    # ============== Row conversion ==============

    @staticmethod
    def _note_tags(session: Session, note_ids: list[int]) -> dict[int, list[str]]:
        tags: dict[int, list[str]] = {note_id: [] for note_id in note_ids}
        if note_ids:
            rows = session.execute(
                select(DBNoteTag.note_id, DBNoteTag.tag)
                .where(DBNoteTag.note_id.in_(note_ids))
                .order_by(DBNoteTag.note_id, DBNoteTag.position)
            )
            for note_id, tag in rows:
                tags[note_id].append(tag)
        return tags

    def _to_notes(self, session: Session, db_notes: Iterable[DBNote]) -> list[Note]:
        db_notes = list(db_notes)
        tags = self._note_tags(session, [n.id for n in db_notes])
        return [
            Note(
                id=n.id,
                title=n.title,
                content=n.content,
                tags=tags[n.id],
                folder_id=n.folder_id,
                created_at=n.created_at,
                updated_at=n.updated_at,
            )
            for n in db_notes
        ]

    def _to_note(self, session: Session, db_note: DBNote) -> Note:
        return self._to_notes(session, [db_note])[0]

    @staticmethod
    def _to_folder(db_folder: DBFolder) -> Folder:
        return Folder(
            id=db_folder.id,
            name=db_folder.name,
            parent_id=db_folder.parent_id,
            created_at=db_folder.created_at,
        )

    @staticmethod
    def _to_attachment(db_attachment: DBAttachment) -> Attachment:
        return Attachment(
            id=db_attachment.id,
            note_id=db_attachment.note_id,
            name=db_attachment.name,
            mime_type=db_attachment.mime_type,
            data=db_attachment.data,
            created_at=db_attachment.created_at,
        )

    # ============== Notes ==============

    async def create_note(self, content: str = "", folder_id: int | None = None) -> int:
        """Create a note and return its id. Title and tags come from ``content``."""
        validate_content_size(content)

        async with self.transaction() as session:
            if folder_id is not None and session.get(DBFolder, folder_id) is None:
                raise FolderNotFoundError(folder_id)

            now = self._now()
            title = extract_title(content)
            db_note = DBNote(
                title=title,
                title_key=normalize_title(title),
                content=content,
                folder_id=folder_id,
                created_at=now,
                updated_at=now,
            )
            session.add(db_note)
            session.flush()
            self._write_tags(session, db_note.id, extract_tags(content))
            note = self._to_note(session, db_note)
            self._changes.append(NoteChange(kind="created", after=note))

        logger.info("note_created", note_id=note.id, title=note.title)
        return note.id

    def _write_tags(self, session: Session, note_id: int, tags: list[str]) -> None:
        session.execute(delete(DBNoteTag).where(DBNoteTag.note_id == note_id))
        session.add_all(
            DBNoteTag(note_id=note_id, tag=tag, position=position)
            for position, tag in enumerate(tags)
        )

    async def get_note(self, note_id: int) -> Note | None:
        async with self._reading() as session:
            db_note = session.get(DBNote, note_id)
            return self._to_note(session, db_note) if db_note else None

    async def update_note(
        self,
        note_id: int,
        *,
        content: str | None = None,
        folder_id: int | None = UNSET,
    ) -> None:
        """Update a note's content and/or folder.

        A content write re-derives title and tags. Every write bumps
        ``updated_at``.
        """
        if content is None and folder_id is UNSET:
            return
        if content is not None:
            validate_content_size(content)

        async with self.transaction() as session:
            db_note = session.get(DBNote, note_id)
            if db_note is None:
                raise NoteNotFoundError(note_id)
            before = self._to_note(session, db_note)

            if folder_id is not UNSET:
                if folder_id is not None and session.get(DBFolder, folder_id) is None:
                    raise FolderNotFoundError(folder_id)
                db_note.folder_id = folder_id
            if content is not None:
                db_note.content = content
                db_note.title = extract_title(content)
                db_note.title_key = normalize_title(db_note.title)
                self._write_tags(session, note_id, extract_tags(content))
            db_note.updated_at = self._now()
            session.flush()

            after = self._to_note(session, db_note)
            self._changes.append(NoteChange(kind="updated", before=before, after=after))

        logger.debug("note_updated", note_id=note_id, title=after.title)

    async def delete_note(self, note_id: int) -> None:
        """Delete a note together with its attachments."""
        async with self.transaction() as session:
            if session.get(DBNote, note_id) is None:
                raise NoteNotFoundError(note_id)
            self._remove_notes(session, [note_id])

        logger.info("note_deleted", note_id=note_id)

    def _remove_notes(self, session: Session, note_ids: list[int]) -> None:
        """Delete notes with their tags and attachments, recording the changes."""
        if not note_ids:
            return
        db_notes = session.scalars(
            select(DBNote).where(DBNote.id.in_(note_ids)).order_by(DBNote.id)
        ).all()
        removed = self._to_notes(session, db_notes)

        session.execute(delete(DBAttachment).where(DBAttachment.note_id.in_(note_ids)))
        session.execute(delete(DBNoteTag).where(DBNoteTag.note_id.in_(note_ids)))
        session.execute(delete(DBNote).where(DBNote.id.in_(note_ids)))
        self._changes.extend(NoteChange(kind="deleted", before=note) for note in removed)

    async def _select_notes(self, *criteria, order_by=_RECENT_FIRST, join_tags: bool = False) -> list[Note]:
        statement = select(DBNote)
        if join_tags:
            statement = statement.join(DBNoteTag, DBNoteTag.note_id == DBNote.id)
        statement = statement.where(*criteria).order_by(*order_by)
        async with self._reading() as session:
            return self._to_notes(session, session.scalars(statement).all())

    async def list_all_notes(self) -> list[Note]:
        """All notes, most recently updated first."""
        return await self._select_notes()

    async def list_recent_notes(self, limit: int | None = None) -> list[Note]:
        limit = settings.recent_notes_limit if limit is None else limit
        statement = select(DBNote).order_by(*_RECENT_FIRST).limit(limit)
        async with self._reading() as session:
            return self._to_notes(session, session.scalars(statement).all())

    async def query_notes_by_title_exact(self, title: str) -> list[Note]:
        """Notes whose normalized title equals the normalized ``title`` (id order)."""
        wanted = normalize_title(title)
        return await self._select_notes(DBNote.title_key == wanted, order_by=(DBNote.id,))

    async def query_notes_by_title_contains(self, text: str) -> list[Note]:
        """Notes whose normalized title contains the normalized ``text`` (id order)."""
        wanted = normalize_title(text)
        return await self._select_notes(
            DBNote.title_key.contains(wanted, autoescape=True),
            order_by=(DBNote.id,),
        )

    async def query_notes_by_folder(self, folder_id: int | None) -> list[Note]:
        """Notes directly in ``folder_id`` (``None`` = no folder), most recent first."""
        if folder_id is None:
            return await self._select_notes(DBNote.folder_id.is_(None))
        return await self._select_notes(DBNote.folder_id == folder_id)

    async def query_notes_by_tag(self, tag: str) -> list[Note]:
        """Notes carrying ``tag`` (leading ``#`` optional), most recent first."""
        wanted = tag.strip().lstrip("#").lower()
        return await self._select_notes(DBNoteTag.tag == wanted, join_tags=True)

    # ============== Folders ==============

    async def create_folder(self, name: str, parent_id: int | None = None) -> int:
        name = validate_folder_name(name)

        async with self.transaction() as session:
            if parent_id is not None and session.get(DBFolder, parent_id) is None:
                raise FolderNotFoundError(parent_id)
            folder_id = self._insert_folder(session, name, parent_id)

        logger.info("folder_created", folder_id=folder_id, name=name, parent_id=parent_id)
        return folder_id

    def _insert_folder(self, session: Session, name: str, parent_id: int | None) -> int:
        db_folder = DBFolder(name=name, parent_id=parent_id, created_at=self._now())
        session.add(db_folder)
        session.flush()
        return db_folder.id

    async def ensure_default_folder(self) -> int | None:
        """Create the default folder when the store has none. Returns its id."""
        async with self.transaction() as session:
            if session.scalar(select(func.count()).select_from(DBFolder)):
                return None
            folder_id = self._insert_folder(session, settings.default_folder_name, None)

        logger.info("default_folder_created", folder_id=folder_id)
        return folder_id

    async def get_folder(self, folder_id: int) -> Folder | None:
        async with self._reading() as session:
            db_folder = session.get(DBFolder, folder_id)
            return self._to_folder(db_folder) if db_folder else None

    async def list_folders(self) -> list[Folder]:
        async with self._reading() as session:
            return [self._to_folder(f) for f in session.scalars(select(DBFolder).order_by(DBFolder.id))]

    async def get_child_folders(self, parent_id: int | None) -> list[Folder]:
        if parent_id is None:
            criterion = DBFolder.parent_id.is_(None)
        else:
            criterion = DBFolder.parent_id == parent_id
        async with self._reading() as session:
            statement = select(DBFolder).where(criterion).order_by(DBFolder.id)
            return [self._to_folder(f) for f in session.scalars(statement)]

    async def rename_folder(self, folder_id: int, name: str) -> None:
        name = validate_folder_name(name)

        async with self.transaction() as session:
            db_folder = session.get(DBFolder, folder_id)
            if db_folder is None:
                raise FolderNotFoundError(folder_id)
            db_folder.name = name

        logger.info("folder_renamed", folder_id=folder_id, name=name)

    async def move_folder(self, folder_id: int, parent_id: int | None) -> None:
        """Re-parent a folder. Refuses moves that would create a cycle."""
        async with self.transaction() as session:
            db_folder = session.get(DBFolder, folder_id)
            if db_folder is None:
                raise FolderNotFoundError(folder_id)
            if parent_id is not None:
                if session.get(DBFolder, parent_id) is None:
                    raise FolderNotFoundError(parent_id)
                if folder_id in self._ancestry(session, parent_id):
                    raise FolderCycleError(
                        f"Cannot move folder {folder_id} under its own descendant {parent_id}"
                    )
            db_folder.parent_id = parent_id

        logger.info("folder_moved", folder_id=folder_id, parent_id=parent_id)

    @staticmethod
    def _ancestry(session: Session, folder_id: int) -> list[int]:
        """``folder_id`` followed by its ancestors up to the root."""
        chain: list[int] = []
        current: int | None = folder_id
        while current is not None and current not in chain:
            chain.append(current)
            db_folder = session.get(DBFolder, current)
            current = db_folder.parent_id if db_folder else None
        return chain

    async def delete_folder(self, folder_id: int) -> None:
        """Delete a folder, its descendant folders, their notes and attachments.

        All or nothing: a failure anywhere in the cascade rolls everything back.
        """
        async with self.transaction() as session:
            if session.get(DBFolder, folder_id) is None:
                raise FolderNotFoundError(folder_id)
            removed_notes = self._delete_folder_tree(session, folder_id)

        logger.info("folder_deleted", folder_id=folder_id, notes_removed=removed_notes)

    def _delete_folder_tree(self, session: Session, folder_id: int) -> int:
        removed = 0
        child_ids = session.scalars(
            select(DBFolder.id).where(DBFolder.parent_id == folder_id)
        ).all()
        for child_id in child_ids:
            removed += self._delete_folder_tree(session, child_id)

        note_ids = list(session.scalars(select(DBNote.id).where(DBNote.folder_id == folder_id)))
        self._remove_notes(session, note_ids)

        self._remove_folder_row(session, folder_id)
        return removed + len(note_ids)

    def _remove_folder_row(self, session: Session, folder_id: int) -> None:
        session.execute(delete(DBFolder).where(DBFolder.id == folder_id))

    # ============== Attachments ==============

    async def create_attachment(
        self,
        note_id: int,
        name: str,
        mime_type: str,
        data: bytes,
    ) -> int:
        async with self.transaction() as session:
            if session.get(DBNote, note_id) is None:
                raise NoteNotFoundError(note_id)
            db_attachment = DBAttachment(
                note_id=note_id,
                name=name,
                mime_type=mime_type or "application/octet-stream",
                data=data,
                created_at=self._now(),
            )
            session.add(db_attachment)
            session.flush()
            attachment_id = db_attachment.id

        logger.info("attachment_created", attachment_id=attachment_id, note_id=note_id, size=len(data))
        return attachment_id

    async def get_attachment(self, attachment_id: int) -> Attachment | None:
        async with self._reading() as session:
            db_attachment = session.get(DBAttachment, attachment_id)
            return self._to_attachment(db_attachment) if db_attachment else None

    async def list_attachments_by_note(self, note_id: int) -> list[Attachment]:
        async with self._reading() as session:
            statement = (
                select(DBAttachment)
                .where(DBAttachment.note_id == note_id)
                .order_by(DBAttachment.id)
            )
            return [self._to_attachment(a) for a in session.scalars(statement)]

    async def delete_attachment(self, attachment_id: int) -> None:
        async with self.transaction() as session:
            db_attachment = session.get(DBAttachment, attachment_id)
            if db_attachment is None:
                raise AttachmentNotFoundError(attachment_id)
            session.delete(db_attachment)

        logger.info("attachment_deleted", attachment_id=attachment_id)
