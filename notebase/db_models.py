"""SQLAlchemy database models for notebase."""
from datetime import timezone
from pathlib import Path

from sqlalchemy import (Column, DateTime, ForeignKey, Integer, LargeBinary, String,
                        Text, create_engine, event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

# Create base class for SQLAlchemy models
Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on top of SQLite's naive DATETIME."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        return value.replace(tzinfo=timezone.utc) if value is not None else None


class DBFolder(Base):
    """Database model for a folder."""
    __tablename__ = "folders"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    parent_id = Column(Integer, ForeignKey("folders.id"), nullable=True, index=True)
    created_at = Column(UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name='{self.name}')>"


class DBNote(Base):
    """Database model for a note.

    ``title_key`` is the normalized title used by the title lookups.
    """
    __tablename__ = "notes"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(1024), nullable=False)
    title_key = Column(String(1024), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    folder_id = Column(Integer, ForeignKey("folders.id"), nullable=True, index=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title='{self.title}')>"


class DBNoteTag(Base):
    """A tag on a note; ``position`` keeps first-occurrence order."""
    __tablename__ = "note_tags"
    note_id = Column(Integer, ForeignKey("notes.id"), primary_key=True)
    tag = Column(String(255), primary_key=True, index=True)
    position = Column(Integer, nullable=False)


class DBAttachment(Base):
    """Database model for a file attached to a note."""
    __tablename__ = "attachments"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(Integer, ForeignKey("notes.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    data = Column(LargeBinary, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<Attachment(id={self.id}, note_id={self.note_id}, name='{self.name}')>"


def init_db(path: Path | None = None) -> Engine:
    """Create the engine and the tables.

    ``path=None`` gives a private in-memory database. A single shared
    connection keeps it alive for the engine's lifetime.
    """
    if path is None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(f"sqlite:///{path}")

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker:
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)
