"""
Import and export for notebase.

Notes are exported as markdown files with YAML frontmatter (title, tags,
created, updated); attachments as their raw bytes. Importing a markdown file
creates a note whose content is the file text; any file can be read in as an
attachment.
"""

import mimetypes
from pathlib import Path

import aiofiles
import structlog
import yaml

from .models import Attachment, Note
from .utils import parse_frontmatter, safe_filename, validate_content_size

logger = structlog.get_logger(__name__)

MARKDOWN_SUFFIXES = {".md", ".markdown"}


def render_markdown(note: Note) -> str:
    """Render a note as markdown with YAML frontmatter.

    Keys already present in the note's own frontmatter are kept; title, tags
    and timestamps are refreshed from the record.
    """
    frontmatter, body = parse_frontmatter(note.content)
    frontmatter.update({
        "title": note.title,
        "tags": list(note.tags),
        "created": note.created_at.isoformat(),
        "updated": note.updated_at.isoformat(),
    })
    yaml_content = yaml.dump(frontmatter, allow_unicode=True, default_flow_style=False, sort_keys=False)
    return f"---\n{yaml_content}---\n\n{body.lstrip()}"


def _unique_path(directory: Path, stem: str, suffix: str, record_id: int) -> Path:
    path = directory / f"{stem}{suffix}"
    if path.exists():
        path = directory / f"{stem}_{record_id}{suffix}"
    return path


async def export_note(note: Note, directory: Path) -> Path:
    """Write ``note`` to ``directory`` as a markdown file and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = _unique_path(directory, safe_filename(note.title), ".md", note.id)

    async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
        await f.write(render_markdown(note))

    logger.info("note_exported", note_id=note.id, path=str(path))
    return path


async def export_attachment(attachment: Attachment, directory: Path) -> Path:
    """Write the attachment bytes to ``directory`` under its own name."""
    directory.mkdir(parents=True, exist_ok=True)
    name = Path(attachment.name)
    path = _unique_path(directory, safe_filename(name.stem), name.suffix, attachment.id)

    async with aiofiles.open(path, mode="wb") as f:
        await f.write(attachment.data)

    logger.info("attachment_exported", attachment_id=attachment.id, path=str(path))
    return path


async def read_markdown(path: Path) -> str:
    """Read a markdown file as note content.

    Raises:
        ValueError: If the file is not markdown
        ContentValidationError: If the file exceeds the content size limit
    """
    if path.suffix.lower() not in MARKDOWN_SUFFIXES:
        raise ValueError(f"Not a markdown file: {path.name}")

    async with aiofiles.open(path, encoding="utf-8") as f:
        content = await f.read()

    return validate_content_size(content)


async def read_attachment(path: Path, mime_type: str | None = None) -> tuple[str, str, bytes]:
    """Read a file to attach: its name, MIME type (guessed from the name when not given) and bytes."""
    async with aiofiles.open(path, mode="rb") as f:
        data = await f.read()

    if not mime_type:
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return path.name, mime_type, data


async def import_markdown(store, path: Path, folder_id: int | None = None) -> int:
    """Create a note from a markdown file and return the new note id."""
    content = await read_markdown(path)
    note_id = await store.create_note(content, folder_id)
    logger.info("note_imported", note_id=note_id, path=str(path))
    return note_id
