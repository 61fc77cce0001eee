"""
Tests for markdown import and export.
"""

import pytest
import yaml

from notebase.transfer import (
    export_attachment,
    export_note,
    import_markdown,
    read_attachment,
    read_markdown,
    render_markdown,
)
from notebase.utils import ContentValidationError, parse_frontmatter


class TestRenderMarkdown:
    """Tests for the render_markdown function."""

    async def test_frontmatter_fields(self, kb):
        """Test the rendered file starts with title, tags and timestamps."""
        note = await kb["store"].get_note(kb["plan_b"])

        rendered = render_markdown(note)
        frontmatter, body = parse_frontmatter(rendered)

        assert rendered.startswith("---\n")
        assert frontmatter["title"] == "Plan B"
        assert frontmatter["tags"] == ["project", "backup"]
        assert frontmatter["created"] == note.created_at.isoformat()
        assert body.startswith("# Plan B")

    async def test_existing_frontmatter_kept(self, store):
        """Test unrelated keys of the note's own frontmatter survive."""
        note_id = await store.create_note("---\nstatus: draft\ntags: [old]\n---\n# Body #fresh")
        note = await store.get_note(note_id)

        frontmatter, body = parse_frontmatter(render_markdown(note))

        assert frontmatter["status"] == "draft"
        assert frontmatter["tags"] == ["old", "fresh"]
        assert body.strip() == "# Body #fresh"


class TestExport:
    """Tests for writing notes and attachments to disk."""

    async def test_export_note(self, kb, tmp_path):
        """Test a note is written as <title>.md."""
        note = await kb["store"].get_note(kb["plan_b"])

        path = await export_note(note, tmp_path / "out")

        assert path.name == "Plan_B.md"
        text = path.read_text(encoding="utf-8")
        assert yaml.safe_load(text.split("---")[1])["title"] == "Plan B"
        assert "[[Plan]]" in text

    async def test_export_name_collision(self, kb, tmp_path):
        """Test a second note with the same file stem gets its id appended."""
        store = kb["store"]
        twin_id = await store.create_note("# Plan")
        await export_note(await store.get_note(kb["plan"]), tmp_path)

        path = await export_note(await store.get_note(twin_id), tmp_path)

        assert path.name == f"Plan_{twin_id}.md"

    async def test_export_attachment(self, kb, tmp_path):
        """Test attachment bytes are written unchanged."""
        store = kb["store"]
        attachment_id = await store.create_attachment(kb["plan"], "chart data.png", "image/png", b"\x89PNG\x00")
        attachment = await store.get_attachment(attachment_id)

        path = await export_attachment(attachment, tmp_path)

        assert path.name == "chart_data.png"
        assert path.read_bytes() == b"\x89PNG\x00"


class TestImport:
    """Tests for reading markdown files into notes."""

    async def test_import_markdown(self, store, tmp_path):
        """Test a markdown file becomes a note with derived title and tags."""
        path = tmp_path / "idea.md"
        path.write_text("# Imported Idea\n\nLinks to [[Plan]]. #inbox", encoding="utf-8")
        folder_id = await store.create_folder("Inbox")

        note_id = await import_markdown(store, path, folder_id)
        note = await store.get_note(note_id)

        assert note.title == "Imported Idea"
        assert note.tags == ["inbox"]
        assert note.folder_id == folder_id

    async def test_round_trip_keeps_title(self, kb, tmp_path):
        """Test an exported note imports back under the same title."""
        store = kb["store"]
        path = await export_note(await store.get_note(kb["journal"]), tmp_path)

        note_id = await import_markdown(store, path)

        assert (await store.get_note(note_id)).title == "Journal"

    async def test_rejects_non_markdown(self, tmp_path):
        """Test other file types are refused."""
        path = tmp_path / "image.png"
        path.write_bytes(b"\x89PNG")

        with pytest.raises(ValueError):
            await read_markdown(path)

    async def test_rejects_oversized(self, tmp_path, monkeypatch):
        """Test the content size limit applies to imports."""
        from notebase.config import settings

        monkeypatch.setattr(settings, "max_content_size", 5)
        path = tmp_path / "big.md"
        path.write_text("too large", encoding="utf-8")

        with pytest.raises(ContentValidationError):
            await read_markdown(path)

    async def test_read_attachment_guesses_type(self, tmp_path):
        """Test attachment files are read as bytes with a guessed or given MIME type."""
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"%PDF-1.7")
        unknown = tmp_path / "blob.zzzunknown"
        unknown.write_bytes(b"\x00")

        assert await read_attachment(path) == ("scan.pdf", "application/pdf", b"%PDF-1.7")
        assert (await read_attachment(path, "application/x-scan"))[1] == "application/x-scan"
        assert (await read_attachment(unknown))[1] == "application/octet-stream"
