"""
MCP Tools module for notebase.

Contains the MCP tool handlers (list_tools and call_tool) over one
process-wide KnowledgeSession.
"""

import json
from pathlib import Path
from typing import Any

import structlog
from mcp.server import Server
from mcp.types import (
    Resource,
    TextContent,
    Tool,
)

from .config import settings
from .graph import build_graph
from .search import explore_by_tag, get_stats, search_with_snippets
from .session import KnowledgeSession
from .store import RecordStore
from .transfer import export_attachment, export_note, import_markdown, read_attachment
from .utils import NotFoundError, StoreError, truncate

logger = structlog.get_logger(__name__)

# Initialize server
server = Server("notebase")

_session: KnowledgeSession | None = None


async def get_session() -> KnowledgeSession:
    """Return the process-wide session, opening the store on first use."""
    global _session
    if _session is None:
        store = RecordStore(settings.data_path)
        await store.ensure_default_folder()
        _session = KnowledgeSession(store)
        logger.info("session_opened", data_path=str(settings.data_path))
    return _session


def set_session(session: KnowledgeSession | None) -> None:
    """Install (or clear) the process-wide session."""
    global _session
    _session = session


def _text(output: str) -> list[TextContent]:
    return [TextContent(type="text", text=output)]


def _note_id_schema(description: str) -> dict:
    return {"type": "integer", "description": description}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="note_create",
            description="Create a note. The first line becomes the title; #tags and [[Wiki Links]] are picked up from the content.",
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {"type": "string", "description": "Markdown content of the note"},
                    "folder_id": _note_id_schema("Optional folder to create the note in"),
                },
                "required": ["content"]
            }
        ),
        Tool(
            name="note_read",
            description="Read a note by id, with its resolved outgoing links and its backlinks.",
            inputSchema={
                "type": "object",
                "properties": {"note_id": _note_id_schema("Id of the note")},
                "required": ["note_id"]
            }
        ),
        Tool(
            name="note_update",
            description="Replace the content of a note. Title and tags are re-derived from the new content.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": _note_id_schema("Id of the note"),
                    "content": {"type": "string", "description": "New markdown content"},
                },
                "required": ["note_id", "content"]
            }
        ),
        Tool(
            name="note_delete",
            description="Delete a note and its attachments.",
            inputSchema={
                "type": "object",
                "properties": {"note_id": _note_id_schema("Id of the note")},
                "required": ["note_id"]
            }
        ),
        Tool(
            name="note_search",
            description="Find notes whose title, content or tags contain the query (case-insensitive substring match).",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Text to look for"},
                    "max_results": {
                        "type": "integer",
                        "description": "Maximum number of results (default: 10)",
                        "default": 10
                    }
                },
                "required": ["query"]
            }
        ),
        Tool(
            name="note_backlinks",
            description="List the notes that link to a note with [[its exact title]].",
            inputSchema={
                "type": "object",
                "properties": {"note_id": _note_id_schema("Id of the note")},
                "required": ["note_id"]
            }
        ),
        Tool(
            name="note_resolve_link",
            description="Resolve wiki-link text to notes: exact title matches win, otherwise titles containing the text.",
            inputSchema={
                "type": "object",
                "properties": {
                    "reference": {"type": "string", "description": "Text between [[ and ]]"}
                },
                "required": ["reference"]
            }
        ),
        Tool(
            name="note_list_tag",
            description="List notes carrying a tag.",
            inputSchema={
                "type": "object",
                "properties": {
                    "tag": {"type": "string", "description": "Tag to look for (with or without #)"}
                },
                "required": ["tag"]
            }
        ),
        Tool(
            name="note_export",
            description="Export a note as markdown with YAML frontmatter, together with its attachments, into a directory.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": _note_id_schema("Id of the note"),
                    "directory": {"type": "string", "description": "Directory to write the files to"},
                },
                "required": ["note_id", "directory"]
            }
        ),
        Tool(
            name="note_import",
            description="Create a note from a markdown file.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path of the .md file"},
                    "folder_id": _note_id_schema("Optional folder to create the note in"),
                },
                "required": ["path"]
            }
        ),
        Tool(
            name="attachment_upload",
            description="Attach a file to a note.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": _note_id_schema("Id of the note"),
                    "path": {"type": "string", "description": "Path of the file to attach"},
                    "mime_type": {"type": "string", "description": "MIME type (guessed from the file name if omitted)"},
                },
                "required": ["note_id", "path"]
            }
        ),
        Tool(
            name="attachment_list",
            description="List the attachments of a note.",
            inputSchema={
                "type": "object",
                "properties": {"note_id": _note_id_schema("Id of the note")},
                "required": ["note_id"]
            }
        ),
        Tool(
            name="attachment_delete",
            description="Delete an attachment.",
            inputSchema={
                "type": "object",
                "properties": {"attachment_id": _note_id_schema("Id of the attachment")},
                "required": ["attachment_id"]
            }
        ),
        Tool(
            name="folder_create",
            description="Create a folder, optionally inside another folder.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Folder name"},
                    "parent_id": _note_id_schema("Optional parent folder id"),
                },
                "required": ["name"]
            }
        ),
        Tool(
            name="folder_delete",
            description="Delete a folder with all its subfolders, their notes and attachments.",
            inputSchema={
                "type": "object",
                "properties": {"folder_id": _note_id_schema("Id of the folder")},
                "required": ["folder_id"]
            }
        ),
        Tool(
            name="knowledge_graph",
            description="Graph of notes, tags and wiki links as JSON with nodes[], edges[], orphans[] and stats.",
            inputSchema={"type": "object", "properties": {}}
        ),
        Tool(
            name="knowledge_stats",
            description="Statistics about the knowledge base (notes, folders, tags, recent notes).",
            inputSchema={"type": "object", "properties": {}}
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    session = await get_session()
    try:
        return await _dispatch(session, name, arguments)
    except (StoreError, NotFoundError, ValueError, OSError) as e:
        logger.warning("tool_failed", tool=name, error=str(e))
        return _text(f"Error: {e}")


async def _dispatch(session: KnowledgeSession, name: str, arguments: dict[str, Any]) -> list[TextContent]:
    store = session.store

    if name == "note_create":
        note_id = await session.create_note(arguments.get("content", ""), arguments.get("folder_id"))
        note = await store.get_note(note_id)
        return _text(f"Created note {note_id}: **{note.title}**\nTags: {', '.join(note.tags) or 'none'}")

    elif name == "note_read":
        note_id = arguments.get("note_id")
        note = await store.get_note(note_id)
        if note is None:
            return _text(f"Note not found: {note_id}")

        session.select_note(note)
        await session.wait_idle()

        output = f"# {note.title}\n\n"
        output += f"**Id:** {note.id}\n"
        output += f"**Tags:** {', '.join(note.tags) or 'none'}\n"
        output += f"**Updated:** {note.updated_at.isoformat()}\n"
        if session.link_targets:
            output += "**Links:**\n"
            for reference, target in session.link_targets.items():
                if target is None:
                    output += f"- [[{reference}]] (no matching note)\n"
                else:
                    output += f"- [[{reference}]] -> {target.title} ({target.id})\n"
        if session.backlinks:
            output += "**Backlinks:** " + ", ".join(f"{b.title} ({b.id})" for b in session.backlinks) + "\n"
        output += "\n---\n\n"
        output += note.content
        return _text(output)

    elif name == "note_update":
        saved = await session.save_note(arguments.get("note_id"), arguments.get("content", ""))
        return _text(f"Saved note {saved.id}: **{saved.title}**\nTags: {', '.join(saved.tags) or 'none'}")

    elif name == "note_delete":
        note_id = arguments.get("note_id")
        await session.delete_note(note_id)
        return _text(f"Deleted note {note_id}")

    elif name == "note_search":
        query = arguments.get("query", "")
        max_results = arguments.get("max_results", 10)
        results = await search_with_snippets(store, query, max_results)

        if not results:
            return _text(f"No notes found for query: '{query}'")

        output = f"Found {len(results)} notes for '{query}':\n\n"
        for r in results:
            output += f"**{r.title}** ({r.id})\n"
            output += f"  Tags: {', '.join(r.tags[:3]) or 'none'}\n"
            output += f"  {r.snippet}\n\n"
        return _text(output)

    elif name == "note_backlinks":
        note_id = arguments.get("note_id")
        target = await store.get_note(note_id)
        backlinks = await session.backlink_index.find_backlinks_for(note_id)

        if not backlinks:
            return _text(f"No backlinks found for note {note_id}")

        output = f"Found {len(backlinks)} notes linking to '{target.title}':\n\n"
        for b in backlinks:
            output += f"- **{b.title}** ({b.id})\n"
        return _text(output)

    elif name == "note_resolve_link":
        reference = arguments.get("reference", "")
        matches = await session.resolver.resolve(reference)

        if not matches:
            return _text(f"[[{reference}]] does not resolve to any note")

        output = f"[[{reference}]] resolves to {len(matches)} note(s):\n\n"
        for m in matches:
            output += f"- **{m.title}** ({m.id})\n"
        return _text(output)

    elif name == "note_list_tag":
        tag = arguments.get("tag", "")
        notes = await explore_by_tag(store, tag)

        if not notes:
            return _text(f"No notes found with tag: '{tag}'")

        output = f"Found {len(notes)} notes with tag '#{tag.lstrip('#')}':\n\n"
        for n in notes:
            output += f"- **{n.title}** ({n.id}) {truncate(n.content.replace(chr(10), ' '), 80)}\n"
        return _text(output)

    elif name == "note_export":
        note_id = arguments.get("note_id")
        note = await store.get_note(note_id)
        if note is None:
            return _text(f"Note not found: {note_id}")

        directory = Path(arguments.get("directory", "")).expanduser()
        paths = [await export_note(note, directory)]
        for attachment in await store.list_attachments_by_note(note_id):
            paths.append(await export_attachment(attachment, directory))

        output = f"Exported **{note.title}** to {directory}:\n\n"
        for path in paths:
            output += f"- {path.name}\n"
        return _text(output)

    elif name == "note_import":
        path = Path(arguments.get("path", "")).expanduser()
        note_id = await import_markdown(store, path, arguments.get("folder_id"))
        note = await store.get_note(note_id)
        return _text(f"Imported {path.name} as note {note_id}: **{note.title}**")

    elif name == "attachment_upload":
        note_id = arguments.get("note_id")
        path = Path(arguments.get("path", "")).expanduser()
        file_name, mime_type, data = await read_attachment(path, arguments.get("mime_type"))
        attachment_id = await session.upload_attachment(note_id, file_name, mime_type, data)
        return _text(f"Attached {file_name} ({mime_type}, {len(data)} bytes) to note {note_id} as attachment {attachment_id}")

    elif name == "attachment_list":
        note_id = arguments.get("note_id")
        attachments = await session.load_attachments(note_id)

        if not attachments:
            return _text(f"No attachments for note {note_id}")

        output = f"Found {len(attachments)} attachments for note {note_id}:\n\n"
        for a in attachments:
            output += f"- **{a.name}** ({a.id}) {a.mime_type}, {len(a.data)} bytes\n"
        return _text(output)

    elif name == "attachment_delete":
        attachment_id = arguments.get("attachment_id")
        await session.delete_attachment(attachment_id)
        return _text(f"Deleted attachment {attachment_id}")

    elif name == "folder_create":
        folder_id = await session.create_folder(arguments.get("name", ""), arguments.get("parent_id"))
        return _text(f"Created folder {folder_id}")

    elif name == "folder_delete":
        folder_id = arguments.get("folder_id")
        await session.delete_folder(folder_id)
        return _text(f"Deleted folder {folder_id} with its subfolders and notes")

    elif name == "knowledge_graph":
        result = await build_graph(store, session.resolver)
        return _text(json.dumps(result, indent=2))

    elif name == "knowledge_stats":
        stats = await get_stats(store)

        output = "# Knowledge Base Statistics\n\n"
        output += f"**Total Notes:** {stats['total_notes']}\n"
        output += f"**Total Folders:** {stats['total_folders']}\n"
        output += f"**Total Words:** {stats['total_words']:,}\n\n"

        output += "## By Folder\n"
        for f, count in sorted(stats['by_folder'].items(), key=lambda x: x[1], reverse=True)[:10]:
            output += f"- {f}: {count}\n"

        output += "\n## Top Tags\n"
        for tag, count in stats['top_tags'][:15]:
            output += f"- #{tag}: {count}\n"

        output += "\n## Recent Notes\n"
        for note in stats['recent_notes']:
            output += f"- {note['title']}\n"
        return _text(output)

    return _text(f"Unknown tool: {name}")


# ============== Resources ==============

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="notebase://stats",
            name="Knowledge Base Statistics",
            description="Statistics about the knowledge base",
            mimeType="application/json"
        ),
    ]


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read a resource."""
    if str(uri) == "notebase://stats":
        session = await get_session()
        stats = await get_stats(session.store)
        return json.dumps(stats, indent=2)

    return json.dumps({"error": f"Unknown resource: {uri}"})
