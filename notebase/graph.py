"""
Graph functions for notebase.

Builds the knowledge graph: one node per note and per tag, with edges from
notes to their tags, between notes sharing a tag, and from notes to the notes
their wiki links resolve to.
"""

from .models import GraphEdge, GraphNode
from .resolver import LinkResolver
from .scanner import extract_wikilinks


def note_node_id(note_id: int) -> str:
    return f"note-{note_id}"


def tag_node_id(tag: str) -> str:
    return f"tag-{tag}"


async def build_graph(store, resolver: LinkResolver | None = None) -> dict:
    """Build a complete graph of all notes, tags and links.

    Args:
        store: The record store to read notes from
        resolver: Resolver used for wiki-link edges; a private one is used
            when not given

    Returns:
        dict with:
        - nodes: list of GraphNode as dicts
        - edges: list of GraphEdge as dicts
        - orphans: note nodes with no edges at all
        - stats: global graph statistics
    """
    own_resolver = resolver is None
    if own_resolver:
        resolver = LinkResolver(store)

    try:
        notes = await store.list_all_notes()

        nodes: dict[str, GraphNode] = {}
        edges: list[GraphEdge] = []
        notes_with_tag: dict[str, list[str]] = {}

        for note in notes:
            nodes[note_node_id(note.id)] = GraphNode(
                id=note_node_id(note.id),
                name=note.title,
                node_type="note",
            )

        for note in notes:
            source = note_node_id(note.id)
            for tag in note.tags:
                tag_id = tag_node_id(tag)
                if tag_id not in nodes:
                    nodes[tag_id] = GraphNode(id=tag_id, name=f"#{tag}", node_type="tag")
                edges.append(GraphEdge(source=source, target=tag_id, kind="tag"))
                notes_with_tag.setdefault(tag, []).append(source)

            for reference in extract_wikilinks(note.content):
                target_note = await resolver.find_first_match(reference)
                if target_note is not None and target_note.id != note.id:
                    edges.append(GraphEdge(
                        source=source,
                        target=note_node_id(target_note.id),
                        kind="link",
                    ))

        # Notes sharing a tag are connected pairwise
        for note_ids in notes_with_tag.values():
            for i in range(len(note_ids)):
                for j in range(i + 1, len(note_ids)):
                    edges.append(GraphEdge(source=note_ids[i], target=note_ids[j], kind="shared_tag"))
    finally:
        if own_resolver:
            resolver.close()

    for edge in edges:
        for node_id in (edge.source, edge.target):
            if node_id in nodes:
                nodes[node_id].connections += 1

    note_nodes = [n for n in nodes.values() if n.node_type == "note"]
    orphans = [n for n in note_nodes if n.connections == 0]

    stats = {
        "total_nodes": len(nodes),
        "note_nodes": len(note_nodes),
        "tag_nodes": len(nodes) - len(note_nodes),
        "total_edges": len(edges),
        "link_edges": sum(1 for e in edges if e.kind == "link"),
        "orphan_count": len(orphans),
    }

    return {
        "nodes": [n.model_dump() for n in nodes.values()],
        "edges": [e.model_dump() for e in edges],
        "orphans": [o.model_dump() for o in orphans],
        "stats": stats,
    }
