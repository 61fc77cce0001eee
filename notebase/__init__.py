# notebase: local knowledge base with bidirectional wiki links
#
# Modular package structure:
# - config.py: Settings (pydantic-settings, NOTEBASE_ env prefix)
# - logging.py: structlog configuration
# - models.py: Pydantic models for records, change events and results
# - utils.py: Exceptions, regex patterns, normalization and validation
# - scanner.py: Title, tag and wiki-link extraction from note content
# - store.py: RecordStore, the embedded note/folder/attachment store
# - cache.py: ResolutionCache for resolved wiki links
# - resolver.py: LinkResolver (title matching with memoization)
# - backlinks.py: BacklinkIndex (reverse scan)
# - debounce.py: DebouncedSaver for edit bursts
# - session.py: KnowledgeSession, the state behind an open knowledge base
# - search.py: Substring search and statistics
# - graph.py: Knowledge graph of notes, tags and links
# - transfer.py: Markdown import/export, attachment export
# - tools.py: MCP tool handlers and server instance
# - main.py: Entry point and server initialization
