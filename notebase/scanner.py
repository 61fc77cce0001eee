"""
Text scanning for notebase.

Pure functions that derive a note's title, tags and wiki-link references from
its raw content. They never raise for any string input: malformed markup is
simply not matched.
"""

from .utils import (
    TAG_PATTERN,
    TITLE_MARKUP_PATTERN,
    WIKILINK_PATTERN,
    parse_frontmatter,
)

UNTITLED_TITLE = "Untitled note"


def extract_title(content: str) -> str:
    """Return the note title for ``content``.

    A ``title`` key in YAML frontmatter wins. Otherwise the first line that
    still has text once leading ``#``, ``-``, ``*``, ``_`` and whitespace are
    stripped. Falls back to ``UNTITLED_TITLE``.
    """
    frontmatter, body = parse_frontmatter(content)

    title = frontmatter.get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()

    for line in body.splitlines():
        stripped = TITLE_MARKUP_PATTERN.sub("", line).rstrip()
        if stripped:
            return stripped

    return UNTITLED_TITLE


def _frontmatter_tags(frontmatter: dict) -> list[str]:
    raw_tags = frontmatter.get("tags") or []
    if isinstance(raw_tags, str):
        raw_tags = raw_tags.split(",")
    elif not isinstance(raw_tags, list):
        return []
    return [str(t).strip().lstrip("#") for t in raw_tags if t is not None]


def extract_tags(content: str) -> list[str]:
    """Return lowercase tags in first-seen order, without duplicates.

    Frontmatter ``tags`` come first, then inline ``#tag`` markers.
    """
    frontmatter, body = parse_frontmatter(content)

    candidates = _frontmatter_tags(frontmatter)
    candidates.extend(m.group(1) for m in TAG_PATTERN.finditer(body))

    seen: set[str] = set()
    result: list[str] = []
    for tag in candidates:
        tag = tag.lower()
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


def extract_wikilinks(content: str) -> list[str]:
    """Return trimmed ``[[Wiki Link]]`` references (de-duped, ordered).

    Display casing is preserved; normalization happens at match time.
    """
    seen: set[str] = set()
    result: list[str] = []
    for m in WIKILINK_PATTERN.finditer(content):
        reference = m.group(1).strip()
        if reference and reference not in seen:
            seen.add(reference)
            result.append(reference)
    return result
