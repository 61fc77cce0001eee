"""
Utility functions and compiled regex patterns for notebase.

Contains the exception taxonomy, frontmatter parsing, title normalization,
validation utilities, and pre-compiled patterns.
"""

import re

import yaml

from .config import settings

# Pre-compiled regex patterns for performance
WIKILINK_PATTERN = re.compile(r'\[\[([^\[\]]+)\]\]')
TAG_PATTERN = re.compile(r'#([\w-]+)')
FRONTMATTER_PATTERN = re.compile(r'^---\s*\n(.*?)\n---\s*\n', re.DOTALL)
TITLE_MARKUP_PATTERN = re.compile(r'^[#\-*_\s]+')
UNSAFE_CHARS_PATTERN = re.compile(r'[^\w\s-]')
WHITESPACE_PATTERN = re.compile(r'[\s]+')


# ============== Exceptions ==============

class StoreError(Exception):
    """Raised when the underlying persistence fails."""
    pass


class NotFoundError(LookupError):
    """Raised when a mutation targets a record that does not exist."""
    pass


class NoteNotFoundError(NotFoundError):
    """Raised when a note does not exist."""

    def __init__(self, note_id: int):
        super().__init__(f"Note not found: {note_id}")
        self.note_id = note_id


class FolderNotFoundError(NotFoundError):
    """Raised when a folder does not exist."""

    def __init__(self, folder_id: int):
        super().__init__(f"Folder not found: {folder_id}")
        self.folder_id = folder_id


class AttachmentNotFoundError(NotFoundError):
    """Raised when an attachment does not exist."""

    def __init__(self, attachment_id: int):
        super().__init__(f"Attachment not found: {attachment_id}")
        self.attachment_id = attachment_id


class FolderCycleError(ValueError):
    """Raised when a folder move would make a folder its own ancestor."""
    pass


class FolderNameError(ValueError):
    """Raised when folder name validation fails."""
    pass


class ContentValidationError(ValueError):
    """Raised when content validation fails."""
    pass


# ============== Helper Functions ==============

def normalize_title(text: str) -> str:
    """Normalize a title or link reference for comparison (trim + case fold)."""
    return text.strip().casefold()


def parse_frontmatter(content: str) -> tuple[dict, str]:
    """Extract YAML frontmatter and body from note content.

    Invalid YAML, or a block that is not a mapping, yields an empty dict and
    leaves the content untouched.
    """
    frontmatter = {}
    body = content

    match = FRONTMATTER_PATTERN.match(content)
    if match:
        try:
            loaded = yaml.safe_load(match.group(1))
        except yaml.YAMLError:
            return {}, content
        if isinstance(loaded, dict):
            frontmatter = loaded
            body = content[match.end():]

    return frontmatter, body


def safe_filename(title: str) -> str:
    """Turn a note title into a filesystem-safe file stem."""
    safe_title = UNSAFE_CHARS_PATTERN.sub('', title)
    safe_title = WHITESPACE_PATTERN.sub('_', safe_title.strip())
    return safe_title or "note"


def truncate(text: str, max_length: int) -> str:
    """Limit a string to ``max_length`` characters, adding an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


# ============== Validation ==============

def validate_content_size(content: str) -> str:
    """Validate content size.

    Raises:
        ContentValidationError: If the content exceeds size limits
    """
    content_bytes = len(content.encode('utf-8'))

    if content_bytes > settings.max_content_size:
        max_mb = settings.max_content_size / (1024 * 1024)
        actual_mb = content_bytes / (1024 * 1024)
        raise ContentValidationError(
            f"Content size ({actual_mb:.2f}MB) exceeds maximum allowed size ({max_mb}MB)"
        )

    return content


def validate_folder_name(name: str) -> str:
    """Validate and strip a folder name.

    Raises:
        FolderNameError: If the name is empty or too long
    """
    if not name or not name.strip():
        raise FolderNameError("Folder name cannot be empty")

    name = name.strip()

    if len(name) > settings.max_folder_name_length:
        raise FolderNameError(
            f"Folder name exceeds maximum length of {settings.max_folder_name_length} characters"
        )

    return name
