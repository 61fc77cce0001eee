"""
Tests for frontmatter parsing, normalization and validation helpers.
"""

import pytest


# ============== Tests for parse_frontmatter() ==============

class TestParseFrontmatter:
    """Tests for the parse_frontmatter function."""

    def test_valid_frontmatter(self):
        """Test parsing valid YAML frontmatter."""
        from notebase.utils import parse_frontmatter

        content = """---
title: Test Note
tags:
  - python
  - testing
---

# Body content

Some text here.
"""
        frontmatter, body = parse_frontmatter(content)

        assert frontmatter["title"] == "Test Note"
        assert frontmatter["tags"] == ["python", "testing"]
        assert "# Body content" in body
        assert "title:" not in body

    def test_missing_frontmatter(self):
        """Test parsing content without frontmatter."""
        from notebase.utils import parse_frontmatter

        content = "# Just a heading\n\nNo frontmatter here.\n"
        frontmatter, body = parse_frontmatter(content)

        assert frontmatter == {}
        assert body == content

    def test_invalid_yaml_frontmatter(self):
        """Test invalid YAML returns an empty dict and the untouched content."""
        from notebase.utils import parse_frontmatter

        content = """---
title: [broken yaml syntax
invalid: : extra colon
---

Body content here.
"""
        frontmatter, body = parse_frontmatter(content)

        assert frontmatter == {}
        assert body == content

    def test_non_mapping_frontmatter(self):
        """Test a YAML list is not treated as frontmatter."""
        from notebase.utils import parse_frontmatter

        content = "---\n- a\n- b\n---\nBody"
        frontmatter, body = parse_frontmatter(content)

        assert frontmatter == {}
        assert body == content

    def test_frontmatter_no_trailing_newline(self):
        """Test frontmatter handling with minimal spacing."""
        from notebase.utils import parse_frontmatter

        content = "---\ntitle: Minimal\n---\nBody immediately after."
        frontmatter, body = parse_frontmatter(content)

        assert frontmatter["title"] == "Minimal"
        assert body == "Body immediately after."


# ============== Tests for helpers ==============

class TestHelperFunctions:
    """Tests for normalize_title, safe_filename and truncate."""

    @pytest.mark.parametrize("raw, expected", [
        ("Plan", "plan"),
        ("  Plan B ", "plan b"),
        ("STRASSE", "strasse"),
        ("Straße", "strasse"),
        ("", ""),
    ])
    def test_normalize_title(self, raw, expected):
        """Test normalization trims and case folds."""
        from notebase.utils import normalize_title

        assert normalize_title(raw) == expected

    def test_safe_filename_sanitizes_special_chars(self):
        """Test special characters are removed from the file stem."""
        from notebase.utils import safe_filename

        filename = safe_filename("Test: With <Special> Chars!")

        assert filename == "Test_With_Special_Chars"

    def test_safe_filename_empty(self):
        """Test a title with nothing usable falls back to a fixed stem."""
        from notebase.utils import safe_filename

        assert safe_filename("???") == "note"

    def test_truncate(self):
        """Test long text is cut and marked."""
        from notebase.utils import truncate

        assert truncate("short", 10) == "short"
        assert truncate("a" * 12, 10) == "a" * 10 + "..."


# ============== Tests for validation ==============

class TestValidation:
    """Tests for content and folder name validation."""

    def test_content_size_ok(self):
        """Test content under the limit is returned unchanged."""
        from notebase.utils import validate_content_size

        assert validate_content_size("hello") == "hello"

    def test_content_size_counts_bytes(self, monkeypatch):
        """Test the limit applies to UTF-8 bytes, not characters."""
        from notebase.config import settings
        from notebase.utils import ContentValidationError, validate_content_size

        monkeypatch.setattr(settings, "max_content_size", 4)

        assert validate_content_size("abcd") == "abcd"
        with pytest.raises(ContentValidationError):
            validate_content_size("ééé")

    def test_folder_name_stripped(self):
        """Test folder names are stripped."""
        from notebase.utils import validate_folder_name

        assert validate_folder_name("  Work ") == "Work"

    @pytest.mark.parametrize("name", ["", "   ", "x" * 201])
    def test_folder_name_rejected(self, name):
        """Test empty and overlong folder names are rejected."""
        from notebase.utils import FolderNameError, validate_folder_name

        with pytest.raises(FolderNameError):
            validate_folder_name(name)
