"""
Tests for search and statistics.
"""

from notebase.search import (
    explore_by_tag,
    get_stats,
    make_snippet,
    search_notes,
    search_with_snippets,
)


class TestSearchNotes:
    """Tests for the search_notes function."""

    async def test_search_title(self, kb):
        """Test titles are searched case-insensitively."""
        results = await search_notes(kb["store"], "JOURNAL")

        assert [n.id for n in results] == [kb["journal"]]

    async def test_search_content(self, kb):
        """Test note bodies are searched."""
        results = await search_notes(kb["store"], "nothing links")

        assert [n.id for n in results] == [kb["old"]]

    async def test_search_tags(self, kb):
        """Test tags are searched."""
        results = await search_notes(kb["store"], "backup")

        assert [n.id for n in results] == [kb["plan_b"]]

    async def test_search_most_recent_first(self, kb):
        """Test results keep most-recently-updated-first order."""
        results = await search_notes(kb["store"], "plan")

        assert [n.id for n in results] == [kb["journal"], kb["plan_b"], kb["plan"]]

    async def test_search_empty_query(self, kb):
        """Test a blank query returns every note."""
        results = await search_notes(kb["store"], "  ")

        assert len(results) == 4

    async def test_search_no_results(self, kb):
        """Test a query nothing contains."""
        assert await search_notes(kb["store"], "xyznonexistent") == []


class TestSearchWithSnippets:
    """Tests for the search_with_snippets function."""

    async def test_result_structure(self, kb):
        """Test results carry id, title, snippet and tags."""
        results = await search_with_snippets(kb["store"], "fallback")

        assert len(results) == 1
        result = results[0]
        assert result.id == kb["plan_b"]
        assert result.title == "Plan B"
        assert "Fallback" in result.snippet
        assert "\n" not in result.snippet
        assert result.tags == ["project", "backup"]

    async def test_max_results(self, kb):
        """Test the result count is capped."""
        results = await search_with_snippets(kb["store"], "plan", max_results=2)

        assert len(results) == 2

    async def test_empty_query(self, kb):
        """Test a blank query yields no snippets."""
        assert await search_with_snippets(kb["store"], "") == []

    def test_snippet_without_match(self):
        """Test a snippet falls back to the start of the content."""
        assert make_snippet("short text", "zzz") == "short text"
        assert make_snippet("x" * 250, "zzz").endswith("...")


class TestExploreByTag:
    """Tests for the explore_by_tag function."""

    async def test_explore_tag_found(self, kb):
        """Test notes carrying the tag are returned."""
        results = await explore_by_tag(kb["store"], "project")

        assert {n.id for n in results} == {kb["plan"], kb["plan_b"]}

    async def test_explore_tag_with_hash(self, kb):
        """Test a leading # and casing are ignored."""
        results = await explore_by_tag(kb["store"], " #DAILY")

        assert [n.id for n in results] == [kb["journal"]]

    async def test_explore_tag_exact_only(self, kb):
        """Test a partial tag does not match."""
        assert await explore_by_tag(kb["store"], "proj") == []

    async def test_explore_tag_blank(self, kb):
        """Test a blank tag matches nothing."""
        assert await explore_by_tag(kb["store"], "#") == []


class TestGetStats:
    """Tests for the get_stats function."""

    async def test_stats_structure(self, kb):
        """Test stats has the expected keys and counts."""
        stats = await get_stats(kb["store"])

        assert stats["total_notes"] == 4
        assert stats["total_folders"] == 2
        assert stats["total_words"] > 0
        assert stats["by_folder"] == {"Projects": 2, "Archive": 1, "root": 1}
        assert stats["tags"]["project"] == 2
        assert stats["top_tags"][0] == ("project", 2)

    async def test_recent_notes(self, kb):
        """Test recent notes are listed newest first."""
        stats = await get_stats(kb["store"], recent=2)

        assert [n["id"] for n in stats["recent_notes"]] == [kb["old"], kb["journal"]]
        for note in stats["recent_notes"]:
            assert "title" in note

    async def test_empty_store(self, store):
        """Test stats of an empty store."""
        stats = await get_stats(store)

        assert stats["total_notes"] == 0
        assert stats["top_tags"] == []
