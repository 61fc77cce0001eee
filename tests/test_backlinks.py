"""
Tests for backlink computation.
"""

import pytest

from notebase.backlinks import BacklinkIndex, links_to
from notebase.resolver import LinkResolver
from notebase.utils import StoreError


class TestFindBacklinks:
    """Tests for BacklinkIndex."""

    async def test_exact_references_only(self, kb):
        """Test notes naming the title exactly (any case) are backlinks."""
        index = BacklinkIndex(kb["store"])

        backlinks = await index.find_backlinks_for(kb["plan"])

        assert {n.id for n in backlinks} == {kb["plan_b"], kb["journal"]}

    async def test_most_recent_first(self, kb):
        """Test backlinks are ordered by updated_at, newest first."""
        store = kb["store"]
        index = BacklinkIndex(store)
        await store.update_note(kb["plan_b"], content="# Plan B\n\nStill depends on [[Plan]].")

        backlinks = await index.find_backlinks_for(kb["plan"])

        assert [n.id for n in backlinks] == [kb["plan_b"], kb["journal"]]

    async def test_substring_reference_is_not_a_backlink(self, store):
        """Test a reference that only resolves by substring is no backlink."""
        target = await store.create_note("# Project Alpha")
        await store.create_note("See [[Alpha]] for details.")
        index = BacklinkIndex(store)
        resolver = LinkResolver(store)

        # Forward resolution finds the note through the substring fallback
        assert [n.id for n in await resolver.resolve("Alpha")] == [target]
        assert await index.find_backlinks_for(target) == []

    async def test_self_reference_excluded(self, store):
        """Test a note linking to itself is not its own backlink."""
        note_id = await store.create_note("# Loop\n\nSee [[Loop]].")
        other_id = await store.create_note("Back to [[loop]]")

        backlinks = await BacklinkIndex(store).find_backlinks_for(note_id)

        assert [n.id for n in backlinks] == [other_id]

    async def test_rename_orphans_references(self, kb):
        """Test renaming a note drops backlinks that used the old title."""
        store = kb["store"]
        await store.update_note(kb["plan"], content="# Master Plan\n\nRenamed.")

        assert await BacklinkIndex(store).find_backlinks_for(kb["plan"]) == []

    async def test_removed_link_is_no_longer_a_backlink(self, store):
        """Test a note that stops linking to the target leaves its backlinks."""
        target = await store.create_note("# B")
        source = await store.create_note("# A\n\nSee [[B]].")
        index = BacklinkIndex(store)
        assert [n.id for n in await index.find_backlinks_for(target)] == [source]

        await store.update_note(source, content="# A\n\nNo links any more.")

        assert await index.find_backlinks_for(target) == []

    async def test_no_backlinks(self, kb):
        """Test a note nobody references has no backlinks."""
        index = BacklinkIndex(kb["store"])

        assert await index.find_backlinks_for(kb["old"]) == []

    async def test_missing_note(self, kb):
        """Test an unknown id has no backlinks."""
        index = BacklinkIndex(kb["store"])

        assert await index.find_backlinks_for(999) == []

    async def test_store_error_propagates(self, kb, monkeypatch):
        """Test a failing scan raises to the caller."""
        store = kb["store"]
        target = await store.get_note(kb["plan"])

        async def failing():
            raise StoreError("read failed")

        monkeypatch.setattr(store, "list_all_notes", failing)

        with pytest.raises(StoreError):
            await BacklinkIndex(store).find_backlinks(target)


class TestLinksTo:
    """Tests for the links_to helper."""

    async def test_normalized_comparison(self, kb):
        """Test references are compared after trimming and case folding."""
        journal = await kb["store"].get_note(kb["journal"])

        assert links_to(journal, "plan")
        assert links_to(journal, "missing note")
        assert not links_to(journal, "plan b")
