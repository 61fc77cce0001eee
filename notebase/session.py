"""
Knowledge session state for notebase.

Contains the KnowledgeSession class, the state behind one open knowledge base:
the selected note, its backlinks and resolved outgoing links, the note and
folder lists, and the resolution cache (owned by its LinkResolver).

Background work (backlink loading, link pre-resolution) runs as asyncio tasks
tagged with the note id and a selection generation. Results whose tag no
longer matches the current selection are dropped, never applied.
"""

import asyncio
from collections.abc import Coroutine

import structlog

from .backlinks import BacklinkIndex
from .config import settings
from .debounce import DebouncedSaver
from .models import Attachment, Folder, Note
from .resolver import LinkResolver
from .scanner import extract_wikilinks
from .search import explore_by_tag, search_notes
from .store import RecordStore
from .utils import NoteNotFoundError, StoreError

logger = structlog.get_logger(__name__)


class KnowledgeSession:
    """Session state over a RecordStore.

    Construct one per application run (or per test), call :meth:`close` when
    done. Nothing here is a module-level singleton.
    """

    def __init__(self, store: RecordStore, *, debounce_seconds: float | None = None):
        self.store = store
        self.resolver = LinkResolver(store)
        self.backlink_index = BacklinkIndex(store)
        delay = settings.save_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._saver = DebouncedSaver(self.save_note, delay)
        self._save_locks: dict[int, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()
        self._generation = 0
        self._clear_state()

    def _clear_state(self) -> None:
        self.current_note: Note | None = None
        self.current_folder: Folder | None = None
        self.notes: list[Note] = []
        self.folders: list[Folder] = []
        self.backlinks: list[Note] = []
        self.link_targets: dict[str, Note | None] = {}
        self.attachments: list[Attachment] = []
        self.is_loading_backlinks = False
        self.is_loading_links = False
        self.is_note_dirty = False
        self.search_query = ""
        self.tag_filter: str | None = None

    # ============== Lifecycle ==============

    def reset(self) -> None:
        """Drop all session state and the resolution cache.

        In-flight background results become stale and are discarded.
        """
        self._generation += 1
        self._clear_state()
        self.resolver.invalidate()
        logger.info("session_reset")

    async def close(self) -> None:
        """Commit pending edits, wait for background work, detach from the store."""
        await self._saver.flush()
        await self.wait_idle()
        self.resolver.close()

    async def wait_idle(self) -> None:
        """Wait until no background task is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_current(self, note_id: int, generation: int) -> bool:
        return (
            generation == self._generation
            and self.current_note is not None
            and self.current_note.id == note_id
        )

    # ============== Selection ==============

    def select_note(self, note: Note | None) -> None:
        """Make ``note`` the current note.

        The selection is visible immediately; backlinks and link targets are
        loaded in the background and the ``is_loading_*`` flags are set
        until they arrive.
        """
        self._generation += 1
        self.current_note = note
        self.is_note_dirty = False
        self.backlinks = []
        self.link_targets = {}
        self.attachments = []

        if note is None:
            self.is_loading_backlinks = False
            self.is_loading_links = False
            return

        generation = self._generation
        self.is_loading_backlinks = True
        self.is_loading_links = True
        self._spawn(self._load_backlinks(note.id, generation))
        self._spawn(self._resolve_links(note.id, note.content, generation))

    async def _load_backlinks(self, note_id: int, generation: int) -> None:
        try:
            backlinks = await self.backlink_index.find_backlinks_for(note_id)
        except StoreError as e:
            logger.warning("backlinks_failed", note_id=note_id, error=str(e))
            backlinks = []

        if not self._is_current(note_id, generation):
            logger.debug("stale_backlinks_discarded", note_id=note_id)
            return
        self.backlinks = backlinks
        self.is_loading_backlinks = False

    async def _resolve_links(self, note_id: int, content: str, generation: int) -> None:
        targets: dict[str, Note | None] = {}
        for reference in extract_wikilinks(content):
            targets[reference] = await self.resolver.find_first_match(reference)

        if not self._is_current(note_id, generation):
            logger.debug("stale_links_discarded", note_id=note_id)
            return
        self.link_targets = targets
        self.is_loading_links = False

    async def find_linked_note(self, reference: str) -> Note | None:
        """Resolve a reference for display: a note, or None for a stub link."""
        return await self.resolver.find_first_match(reference)

    # ============== Saving ==============

    def _save_lock(self, note_id: int) -> asyncio.Lock:
        lock = self._save_locks.get(note_id)
        if lock is None:
            lock = self._save_locks[note_id] = asyncio.Lock()
        return lock

    async def save_note(self, note_id: int, content: str) -> Note:
        """Persist new content for a note and refresh link-dependent state.

        Saves of the same note run one at a time, in call order, so the last
        content passed in is what ends up stored. The note is re-read after
        the write and that copy is treated as the truth. On a store failure
        the stored note is unchanged, the note is marked dirty and the error
        propagates.
        """
        async with self._save_lock(note_id):
            previous = await self.store.get_note(note_id)
            try:
                await self.store.update_note(note_id, content=content)
            except StoreError:
                if self.current_note is not None and self.current_note.id == note_id:
                    self.is_note_dirty = True
                logger.error("note_save_failed", note_id=note_id)
                raise

            # The store has already told the resolver about the commit, so
            # cache entries for the old title are gone at this point.
            saved = await self.store.get_note(note_id)
            if saved is None:
                raise NoteNotFoundError(note_id)

            self.notes = [saved if n.id == note_id else n for n in self.notes]
            if self.current_note is not None and self.current_note.id == note_id:
                self.current_note = saved
                if self._saver.pending(note_id) is None:
                    self.is_note_dirty = False
                await self._refresh_links(saved)
            elif self.current_note is not None and _links_changed(previous, saved):
                # Another note gained or lost a link, or was renamed: the
                # selected note's backlinks and link targets may be stale.
                await self._refresh_links(self.current_note)

        logger.info("note_saved", note_id=note_id, title=saved.title, tags=len(saved.tags))
        return saved

    async def _refresh_links(self, note: Note) -> None:
        """Reload backlinks and link targets for the selected note.

        Starts a new generation, so loads spawned by an earlier selection of
        the same note are discarded when they finish.
        """
        self._generation += 1
        generation = self._generation
        self.is_loading_backlinks = True
        self.is_loading_links = True
        await asyncio.gather(
            self._load_backlinks(note.id, generation),
            self._resolve_links(note.id, note.content, generation),
        )

    def edit_note(self, note_id: int, content: str) -> None:
        """Record an edit; it is persisted after the debounce window."""
        if self.current_note is not None and self.current_note.id == note_id:
            self.is_note_dirty = True
        self._saver.schedule(note_id, content)

    async def flush_saves(self, note_id: int | None = None) -> None:
        """Persist pending edits immediately."""
        await self._saver.flush(note_id)

    # ============== Notes ==============

    async def create_note(self, content: str = "", folder_id: int | None = None) -> int:
        note_id = await self.store.create_note(content, folder_id)
        created = await self.store.get_note(note_id)
        if created is not None:
            self.notes = [created, *self.notes]
            self.select_note(created)
        return note_id

    async def delete_note(self, note_id: int) -> None:
        await self.store.delete_note(note_id)
        self._saver.cancel(note_id)
        self._forget_notes({note_id})

    def _forget_notes(self, note_ids: set[int]) -> None:
        for note_id in note_ids:
            self._save_locks.pop(note_id, None)
        self.notes = [n for n in self.notes if n.id not in note_ids]
        if self.current_note is not None and self.current_note.id in note_ids:
            self.select_note(None)

    async def load_notes(self) -> list[Note]:
        self.notes = await self.store.list_all_notes()
        self.search_query = ""
        self.tag_filter = None
        return self.notes

    async def load_notes_by_folder(self, folder_id: int | None) -> list[Note]:
        self.notes = await self.store.query_notes_by_folder(folder_id)
        return self.notes

    async def search_notes(self, query: str) -> list[Note]:
        """Substring search; a blank query lists every note."""
        if not query.strip():
            return await self.load_notes()
        self.notes = await search_notes(self.store, query)
        self.search_query = query
        return self.notes

    async def filter_notes_by_tag(self, tag: str | None) -> list[Note]:
        if not tag:
            return await self.load_notes()
        self.notes = await explore_by_tag(self.store, tag)
        self.tag_filter = tag
        return self.notes

    # ============== Folders ==============

    async def load_folders(self) -> list[Folder]:
        self.folders = await self.store.list_folders()
        return self.folders

    def select_folder(self, folder: Folder | None) -> None:
        self.current_folder = folder

    async def create_folder(self, name: str, parent_id: int | None = None) -> int:
        folder_id = await self.store.create_folder(name, parent_id)
        created = await self.store.get_folder(folder_id)
        if created is not None:
            self.folders = [*self.folders, created]
        return folder_id

    async def rename_folder(self, folder_id: int, name: str) -> None:
        await self.store.rename_folder(folder_id, name)
        await self._refresh_folder(folder_id)

    async def move_folder(self, folder_id: int, parent_id: int | None) -> None:
        await self.store.move_folder(folder_id, parent_id)
        await self._refresh_folder(folder_id)

    async def _refresh_folder(self, folder_id: int) -> None:
        updated = await self.store.get_folder(folder_id)
        if updated is None:
            return
        self.folders = [updated if f.id == folder_id else f for f in self.folders]
        if self.current_folder is not None and self.current_folder.id == folder_id:
            self.current_folder = updated

    async def delete_folder(self, folder_id: int) -> None:
        """Delete a folder subtree with its notes, then drop them from session state."""
        await self.store.delete_folder(folder_id)

        remaining_folders = await self.store.list_folders()
        remaining_ids = {f.id for f in remaining_folders}
        self.folders = remaining_folders
        if self.current_folder is not None and self.current_folder.id not in remaining_ids:
            self.current_folder = None

        remaining_notes = {n.id for n in await self.store.list_all_notes()}
        gone = {n.id for n in self.notes if n.id not in remaining_notes}
        if self.current_note is not None and self.current_note.id not in remaining_notes:
            gone.add(self.current_note.id)
        for note_id in gone:
            self._saver.cancel(note_id)
        self._forget_notes(gone)

    # ============== Attachments ==============

    async def load_attachments(self, note_id: int) -> list[Attachment]:
        attachments = await self.store.list_attachments_by_note(note_id)
        if self.current_note is not None and self.current_note.id == note_id:
            self.attachments = attachments
        return attachments

    async def upload_attachment(
        self,
        note_id: int,
        name: str,
        mime_type: str,
        data: bytes,
    ) -> int:
        attachment_id = await self.store.create_attachment(note_id, name, mime_type, data)
        created = await self.store.get_attachment(attachment_id)
        if created is not None and self.current_note is not None and self.current_note.id == note_id:
            self.attachments = [*self.attachments, created]
        return attachment_id

    async def delete_attachment(self, attachment_id: int) -> None:
        await self.store.delete_attachment(attachment_id)
        self.attachments = [a for a in self.attachments if a.id != attachment_id]


def _links_changed(before: Note | None, after: Note) -> bool:
    if before is None:
        return True
    return before.title != after.title or extract_wikilinks(before.content) != extract_wikilinks(after.content)
