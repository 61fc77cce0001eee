"""
Pytest configuration and fixtures for notebase tests.
"""

import pytest


@pytest.fixture
def store():
    """Create an empty in-memory RecordStore."""
    from notebase.store import RecordStore

    store = RecordStore()
    yield store
    store.close()


@pytest.fixture
async def kb(store):
    """Populate the store with a small linked knowledge base.

    Returns a dict of note/folder ids by short name, plus the store itself.
    """
    projects = await store.create_folder("Projects")
    archive = await store.create_folder("Archive", parent_id=projects)

    plan = await store.create_note("# Plan\n\nThe main plan. #project", projects)
    plan_b = await store.create_note(
        "# Plan B\n\nFallback in case [[Plan]] fails. #project #backup",
        projects,
    )
    journal = await store.create_note(
        "# Journal\n\nWorked on [[plan]] today, see [[Missing Note]]. #daily"
    )
    old = await store.create_note("# Old Ideas\n\nNothing links here. #archive", archive)

    return {
        "store": store,
        "projects": projects,
        "archive": archive,
        "plan": plan,
        "plan_b": plan_b,
        "journal": journal,
        "old": old,
    }


@pytest.fixture
async def session(store):
    """Create a KnowledgeSession with a short debounce window."""
    from notebase.session import KnowledgeSession

    session = KnowledgeSession(store, debounce_seconds=0.05)
    yield session
    await session.close()


@pytest.fixture
def patched_session(kb, session):
    """Install the session over the populated store as the tool session."""
    from notebase import tools

    tools.set_session(session)
    yield session
    tools.set_session(None)


@pytest.fixture
def count_calls(monkeypatch):
    """Wrap an async method on an object and record the arguments of each call."""

    def wrap(obj, name):
        original = getattr(obj, name)
        calls = []

        async def spy(*args, **kwargs):
            calls.append((args, kwargs))
            return await original(*args, **kwargs)

        monkeypatch.setattr(obj, name, spy)
        return calls

    return wrap
