"""Tests for session persistence and crash recovery."""

import pytest

from maker.config import SessionStatus
from maker.schemas import Candidate, Session, StepResult
from maker.store import (
    INTERRUPTED_MARKER,
    FileSessionStore,
    InMemorySessionStore,
    load_sessions,
    sanitize_session,
)
from maker.usage import Usage


def _session(status: SessionStatus = SessionStatus.DONE, **kwargs) -> Session:
    record = StepResult(
        step="Pick city",
        result="Lisbon",
        candidates=[
            Candidate(text="Lisbon", temperature=0.81, model="a/b", usage=Usage(prompt_tokens=3, calls=1)),
            Candidate(text="Porto", temperature=0.93),
        ],
        votes=[1, 0],
        winner_index=0,
        red_flags=2,
        reason="closer",
        usage=Usage(prompt_tokens=9, output_tokens=4, total_tokens=13, cost=0.02, calls=3),
    )
    values = dict(
        task="Plan a 3-day trip",
        plan=["Pick city", "Book hotel"],
        current_step_index=1,
        completed_steps=[record],
        usage=Usage(prompt_tokens=20, output_tokens=8, total_tokens=28, cost=0.05, calls=4),
        status=status,
        content="Step 1: Pick city\nResult: Lisbon",
    )
    values.update(kwargs)
    return Session(**values)


class TestSerialization:
    """Tests for the session snapshot format."""

    def test_json_round_trip(self):
        """Every field survives serialization."""
        session = _session(error="boom")
        assert Session.from_json(session.to_json()) == session


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemorySessionStore()
    return FileSessionStore(tmp_path / "sessions")


class TestStores:
    """Behavior shared by both store implementations."""

    def test_save_load_delete(self, store):
        """Sessions are keyed by id and deletable."""
        session = _session()
        store.save(session)
        assert store.load(session.id) == session
        assert store.load_all() == [session]

        store.delete(session.id)
        assert store.load(session.id) is None
        assert store.load_all() == []

    def test_save_overwrites(self, store):
        """A later snapshot replaces the earlier one."""
        session = _session(status=SessionStatus.VOTING)
        store.save(session)
        session.status = SessionStatus.DONE
        store.save(session)
        assert store.load(session.id).status == SessionStatus.DONE

    def test_delete_missing_is_noop(self, store):
        """Deleting an unknown id does not raise."""
        store.delete("nope")


class TestFileSessionStore:
    """File-specific behavior."""

    def test_skips_corrupt_files(self, tmp_path):
        """Unreadable files are skipped, not fatal."""
        store = FileSessionStore(tmp_path)
        session = _session()
        store.save(session)
        (tmp_path / "broken.json").write_text("{nope")

        assert store.load_all() == [session]

    def test_no_temp_files_left(self, tmp_path):
        """Atomic writes leave only the final file."""
        store = FileSessionStore(tmp_path)
        session = _session()
        store.save(session)
        assert [p.name for p in tmp_path.iterdir()] == [f"{session.id}.json"]


class TestSanitize:
    """Tests for zombie session recovery."""

    @pytest.mark.parametrize(
        "status",
        [
            SessionStatus.PLANNING,
            SessionStatus.GENERATING_CANDIDATES,
            SessionStatus.VOTING,
            SessionStatus.EXECUTING,
        ],
    )
    def test_non_terminal_becomes_stopped(self, status):
        """A session frozen mid-pipeline is stopped with a visible marker."""
        session = _session(status=status)
        assert sanitize_session(session)
        assert session.status == SessionStatus.STOPPED
        assert session.content.endswith(INTERRUPTED_MARKER)
        assert session.content.startswith("Step 1: Pick city")
        assert len(session.completed_steps) == 1

    @pytest.mark.parametrize("status", [SessionStatus.DONE, SessionStatus.STOPPED])
    def test_terminal_untouched(self, status):
        """Finished sessions are left alone."""
        session = _session(status=status)
        before = session.model_copy(deep=True)
        assert not sanitize_session(session)
        assert session == before

    def test_empty_content_gets_marker(self):
        """A zombie with no visible content shows only the marker."""
        session = _session(status=SessionStatus.PLANNING, content="")
        sanitize_session(session)
        assert session.content == INTERRUPTED_MARKER

    def test_load_sessions_sanitizes_and_resaves(self, store):
        """Loading a session saved in VOTING yields STOPPED, never a resume."""
        zombie = _session(status=SessionStatus.VOTING)
        finished = _session(status=SessionStatus.DONE)
        store.save(zombie)
        store.save(finished)

        loaded = {s.id: s for s in load_sessions(store)}
        assert loaded[zombie.id].status == SessionStatus.STOPPED
        assert INTERRUPTED_MARKER in loaded[zombie.id].content
        assert loaded[finished.id].status == SessionStatus.DONE

        reloaded = store.load(zombie.id)
        assert reloaded.status == SessionStatus.STOPPED
        assert reloaded.content.count(INTERRUPTED_MARKER) == 1
