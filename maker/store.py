"""Session persistence and crash recovery."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from maker.config import SessionStatus
from maker.schemas import Session

logger = logging.getLogger(__name__)

INTERRUPTED_MARKER = (
    "[Interrupted: the process stopped before this task finished. "
    "Submit it again to rerun it.]"
)


class SessionStore(Protocol):
    """Key/value store for session snapshots, keyed by session id."""

    def save(self, session: Session) -> None:
        ...

    def load(self, session_id: str) -> Optional[Session]:
        ...

    def load_all(self) -> list[Session]:
        ...

    def delete(self, session_id: str) -> None:
        ...


class InMemorySessionStore:
    """Store that keeps serialized snapshots in a dict.

    Snapshots go through JSON so what comes back is exactly what a durable
    store would return.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def save(self, session: Session) -> None:
        self._data[session.id] = session.to_json()

    def load(self, session_id: str) -> Optional[Session]:
        raw = self._data.get(session_id)
        return Session.from_json(raw) if raw is not None else None

    def load_all(self) -> list[Session]:
        sessions = [Session.from_json(raw) for raw in self._data.values()]
        return sorted(sessions, key=lambda s: s.created_at)

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)


class FileSessionStore:
    """One ``<id>.json`` file per session under ``data_dir``."""

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)

    def _path(self, session_id: str) -> Path:
        return self.data_dir / f"{session_id}.json"

    def save(self, session: Session) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(session.model_dump_json(indent=2))
            os.replace(tmp_name, self._path(session.id))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self, session_id: str) -> Optional[Session]:
        path = self._path(session_id)
        if not path.exists():
            return None
        return Session.from_json(path.read_text(encoding="utf-8"))

    def load_all(self) -> list[Session]:
        sessions = []
        if not self.data_dir.exists():
            return sessions
        for path in sorted(self.data_dir.glob("*.json")):
            try:
                sessions.append(Session.from_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping unreadable session file {path.name}: {e}")
        return sorted(sessions, key=lambda s: s.created_at)

    def delete(self, session_id: str) -> None:
        self._path(session_id).unlink(missing_ok=True)


def sanitize_session(session: Session) -> bool:
    """Stop a session that a dead process left mid-pipeline.

    A persisted session that is neither DONE nor STOPPED can only come from
    an abrupt termination. The calls it was waiting on are gone, so it is
    never resumed: it is marked STOPPED and the interruption is appended to
    its visible content.

    Returns:
        True if the session was modified
    """
    if session.is_terminal:
        return False

    logger.warning(
        f"Session {session.id} was left in {session.status.value}; marking stopped"
    )
    session.status = SessionStatus.STOPPED
    session.content = (
        f"{session.content.rstrip()}\n\n{INTERRUPTED_MARKER}"
        if session.content.strip()
        else INTERRUPTED_MARKER
    )
    session.touch()
    return True


def load_sessions(store: SessionStore) -> list[Session]:
    """Load every persisted session, sanitizing and re-saving zombies."""
    sessions = store.load_all()
    for session in sessions:
        if sanitize_session(session):
            store.save(session)
    return sessions
