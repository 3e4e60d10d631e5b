"""Lock-guarded registry of active Socratic dialogue sessions."""

import copy
import logging
import threading

from ..core.exceptions import SessionNotFoundError
from ..core.persistence import SessionArchive
from ..core.socratic import SocraticEngine
from ..core.types import GraphData

logger = logging.getLogger(__name__)


class SocraticSessionManager:
    """
    Holds active sessions in memory and archives them on request.

    Every lookup and mutation of the session map, and every engine call
    that mutates a session, runs under one RLock.
    """

    def __init__(self, engine: SocraticEngine, archive: SessionArchive):
        self.engine = engine
        self.archive = archive
        self.lock = threading.RLock()
        self._sessions: dict[str, dict] = {}

    def _get(self, session_id: str) -> dict:
        """Get an active session. Caller must hold lock."""
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        return self._sessions[session_id]

    def start(self, topic: str, graph: GraphData, mode: str = "adaptive", context: str = "") -> dict:
        """Open a session. Returns {session_id, question, progress}."""
        session = self.engine.start_session(topic, graph, mode, context)
        with self.lock:
            self._sessions[session["id"]] = session
            return {
                "session_id": session["id"],
                "question": copy.deepcopy(session["questions"][0]),
                "progress": self.engine.progress(session),
                "is_complete": False,
            }

    def answer(self, session_id: str, answer: str) -> dict:
        with self.lock:
            session = self._get(session_id)
            return copy.deepcopy(self.engine.process_answer(session, answer))

    def summary(self, session_id: str) -> dict:
        with self.lock:
            return self.engine.summary(self._get(session_id))

    def history(self, session_id: str) -> list[dict]:
        with self.lock:
            return copy.deepcopy(self._get(session_id)["questions"])

    def snapshot(self, session_id: str) -> dict:
        """Deep copy of an active session, safe to use outside the lock."""
        with self.lock:
            return copy.deepcopy(self._get(session_id))

    def save(self, session: dict) -> bool:
        """Archive a session document and make it the active copy."""
        if not session.get("id"):
            raise ValueError("Session document has no id")
        saved = self.archive.save(session)
        with self.lock:
            self._sessions[session["id"]] = copy.deepcopy(session)
        if saved:
            logger.info(f"Session {session['id']} archived")
        return saved

    def load(self, session_id: str) -> dict:
        """Reload an archived session and make it active again."""
        session = self.archive.load(session_id)
        with self.lock:
            self._sessions[session["id"]] = session
            logger.info(f"Session {session_id} reloaded")
            return copy.deepcopy(session)

    def count(self) -> int:
        with self.lock:
            return len(self._sessions)
