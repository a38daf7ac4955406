"""
In-memory registry of live quote sessions, plus FastAPI dependencies.

Nothing is persisted: a session exists until the browser tab closes it, until
it sits untouched for SESSION_IDLE_SECONDS, or until the server restarts.
"""

import logging
import time
import uuid
from typing import Callable, Dict, Optional

from fastapi import HTTPException

from .config import settings
from .orchestrator import QuoteSession
from .quote_provider import GeminiQuoteProvider

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, idle_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.idle_seconds = settings.SESSION_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self._clock = clock
        self._sessions: Dict[str, QuoteSession] = {}
        self._last_seen: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, provider) -> QuoteSession:
        self.prune_idle()
        session_id = str(uuid.uuid4())
        session = QuoteSession(provider, session_id=session_id)
        self._sessions[session_id] = session
        self._last_seen[session_id] = self._clock()
        logger.info("Quote session %s created", session_id)
        return session

    def get(self, session_id: str) -> Optional[QuoteSession]:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> QuoteSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        self._last_seen[session_id] = self._clock()
        return session

    def close(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def prune_idle(self) -> int:
        """Close sessions idle for longer than idle_seconds. Returns how many."""
        cutoff = self._clock() - self.idle_seconds
        stale = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in stale:
            logger.info("Quote session %s expired after %ss idle", session_id, self.idle_seconds)
            self.close(session_id)
        return len(stale)

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)


# Singleton store: one per process
store = SessionStore()


def get_store() -> SessionStore:
    return store


def get_provider():
    return GeminiQuoteProvider()
