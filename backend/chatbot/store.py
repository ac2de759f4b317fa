# chatbot/store.py
# In-memory session storage.
#
# Sessions are kept in a plain dict keyed by session id.
# Nothing survives a restart. A background task started in
# main.py calls sweep_expired() so idle sessions do not pile up.
#
# FastAPI may run sync routes in a threadpool, so every
# access to the dict goes through one lock.

import asyncio
import logging
import threading
from typing import Dict, Optional

from config import (
    MAX_CONVERSATION_LENGTH,
    SESSION_CLEANUP_INTERVAL_SECONDS,
    SESSION_TIMEOUT_SECONDS,
)
from chatbot.intents import Intent
from chatbot.messages import ChatMessage
from chatbot.session import ChatSession

logger = logging.getLogger(__name__)


class SessionStore:

    def __init__(
        self,
        timeout_seconds: float = SESSION_TIMEOUT_SECONDS,
        max_messages:    Optional[int] = MAX_CONVERSATION_LENGTH,
    ):
        self.timeout_seconds = timeout_seconds
        self.max_messages = max_messages
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = threading.Lock()

    def create(self, beneficiary_key: int) -> ChatSession:
        session = ChatSession(beneficiary_key=beneficiary_key, max_messages=self.max_messages)
        with self._lock:
            self._sessions[session.session_id] = session
        logger.debug("Created session %s for beneficiary %s", session.session_id, beneficiary_key)
        return session

    def get(self, session_id: str) -> Optional[ChatSession]:
        """Return the session, or None if it is unknown or expired.
        Expired sessions are removed on the way out."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(self.timeout_seconds):
                del self._sessions[session_id]
                logger.debug("Session %s expired", session_id)
                return None
            return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def update_activity(self, session_id: str) -> bool:
        session = self.get(session_id)
        if not session:
            return False
        session.update_activity()
        return True

    def add_message(self, session_id: str, message: ChatMessage) -> bool:
        session = self.get(session_id)
        if not session:
            return False
        session.add_message(message)
        return True

    def update_context(
        self,
        session_id: str,
        intent:     Optional[Intent] = None,
        slots:      Optional[dict] = None,
    ) -> bool:
        session = self.get(session_id)
        if not session:
            return False
        session.update_context(intent=intent, slots=slots)
        return True

    def sweep_expired(self) -> int:
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.is_expired(self.timeout_seconds)
            ]
            for session_id in expired:
                del self._sessions[session_id]

        if expired:
            logger.info("Cleaned up %d expired chat sessions", len(expired))
        return len(expired)

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)


async def sweep_forever(store: SessionStore, interval_seconds: float = SESSION_CLEANUP_INTERVAL_SECONDS):
    """Runs until cancelled. Started from the app lifespan."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            store.sweep_expired()
        except Exception:
            logger.exception("Session sweep failed")


# One store per process, shared by every route
session_store = SessionStore()
