"""
Session Registry - Per-user chat sessions with idle expiry

Sessions are keyed by (form name, session id), so two browsers filling
the same form never share a conversation. Idle sessions are evicted
after a TTL: the looked-up key on every access, and every other expired
session whenever a new one is created. The registry map has its own
lock; turns of one session are serialized with the session's lock
(see DialogueManager.handle_turn).
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from formchat.core.state_manager import ChatSession

logger = logging.getLogger(__name__)

SessionKey = Tuple[str, str]

DEFAULT_SESSION_TTL = 3600.0


class SessionRegistry:
    """In-process store of active chat sessions"""

    def __init__(self, ttl_seconds: float = DEFAULT_SESSION_TTL):
        """
        Args:
            ttl_seconds: Idle time after which a session is evicted (<= 0 disables expiry)
        """
        self.ttl_seconds = ttl_seconds
        self._sessions: Dict[SessionKey, ChatSession] = {}
        self._lock = threading.Lock()

        logger.info(f"SessionRegistry initialized (ttl={ttl_seconds}s)")

    def _is_expired(self, session: ChatSession) -> bool:
        return self.ttl_seconds > 0 and session.idle_seconds() > self.ttl_seconds

    def _active(self, key: SessionKey) -> Optional[ChatSession]:
        # Caller holds self._lock
        session = self._sessions.get(key)
        if session is not None and self._is_expired(session):
            logger.info(f"Session expired: {key[0]}/{key[1]}")
            del self._sessions[key]
            return None
        return session

    def _evict_expired_locked(self) -> List[SessionKey]:
        expired = [k for k, s in self._sessions.items() if self._is_expired(s)]
        for key in expired:
            del self._sessions[key]
        return expired

    def get(self, form_name: str, session_id: str) -> Optional[ChatSession]:
        """Active session, or None if absent or expired"""
        with self._lock:
            return self._active((form_name, session_id))

    def get_or_create(
        self,
        form_name: str,
        session_id: str,
        factory: Callable[[], ChatSession]
    ) -> Tuple[ChatSession, bool]:
        """
        Return the active session, creating it with factory() when absent.

        factory() runs without the registry lock held (it may read context
        records from disk). If two callers race to create the same key,
        the first one stored wins and the other's session is dropped.
        Creating a session also evicts every other expired session.

        Returns:
            tuple: (session, created)
        """
        key = (form_name, session_id)
        with self._lock:
            session = self._active(key)
        if session is not None:
            return session, False

        candidate = factory()

        with self._lock:
            session = self._active(key)
            if session is not None:
                return session, False

            expired = self._evict_expired_locked()
            self._sessions[key] = candidate

        if expired:
            logger.info(f"Evicted {len(expired)} expired session(s)")
        logger.info(f"Session created: {form_name}/{session_id}")
        return candidate, True

    def discard(self, form_name: str, session_id: str) -> bool:
        """Remove a session. Returns True if one was removed."""
        with self._lock:
            removed = self._sessions.pop((form_name, session_id), None) is not None
        if removed:
            logger.info(f"Session discarded: {form_name}/{session_id}")
        return removed

    def evict_expired(self) -> int:
        """Drop every expired session. Returns the number evicted."""
        with self._lock:
            expired = self._evict_expired_locked()
        if expired:
            logger.info(f"Evicted {len(expired)} expired session(s)")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, key: SessionKey) -> bool:
        with self._lock:
            return key in self._sessions
