"""
Session manager for live marketplace ranking sessions.

Keeps one MarketplaceSession per session id in memory. Persisted
behavioural state (browsing, attention, search history) lives in the
configured storage backend under a per-client namespace, so a client
that opens a new session picks up where it left off.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config.settings import Settings
from core.logging import LoggerMixin
from marketplace.session import MarketplaceSession, generate_session_id
from marketplace.storage import NamespacedStorage, Storage, create_storage


@dataclass
class SessionData:
    """Container for a session with access metadata."""

    session: MarketplaceSession
    client_id: str
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    ttl_seconds: int = 86400

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = now if now is not None else time.time()
        return now - self.updated_at > self.ttl_seconds

    def touch(self) -> None:
        self.updated_at = time.time()


class SessionManager(LoggerMixin):
    """
    Thread-safe in-memory registry of marketplace sessions.

    Usage:
        manager = SessionManager(settings)
        session = manager.create_session(client_id="browser-42")
        manager.get_session(session.session_id)
        manager.delete_session(session.session_id)
    """

    def __init__(
        self,
        settings: Settings,
        storage: Optional[Storage] = None,
        ttl_seconds: int = 86400,
    ):
        self._settings = settings
        self._storage = storage if storage is not None else create_storage(settings)
        self._ttl_seconds = ttl_seconds
        self._lock = threading.RLock()
        self._sessions: Dict[str, SessionData] = {}

    def create_session(self, client_id: Optional[str] = None) -> MarketplaceSession:
        session_id = generate_session_id()
        client_id = client_id or session_id
        session = MarketplaceSession(
            NamespacedStorage(self._storage, client_id),
            settings=self._settings,
            session_id=session_id,
        )
        with self._lock:
            self._sessions[session_id] = SessionData(
                session=session,
                client_id=client_id,
                ttl_seconds=self._ttl_seconds,
            )
        self.logger.info("Created marketplace session", session_id=session_id)
        return session

    def get_session(self, session_id: str) -> Optional[MarketplaceSession]:
        with self._lock:
            data = self._sessions.get(session_id)
            if data is None:
                return None
            if data.is_expired():
                del self._sessions[session_id]
                expired = data.session
            else:
                data.touch()
                return data.session
        expired.close()
        return None

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            data = self._sessions.pop(session_id, None)
        if data is None:
            return False
        data.session.close()
        return True

    def cleanup_expired(self) -> int:
        """Close and drop expired sessions. Returns how many were removed."""
        now = time.time()
        with self._lock:
            expired = [sid for sid, data in self._sessions.items() if data.is_expired(now)]
            removed: List[SessionData] = [self._sessions.pop(sid) for sid in expired]
        for data in removed:
            data.session.close()
        if removed:
            self.logger.info("Cleaned up expired sessions", count=len(removed))
        return len(removed)

    def close_all(self) -> None:
        with self._lock:
            sessions, self._sessions = list(self._sessions.values()), {}
        for data in sessions:
            data.session.close()

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "active_sessions": len(self._sessions),
                "ttl_seconds": self._ttl_seconds,
            }
