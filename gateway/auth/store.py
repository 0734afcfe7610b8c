"""
Server-side session store.

All access goes through `SessionStore` (create/get/set_verified/destroy); where the
records live is delegated to a `SessionBackend`. The in-memory backend is enough for
a single-process deployment and does not survive restarts.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Protocol

from gateway.auth.models import Session
from gateway.auth.util import random_token

logger = logging.getLogger(__name__)


class SessionStoreError(RuntimeError):
    """A local session mutation failed (fatal for the request)."""


class SessionBackend(Protocol):
    """
    Minimal storage interface. Implementations can be in-process, Redis, etc.
    """

    def put(self, session: Session) -> None: ...

    def fetch(self, session_id: str) -> Optional[Session]: ...

    def mark_verified(self, session_id: str) -> bool:
        """
        Set `is_verified` on an existing record.

        Returns False if no record exists for the id.
        """

    def delete(self, session_id: str) -> None: ...

    def prune(self, now: datetime) -> int:
        """Drop every record expired at `now`; returns how many were removed."""


class InMemorySessionBackend:
    """Dict keyed by session id; every operation runs under one lock."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def put(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def fetch(self, session_id: str) -> Optional[Session]:
        with self._lock:
            cur = self._sessions.get(session_id)
            # Hand out a copy so callers never mutate the stored record directly.
            return replace(cur) if cur is not None else None

    def mark_verified(self, session_id: str) -> bool:
        with self._lock:
            cur = self._sessions.get(session_id)
            if cur is None:
                return False
            cur.is_verified = True
            return True

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def prune(self, now: datetime) -> int:
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    def __init__(
        self,
        backend: Optional[SessionBackend] = None,
        *,
        ttl_seconds: int = 86400,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backend: SessionBackend = backend if backend is not None else InMemorySessionBackend()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def create(self, email: str, token: str, verified: bool = False) -> str:
        """
        Create a session for a successful upstream login and return its id.

        A session without a bearer token is never stored.
        """
        if not token:
            raise ValueError("Cannot create a session without a bearer token")
        now = self._clock()
        # Records whose cookie never comes back are only reclaimed here.
        try:
            pruned = self._backend.prune(now)
        except Exception:
            logger.warning("Failed to prune expired sessions", exc_info=True)
        else:
            if pruned:
                logger.debug("Pruned %d expired sessions", pruned)
        session = Session(
            session_id=random_token(32),
            email=email,
            bearer_token=token,
            is_verified=bool(verified),
            created_at=now,
            expires_at=now + self._ttl,
        )
        try:
            self._backend.put(session)
        except Exception as e:
            raise SessionStoreError("Failed to store session") from e
        return session.session_id

    def get(self, session_id: str | None) -> Optional[Session]:
        """Return the session, or None if it is unknown or expired."""
        if not session_id:
            return None
        session = self._backend.fetch(session_id)
        if session is None:
            return None
        if session.is_expired(self._clock()):
            # Fixed TTL: expired records are dropped on first read.
            try:
                self._backend.delete(session_id)
            except Exception:
                logger.warning("Failed to evict expired session", exc_info=True)
            return None
        return session

    def set_verified(self, session_id: str | None) -> bool:
        """Flip `is_verified` to True (never back). Returns False if no live session."""
        if self.get(session_id) is None:
            return False
        return self._backend.mark_verified(session_id)  # type: ignore[arg-type]

    def destroy(self, session_id: str) -> None:
        try:
            self._backend.delete(session_id)
        except Exception as e:
            raise SessionStoreError("Failed to destroy session") from e
