"""
In-memory session store with inactivity expiry and a per-user session cap.
"""

import secrets
import string
import threading
import time
from typing import Any, Dict, List, Optional

from loguru import logger

from faqbot.config import settings

_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_id() -> str:
    random_part = "".join(secrets.choice(_ALPHABET) for _ in range(13))
    return f"session_{int(time.time() * 1000)}_{random_part}"


class SessionStore:
    def __init__(
        self,
        max_age_seconds: Optional[int] = None,
        max_sessions_per_user: Optional[int] = None,
        history_limit: Optional[int] = None,
        clock=time.time,
    ):
        self.max_age_seconds = settings.SESSION_MAX_AGE_SECONDS if max_age_seconds is None else max_age_seconds
        self.max_sessions_per_user = (
            settings.SESSION_MAX_PER_USER if max_sessions_per_user is None else max_sessions_per_user
        )
        self.history_limit = settings.SESSION_HISTORY_LIMIT if history_limit is None else history_limit
        self._clock = clock
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._user_sessions: Dict[str, List[str]] = {}
        self._lock = threading.RLock()

    def _expired(self, session: Dict[str, Any]) -> bool:
        return self._clock() - session["last_activity"] > self.max_age_seconds

    def create_session(
        self,
        user_id: str,
        platform: str = "web",
        metadata: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> str:
        now = self._clock()
        session_id = session_id or generate_session_id()
        with self._lock:
            self._sessions[session_id] = {
                "id": session_id,
                "user_id": user_id,
                "platform": platform,
                "created_at": now,
                "last_activity": now,
                "message_count": 0,
                "metadata": dict(metadata or {}),
                "history": [],
            }
            owned = self._user_sessions.setdefault(user_id, [])
            if session_id not in owned:
                owned.append(session_id)
            while len(owned) > self.max_sessions_per_user:
                self._delete(owned[0])
            total = len(self._sessions)

        logger.info(f"Session created {session_id} for {user_id} on {platform} (total={total})")
        return session_id

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._expired(session):
                self._delete(session_id)
                return None
            session["last_activity"] = self._clock()
            return session

    def get_or_create(self, session_id: Optional[str], user_id: str, platform: str = "web") -> str:
        if session_id and self.get_session(session_id) is not None:
            return session_id
        return self.create_session(user_id, platform, session_id=session_id)

    def update_session(self, session_id: str, **updates: Any) -> bool:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return False
            session.update(updates)
            session["last_activity"] = self._clock()
            return True

    def _delete(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        owned = self._user_sessions.get(session["user_id"], [])
        if session_id in owned:
            owned.remove(session_id)
        if not owned:
            self._user_sessions.pop(session["user_id"], None)
        return True

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            deleted = self._delete(session_id)
        if deleted:
            logger.info(f"Session deleted {session_id}")
        return deleted

    def delete_user_sessions(self, user_id: str) -> int:
        with self._lock:
            ids = list(self._user_sessions.get(user_id, []))
            return sum(self._delete(session_id) for session_id in ids)

    def get_user_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            ids = list(self._user_sessions.get(user_id, []))
            sessions = [s for s in (self.get_session(i) for i in ids) if s is not None]
        return sorted(sessions, key=lambda s: s["last_activity"], reverse=True)

    def add_message(self, session_id: str, role: str, content: str, **metadata: Any) -> bool:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return False
            session["history"].append({
                "role": role,
                "content": content,
                "timestamp": self._clock(),
                "metadata": metadata,
            })
            session["message_count"] += 1
            del session["history"][:-self.history_limit]
            return True

    def get_history(self, session_id: str, limit: Optional[int] = 20) -> List[Dict[str, Any]]:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return []
            history = list(session["history"])
        return history[-limit:] if limit else history

    def cleanup_expired(self) -> int:
        with self._lock:
            expired = [i for i, s in self._sessions.items() if self._expired(s)]
            for session_id in expired:
                self._delete(session_id)
            remaining = len(self._sessions)
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired sessions (remaining={remaining})")
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            live = [s for s in self._sessions.values() if not self._expired(s)]
            platforms: Dict[str, int] = {}
            for session in live:
                platforms[session["platform"]] = platforms.get(session["platform"], 0) + 1
            return {
                "total_sessions": len(self._sessions),
                "active_sessions": len(live),
                "total_users": len(self._user_sessions),
                "total_messages": sum(s["message_count"] for s in live),
                "platform_stats": platforms,
            }
