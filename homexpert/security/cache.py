"""
Short-lived per-user permission cache.

Each Flask app owns one ``PermissionCache`` (see ``homexpert.extensions``)
and code that needs it receives it explicitly. Entries hold the role name and
the permission list read from the database, never values taken from a token.
"""

import threading
import time
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

DEFAULT_TTL_SECONDS = 5 * 60


class CachedGrant(NamedTuple):
    role: Optional[str]
    permissions: List[str]


class PermissionCache:
    """TTL cache of role names and ``module:action`` permission lists keyed by user id."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[CachedGrant, float]] = {}
        self._lock = threading.Lock()

    def set(self, user_id, permissions, role=None) -> None:
        if not user_id:
            return
        expires_at = self._clock() + self.ttl_seconds
        grant = CachedGrant(role=role, permissions=list(permissions))
        with self._lock:
            self._entries[str(user_id)] = (grant, expires_at)

    def get_grant(self, user_id) -> Optional[CachedGrant]:
        if not user_id:
            return None
        key = str(user_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            grant, expires_at = entry
            if self._clock() > expires_at:
                del self._entries[key]
                return None
            return CachedGrant(role=grant.role, permissions=list(grant.permissions))

    def get(self, user_id) -> Optional[List[str]]:
        grant = self.get_grant(user_id)
        return grant.permissions if grant is not None else None

    def has(self, user_id) -> bool:
        return self.get_grant(user_id) is not None

    def clear(self, user_id=None) -> None:
        with self._lock:
            if user_id:
                self._entries.pop(str(user_id), None)
            else:
                self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def cleanup(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if now > expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)
