"""
In-memory notification store served by the REST routes.

Records are kept per user, newest first. Every method is thread-safe;
returned Notifications are immutable, so callers can hold on to them.
"""
import dataclasses
import threading
import uuid

from adscreener.config import MAX_NOTIFICATIONS
from adscreener.models import LEVELS, Notification, utc_now


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


class NotificationStore:

    def __init__(self):
        self._by_user: dict[str, list[Notification]] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str, title: str, message: str, level: str = "info",
               deep_link: str | None = None, type: str | None = None) -> Notification:
        if not user_id:
            raise ValueError("user_id is required")
        if level not in LEVELS:
            raise ValueError(f"level must be one of {LEVELS}")
        n = Notification(
            id=_new_id(),
            user_id=user_id,
            title=title,
            message=message,
            level=level,
            deep_link=deep_link or None,
            type=type or "general",
            created_at=utc_now(),
            is_read=False,
        )
        with self._lock:
            self._by_user.setdefault(user_id, []).insert(0, n)
        return n

    def list_for_user(self, user_id: str, limit: int = MAX_NOTIFICATIONS) -> list[Notification]:
        with self._lock:
            return list(self._by_user.get(user_id, [])[:limit])

    def mark_read(self, user_id: str, ids) -> int:
        """Mark the user's records in `ids` read. Returns how many changed."""
        wanted = set(ids)
        changed = 0
        with self._lock:
            records = self._by_user.get(user_id, [])
            for i, n in enumerate(records):
                if n.id in wanted and not n.is_read:
                    records[i] = dataclasses.replace(n, is_read=True)
                    changed += 1
        return changed

    def delete_all(self, user_id: str) -> int:
        with self._lock:
            return len(self._by_user.pop(user_id, []))

    def delete_read(self, user_id: str, ids) -> int:
        """Delete the user's read records whose id is in `ids`."""
        wanted = set(ids)
        with self._lock:
            records = self._by_user.get(user_id, [])
            kept = [n for n in records if not (n.id in wanted and n.is_read)]
            removed = len(records) - len(kept)
            if user_id in self._by_user:
                self._by_user[user_id] = kept
        return removed
