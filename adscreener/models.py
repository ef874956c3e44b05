import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, get_args

Level = Literal["info", "success", "warning", "error"]
LEVELS: tuple[str, ...] = get_args(Level)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionState(enum.Enum):
    """Lifecycle of a NotificationClient's realtime connection."""
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECT_SCHEDULED = "reconnect_scheduled"
    CLOSED = "closed"


class ReadyState(enum.Enum):
    """Ready state of a single RealtimeSocket, mirroring the browser WebSocket."""
    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


@dataclass(frozen=True)
class Notification:
    """
    A user-scoped notification.

    `id` is the store-assigned identifier and is empty for a record that
    only ever arrived over the socket. Such records carry a
    `client_generated_id` instead, so `key` is always usable for lookups.
    """
    user_id: str = ""
    title: str = ""
    message: str = ""
    level: Level = "info"
    type: str = ""
    id: str = ""
    deep_link: str | None = None
    created_at: str = field(default_factory=utc_now)
    is_read: bool = False
    client_generated_id: str = ""   # local only, never sent to the store

    @property
    def key(self) -> str:
        return self.id or self.client_generated_id

    @property
    def is_persisted(self) -> bool:
        return bool(self.id)

    @classmethod
    def from_dict(cls, d: dict) -> "Notification":
        level = d.get("level") or "info"
        return cls(
            id=str(d.get("_id") or d.get("id") or ""),
            user_id=str(d.get("userId") or ""),
            title=str(d.get("title") or ""),
            message=str(d.get("message") or ""),
            level=level if level in LEVELS else "info",
            type=str(d.get("type") or ""),
            deep_link=d.get("deepLink") or None,
            created_at=str(d.get("createdAt") or utc_now()),
            is_read=bool(d.get("isRead", False)),
            client_generated_id=str(d.get("clientGeneratedId") or ""),
        )

    def to_dict(self) -> dict:
        """Serialize to the wire form used by the REST API and the socket."""
        out: dict[str, Any] = {
            "userId": self.user_id,
            "title": self.title,
            "message": self.message,
            "level": self.level,
            "type": self.type,
            "createdAt": self.created_at,
            "isRead": self.is_read,
        }
        if self.id:
            out["_id"] = self.id
        if self.deep_link:
            out["deepLink"] = self.deep_link
        if self.client_generated_id:
            out["clientGeneratedId"] = self.client_generated_id
        return out


@dataclass(frozen=True)
class NotificationState:
    """Immutable snapshot of everything a consuming UI renders."""
    notifications: tuple[Notification, ...] = ()
    is_loading: bool = False
    is_connected: bool = False

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)
