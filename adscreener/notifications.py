"""
Notification list helpers shared by the client and the server.

Lists are always newest first. None of these functions mutate their
inputs; each returns a new list.
"""
import dataclasses
import uuid
from typing import Iterable

from adscreener.config import MAX_NOTIFICATIONS
from adscreener.models import LEVELS, Notification, utc_now

DEFAULT_TITLE   = "Notification"
DEFAULT_MESSAGE = "You have a new update."
DEFAULT_LEVEL   = "info"
DEFAULT_TYPE    = "realtime_update"


def new_client_id() -> str:
    return uuid.uuid4().hex[:12]


def normalize_push(payload: dict) -> Notification:
    """
    Build a Notification from a frame pushed over the socket.

    Missing fields get display defaults. A frame without a server id gets
    a client-generated id so read/clear can target it.
    """
    level = payload.get("level") or DEFAULT_LEVEL
    server_id = str(payload.get("_id") or payload.get("id") or "")
    return Notification(
        id=server_id,
        user_id=str(payload.get("userId") or ""),
        title=str(payload.get("title") or DEFAULT_TITLE),
        message=str(payload.get("message") or DEFAULT_MESSAGE),
        level=level if level in LEVELS else DEFAULT_LEVEL,
        type=str(payload.get("type") or DEFAULT_TYPE),
        deep_link=payload.get("deepLink") or None,
        created_at=str(payload.get("createdAt") or utc_now()),
        is_read=bool(payload.get("isRead", False)),
        client_generated_id="" if server_id else new_client_id(),
    )


def cap(notifications: list[Notification], limit: int = MAX_NOTIFICATIONS) -> list[Notification]:
    return list(notifications[:limit])


def merge_push(notifications: list[Notification], incoming: Notification,
               limit: int = MAX_NOTIFICATIONS) -> list[Notification]:
    """Update a record with the same server id in place, otherwise prepend."""
    if incoming.id:
        for i, n in enumerate(notifications):
            if n.id == incoming.id:
                merged = list(notifications)
                merged[i] = incoming
                return cap(merged, limit)
    return cap([incoming, *notifications], limit)


def mark_read(notifications: list[Notification], keys: Iterable[str],
              value: bool = True) -> list[Notification]:
    """Set is_read to `value` on every record whose key is in `keys`."""
    wanted = set(keys)
    return [
        dataclasses.replace(n, is_read=value) if n.key in wanted and n.is_read != value else n
        for n in notifications
    ]


def find(notifications: list[Notification], key: str) -> Notification | None:
    for n in notifications:
        if key and (n.id == key or n.client_generated_id == key):
            return n
    return None
