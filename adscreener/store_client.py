"""
REST client for the notification store.

The store owns the authoritative notification list. Every request carries
the acting user in the X-User-Id header. Any transport failure or non-2xx
response surfaces as StoreError so callers have a single thing to catch.
"""
import logging

import requests

from adscreener.config import API_URL, REQUEST_TIMEOUT
from adscreener.models import Notification

log = logging.getLogger("adscreener.store_client")


class StoreError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotificationStoreClient:

    def __init__(self, base_url: str = API_URL, timeout: float = REQUEST_TIMEOUT,
                 session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout  = timeout
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, user_id: str, body: dict | None = None):
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(
                method, url,
                json=body,
                headers={"X-User-Id": user_id},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StoreError(f"{method} {path} failed: {exc}") from exc
        if not resp.ok:
            raise StoreError(f"{method} {path} returned {resp.status_code}",
                             status_code=resp.status_code)
        log.debug("%s %s -> %s", method, path, resp.status_code)
        return resp

    def list_notifications(self, user_id: str) -> list[Notification]:
        resp = self._request("GET", "/notifications", user_id)
        try:
            data = resp.json()
        except ValueError as exc:
            raise StoreError(f"GET /notifications returned invalid JSON: {exc}") from exc
        if isinstance(data, dict):
            data = data.get("notifications", [])
        if not isinstance(data, list):
            raise StoreError("GET /notifications returned an unexpected payload")
        return [Notification.from_dict(d) for d in data if isinstance(d, dict)]

    def mark_read(self, user_id: str, ids: list[str]) -> None:
        self._request("POST", "/notifications", user_id, {"notificationIds": list(ids)})

    def clear_all(self, user_id: str) -> None:
        self._request("DELETE", "/notifications", user_id, {"userId": user_id})

    def clear_read(self, user_id: str, ids: list[str]) -> None:
        self._request("DELETE", "/notifications", user_id,
                      {"notificationIds": list(ids), "action": "clearRead"})

    def create(self, user_id: str, title: str, message: str, level: str = "info",
               deep_link: str | None = None, type: str | None = None) -> Notification:
        """Persist a notification for `user_id` and return the stored record."""
        body = {"userId": user_id, "title": title, "message": message, "level": level}
        if deep_link:
            body["deepLink"] = deep_link
        if type:
            body["type"] = type
        resp = self._request("POST", "/notifications/create", user_id, body)
        return Notification.from_dict(resp.json().get("notification", {}))
