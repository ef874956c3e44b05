"""Shared fakes and fixtures for the notification tests."""

from __future__ import annotations

import json
from urllib.parse import urlsplit

import pytest

from adscreener import state
from adscreener.client import NotificationClient
from adscreener.models import Notification, ReadyState
from adscreener.store_client import StoreError


class FakeSocket:
    """Stands in for RealtimeSocket; tests drive its events by hand."""

    def __init__(self, url, on_open=None, on_message=None, on_error=None, on_close=None):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.ready_state = ReadyState.CONNECTING
        self.started = False
        self.closed_with: int | None = None

    def start(self) -> None:
        self.started = True

    def close(self, code: int = 1000, reason: str = "") -> None:
        if self.ready_state is ReadyState.CLOSED:
            return
        self.closed_with = code
        self.ready_state = ReadyState.CLOSED
        self.on_close(code, reason)

    # Server-side events

    def open(self) -> None:
        self.ready_state = ReadyState.OPEN
        self.on_open()

    def push(self, payload) -> None:
        self.on_message(json.dumps(payload))

    def push_raw(self, text: str) -> None:
        self.on_message(text)

    def error(self, exc: Exception | None = None) -> None:
        self.on_error(exc or ConnectionError("boom"))

    def drop(self, code: int = 1006) -> None:
        self.ready_state = ReadyState.CLOSED
        self.on_close(code, "")


class SocketFactory:
    def __init__(self) -> None:
        self.sockets: list[FakeSocket] = []

    def __call__(self, url, **callbacks) -> FakeSocket:
        sock = FakeSocket(url, **callbacks)
        self.sockets.append(sock)
        return sock

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


class FakeTimer:
    def __init__(self, interval, function) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class TimerFactory:
    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, function) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]


class FakeStore:
    """In-test NotificationStoreClient double with switchable failures."""

    def __init__(self) -> None:
        self.items: list[Notification] = []
        self.fail_list = False
        self.fail_mark = False
        self.fail_clear = False
        self.list_calls: list[str] = []
        self.mark_calls: list[tuple[str, list[str]]] = []
        self.clear_all_calls: list[str] = []
        self.clear_read_calls: list[tuple[str, list[str]]] = []

    def list_notifications(self, user_id: str) -> list[Notification]:
        self.list_calls.append(user_id)
        if self.fail_list:
            raise StoreError("GET /notifications returned 500", status_code=500)
        return list(self.items)

    def mark_read(self, user_id: str, ids: list[str]) -> None:
        self.mark_calls.append((user_id, list(ids)))
        if self.fail_mark:
            raise StoreError("POST /notifications returned 500", status_code=500)

    def clear_all(self, user_id: str) -> None:
        self.clear_all_calls.append(user_id)
        if self.fail_clear:
            raise StoreError("DELETE /notifications returned 500", status_code=500)

    def clear_read(self, user_id: str, ids: list[str]) -> None:
        self.clear_read_calls.append((user_id, list(ids)))
        if self.fail_clear:
            raise StoreError("DELETE /notifications returned 500", status_code=500)


class Deferred:
    """A spawn() that queues jobs until the test runs them."""

    def __init__(self) -> None:
        self.jobs: list = []

    def __call__(self, job) -> None:
        self.jobs.append(job)

    def run(self, index: int = 0) -> None:
        self.jobs.pop(index)()

    def run_all(self) -> None:
        while self.jobs:
            self.run()


class FlaskSession:
    """requests.Session look-alike that sends requests to a Flask test client."""

    class _Response:
        def __init__(self, resp) -> None:
            self._resp = resp
            self.status_code = resp.status_code
            self.ok = resp.status_code < 400

        def json(self):
            return self._resp.get_json()

    def __init__(self, test_client) -> None:
        self._client = test_client

    def request(self, method, url, json=None, headers=None, timeout=None):
        path = urlsplit(url).path
        return self._Response(self._client.open(path, method=method, json=json, headers=headers))


@pytest.fixture()
def make_notification():
    """Build a notification owned by u1."""

    def _make(id: str = "", title: str = "Ad Approved", is_read: bool = False,
              client_id: str = "", **kwargs) -> Notification:
        kwargs.setdefault("created_at", "2026-01-01T00:00:00+00:00")
        return Notification(id=id, user_id="u1", title=title, message="...",
                            is_read=is_read, client_generated_id=client_id, **kwargs)
    return _make


@pytest.fixture(autouse=True)
def fresh_state():
    """Give every test an empty server store and hub."""

    state.reset()
    yield


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def sockets() -> SocketFactory:
    return SocketFactory()


@pytest.fixture()
def timers() -> TimerFactory:
    return TimerFactory()


@pytest.fixture()
def make_client(store, sockets, timers):
    """Build a NotificationClient wired to the fakes, running jobs inline."""

    def _make(user_id="u1", role=None, handlers=None, spawn=None) -> NotificationClient:
        return NotificationClient(
            user_id, role, handlers,
            store=store,
            realtime_url="ws://test/ws",
            socket_factory=sockets,
            timer_factory=timers,
            spawn=spawn or (lambda job: job()),
        )
    return _make


@pytest.fixture()
def deferred() -> Deferred:
    return Deferred()


@pytest.fixture()
def app():
    from adscreener.server import create_app

    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def http(app):
    return app.test_client()


@pytest.fixture()
def store_session(http) -> FlaskSession:
    """A requests-style session backed by the public Flask app."""

    return FlaskSession(http)
