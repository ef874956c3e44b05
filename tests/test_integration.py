"""NotificationClient against the real REST routes and internal triggers."""

from __future__ import annotations

import pytest

from adscreener import state
from adscreener.client import NotificationClient
from adscreener.internal_server import create_internal_app
from adscreener.store_client import NotificationStoreClient


class Bridge:
    """Server-side hub socket that delivers frames straight to a client's FakeSocket."""

    def __init__(self, client_socket) -> None:
        self.client_socket = client_socket

    def send(self, data: str) -> None:
        self.client_socket.push_raw(data)


@pytest.fixture()
def live_client(store_session, sockets, timers):
    client = NotificationClient(
        "u1",
        store=NotificationStoreClient("http://test", session=store_session),
        realtime_url="ws://test/ws",
        socket_factory=sockets,
        timer_factory=timers,
        spawn=lambda job: job(),
    )
    sockets.last.open()
    state.hub.add("u1", None, Bridge(sockets.last))
    yield client
    client.dispose()


def test_initial_load_comes_from_store(store_session, sockets, timers) -> None:
    older = state.store.create(user_id="u1", title="older", message="m")
    newer = state.store.create(user_id="u1", title="newer", message="m")

    client = NotificationClient(
        "u1",
        store=NotificationStoreClient("http://test", session=store_session),
        realtime_url="ws://test/ws",
        socket_factory=sockets,
        timer_factory=timers,
        spawn=lambda job: job(),
    )

    assert [n.id for n in client.notifications] == [newer.id, older.id]
    assert client.unread_count == 2
    assert not client.is_loading


def test_pushed_notification_can_be_marked_read_and_cleared(live_client) -> None:
    internal = create_internal_app().test_client()

    resp = internal.post("/internal/send-user-notification", json={
        "userId": "u1",
        "messageData": {"title": "Ad Approved", "message": "Your ad is live", "level": "success"},
    })
    assert resp.status_code == 200

    [pushed] = live_client.notifications
    [stored] = state.store.list_for_user("u1")
    assert pushed.id == stored.id
    assert pushed.level == "success"

    live_client.mark_as_read(pushed.id)
    assert state.store.list_for_user("u1")[0].is_read
    assert live_client.unread_count == 0

    live_client.clear_read_notifications()
    assert state.store.list_for_user("u1") == []
    assert live_client.notifications == ()


def test_mark_all_and_clear_all_persist(live_client) -> None:
    for title in ("a", "b"):
        state.store.create(user_id="u1", title=title, message="m")
    live_client.refresh()
    assert live_client.unread_count == 2

    live_client.mark_all_as_read()
    assert all(n.is_read for n in state.store.list_for_user("u1"))

    live_client.clear_notifications()
    assert state.store.list_for_user("u1") == []
    assert live_client.notifications == ()


def test_dashboard_refresh_reaches_typed_handler(live_client, sockets) -> None:
    seen = []
    live_client.register_handler("DASHBOARD_REFRESH_REQUESTED", seen.append)
    state.hub.add("u1", "reviewer", Bridge(sockets.last))

    create_internal_app().test_client().post("/internal/notify-reviewer-dashboard-update")

    assert len(seen) == 1
    assert live_client.notifications == ()
