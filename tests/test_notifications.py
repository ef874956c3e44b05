"""Tests for the pure notification list helpers."""

from __future__ import annotations

from adscreener import notifications as notif
from adscreener.models import Notification


def test_normalize_keeps_server_fields() -> None:
    n = notif.normalize_push({
        "_id": "abc", "userId": "u1", "title": "Ad Approved", "message": "Your ad is live",
        "level": "success", "deepLink": "/submitter/ads", "type": "ad_reviewed",
        "createdAt": "2026-01-01T00:00:00+00:00", "isRead": True,
    })

    assert n == Notification(
        id="abc", user_id="u1", title="Ad Approved", message="Your ad is live",
        level="success", deep_link="/submitter/ads", type="ad_reviewed",
        created_at="2026-01-01T00:00:00+00:00", is_read=True,
    )
    assert n.key == "abc"
    assert n.is_persisted


def test_normalize_unknown_level_falls_back_to_info() -> None:
    assert notif.normalize_push({"level": "critical"}).level == "info"


def test_normalize_assigns_distinct_client_ids() -> None:
    a = notif.normalize_push({})
    b = notif.normalize_push({})

    assert a.client_generated_id and b.client_generated_id
    assert a.client_generated_id != b.client_generated_id
    assert a.key == a.client_generated_id
    assert not a.is_persisted


def test_merge_prepends_new_and_caps() -> None:
    existing = [Notification(id=f"n{i}") for i in range(3)]

    merged = notif.merge_push(existing, Notification(id="new"), limit=3)

    assert [n.id for n in merged] == ["new", "n0", "n1"]
    assert [n.id for n in existing] == ["n0", "n1", "n2"]


def test_merge_replaces_matching_server_id_in_place() -> None:
    existing = [Notification(id="n0"), Notification(id="n1", title="old")]

    merged = notif.merge_push(existing, Notification(id="n1", title="new"))

    assert [(n.id, n.title) for n in merged] == [("n0", ""), ("n1", "new")]


def test_mark_read_sets_value_by_key() -> None:
    items = [Notification(id="n0"), Notification(client_generated_id="c1"), Notification(id="n2")]

    marked = notif.mark_read(items, ["c1", "n2"])
    unmarked = notif.mark_read(marked, ["n2"], False)

    assert [n.is_read for n in marked] == [False, True, True]
    assert [n.is_read for n in unmarked] == [False, True, False]


def test_find_matches_either_identifier() -> None:
    items = [Notification(id="n0"), Notification(client_generated_id="c1")]

    assert notif.find(items, "n0") is items[0]
    assert notif.find(items, "c1") is items[1]
    assert notif.find(items, "") is None
    assert notif.find(items, "missing") is None


def test_wire_round_trip_uses_mongo_style_id() -> None:
    n = Notification(id="abc", user_id="u1", title="t", message="m", deep_link="/x")

    wire = n.to_dict()

    assert wire["_id"] == "abc"
    assert wire["deepLink"] == "/x"
    assert "clientGeneratedId" not in wire
    assert Notification.from_dict(wire) == n
