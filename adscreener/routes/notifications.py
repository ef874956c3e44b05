import logging

from flask import Blueprint, jsonify, request

from adscreener import state
from adscreener.models import LEVELS
from adscreener.routes.internal import deliver_user_notification

log = logging.getLogger("adscreener.routes.notifications")

bp = Blueprint("notifications", __name__)


def _current_user(body: dict | None = None) -> str:
    user_id = request.headers.get("X-User-Id") or request.args.get("userId", "")
    if not user_id and body:
        user_id = str(body.get("userId") or "")
    return user_id.strip()


def _json_body() -> dict | None:
    """The request's JSON object, {} when there is no body, None when malformed."""
    if not request.get_data():
        return {}
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _id_list(value) -> list[str] | None:
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        return None
    return value


@bp.route("/notifications")
def list_notifications():
    user_id = _current_user()
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401
    return jsonify([n.to_dict() for n in state.store.list_for_user(user_id)])


@bp.route("/notifications", methods=["POST"])
def mark_read():
    user_id = _current_user()
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401
    data = _json_body()
    if data is None:
        return jsonify({"error": "request body must be a JSON object"}), 400
    ids = _id_list(data.get("notificationIds"))
    if ids is None:
        return jsonify({"error": "notificationIds must be a list of ids"}), 400
    modified = state.store.mark_read(user_id, ids)
    log.info("Marked %d notification(s) read for %s", modified, user_id)
    return jsonify({"ok": True, "modified": modified})


@bp.route("/notifications", methods=["DELETE"])
def delete_notifications():
    data = _json_body()
    if data is None:
        return jsonify({"error": "request body must be a JSON object"}), 400
    user_id = _current_user(data)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401
    body_user = data.get("userId")
    if body_user and body_user != user_id:
        return jsonify({"error": "cannot clear another user's notifications"}), 403

    if data.get("action") == "clearRead":
        ids = _id_list(data.get("notificationIds"))
        if ids is None:
            return jsonify({"error": "notificationIds must be a list of ids"}), 400
        deleted = state.store.delete_read(user_id, ids)
    else:
        deleted = state.store.delete_all(user_id)
    log.info("Deleted %d notification(s) for %s", deleted, user_id)
    return jsonify({"ok": True, "deleted": deleted})


@bp.route("/notifications/create", methods=["POST"])
def create_notification():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON in request body"}), 400
    missing = [f for f in ("userId", "title", "message", "level") if not data.get(f)]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    if data["level"] not in LEVELS:
        return jsonify({"error": f"level must be one of {LEVELS}"}), 400

    n = state.store.create(
        user_id=str(data["userId"]),
        title=str(data["title"]),
        message=str(data["message"]),
        level=data["level"],
        deep_link=data.get("deepLink"),
        type=data.get("type"),
    )
    log.info("Notification %s stored for %s", n.id, n.user_id)
    return jsonify({"message": "Notification created successfully",
                    "notification": n.to_dict()}), 201


@bp.route("/notifications/send", methods=["POST"])
def send_notification():
    """Dispatch a realtime notification: {"type": "user"|"broadcast", "userId", "message"}."""
    data = _json_body()
    if not data:
        return jsonify({"error": "request body must be a JSON object"}), 400
    kind, message = data.get("type"), data.get("message")
    if not kind or not isinstance(message, dict):
        return jsonify({"error": "Missing type or message in request body"}), 400

    if kind == "user":
        user_id = data.get("userId")
        if not user_id:
            return jsonify({"error": "Missing userId for user-specific notification"}), 400
        if not deliver_user_notification(str(user_id), message):
            return jsonify({"error": "Failed to send user notification."}), 500
        return jsonify({"message": "Notification user processed."})
    if kind == "broadcast":
        delivered = state.hub.broadcast(message)
        return jsonify({"message": "Notification broadcast processed.", "delivered": delivered})
    return jsonify({"error": "Invalid notification type specified"}), 400
