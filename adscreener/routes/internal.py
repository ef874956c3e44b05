"""
Internal trigger endpoints, called by other AdScreener services.

Served on the internal port only (see internal_server.py). These persist
notifications and push realtime frames; they never read user sessions.
"""
import logging

from flask import Blueprint, jsonify, request

from adscreener import state

log = logging.getLogger("adscreener.routes.internal")

bp = Blueprint("internal", __name__, url_prefix="/internal")


def deliver_user_notification(user_id: str, message_data: dict, type: str | None = None) -> bool:
    """
    Persist a notification for one user, then push it over their socket.

    The pushed frame is the stored record (with its _id) so the client can
    later mark it read. If storing fails the raw message_data is pushed
    instead, which the client treats as push-only. Returns whether the
    push reached a connected socket.
    """
    frame = message_data
    try:
        stored = state.store.create(
            user_id=user_id,
            title=str(message_data.get("title") or ""),
            message=str(message_data.get("message") or ""),
            level=message_data.get("level") or "info",
            deep_link=message_data.get("deepLink"),
            type=type or message_data.get("type"),
        )
        frame = stored.to_dict()
        log.info("Notification for %s stored with id %s", user_id, stored.id)
    except ValueError as exc:
        log.error("Failed to store notification for %s: %s", user_id, exc)
    return state.hub.send_to_user(user_id, frame)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


@bp.route("/notify-reviewer-dashboard-update", methods=["POST"])
def notify_reviewer_dashboard_update():
    count = state.hub.notify_reviewers_dashboard_update()
    return jsonify({"message": "Reviewer dashboard update notification triggered",
                    "delivered": count})


@bp.route("/notify-submitter-dashboard-update", methods=["POST"])
def notify_submitter_dashboard_update():
    data = _json_body()
    if data is None:
        return jsonify({"message": "Invalid JSON in request body"}), 400
    submitter_id = data.get("submitterId")
    if not submitter_id:
        return jsonify({"message": "Missing submitterId in request body"}), 400
    delivered = state.hub.notify_submitter_dashboard_update(str(submitter_id))
    return jsonify({"message": f"Submitter {submitter_id} dashboard update notification triggered",
                    "delivered": delivered})


@bp.route("/send-user-notification", methods=["POST"])
def send_user_notification():
    data = _json_body()
    if data is None:
        return jsonify({"message": "Invalid JSON or error processing request"}), 400
    user_id      = data.get("userId")
    message_data = data.get("messageData")
    if not user_id or not isinstance(message_data, dict):
        return jsonify({"message": "Missing userId or messageData in request body"}), 400

    if deliver_user_notification(str(user_id), message_data, data.get("type")):
        return jsonify({"message": "User notification processed"})
    return jsonify({"message": "Failed to send user notification via WebSocket "
                               "(store may have succeeded)"}), 500


@bp.route("/broadcast-notification", methods=["POST"])
def broadcast_notification():
    data = _json_body()
    if data is None:
        return jsonify({"message": "Invalid JSON or error processing broadcast request"}), 400
    message_data = data.get("messageData")
    if not message_data:
        return jsonify({"message": "Missing messageData for broadcast"}), 400
    count = state.hub.broadcast(message_data)
    return jsonify({"message": "Broadcast notification triggered", "delivered": count})
