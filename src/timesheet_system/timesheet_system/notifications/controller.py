from __future__ import annotations

from flask import Flask, Response, jsonify, request, stream_with_context

from ..common.http import current_identity, make_auth_required
from ..container import Container
from ..core.exceptions import AuthenticationError


def register(app: Flask, container: Container) -> None:
    auth_required = make_auth_required(container.tokens)
    service = container.notification_service

    @app.route("/notifications", methods=["GET"], endpoint="list_notifications")
    @auth_required
    def list_notifications():
        rows = service.list_for_user(user_id=current_identity().user_id)
        return jsonify(
            {
                "notifications": [n.to_payload() for n in rows],
                "unreadCount": sum(1 for n in rows if not n.is_read),
            }
        )

    @app.route("/notifications/<int:notification_id>/read", methods=["POST"], endpoint="read_notification")
    @auth_required
    def read_notification(notification_id: int):
        notification = service.mark_read(user_id=current_identity().user_id, notification_id=notification_id)
        return jsonify({"notification": notification.to_payload()})

    @app.route("/notifications/<int:notification_id>", methods=["DELETE"], endpoint="dismiss_notification")
    @auth_required
    def dismiss_notification(notification_id: int):
        service.dismiss(user_id=current_identity().user_id, notification_id=notification_id)
        return jsonify({"message": "Notification dismissed"})

    @app.route("/notifications", methods=["DELETE"], endpoint="clear_notifications")
    @auth_required
    def clear_notifications():
        removed = service.clear_all(user_id=current_identity().user_id)
        return jsonify({"message": "Notifications cleared", "removed": removed})

    @app.route("/notifications/stream", methods=["GET"], endpoint="notification_stream")
    def notification_stream():
        # EventSource cannot send headers, so the token may also come as a query parameter.
        header = request.headers.get("Authorization", "")
        token = header[len("Bearer "):].strip() if header.startswith("Bearer ") else request.args.get("token", "")
        identity = container.tokens.verify(token)
        if identity is None:
            raise AuthenticationError("Invalid token")

        sub = container.live.subscribe(identity.user_id)
        return Response(
            stream_with_context(container.live.iter_events(sub)),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
