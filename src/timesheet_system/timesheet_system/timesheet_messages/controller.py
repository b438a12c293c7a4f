from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import current_identity, json_body, make_auth_required
from ..container import Container


def register(app: Flask, container: Container) -> None:
    auth_required = make_auth_required(container.tokens)
    messages = container.message_service

    @app.route("/timesheets/<int:timesheet_id>/messages", methods=["GET"], endpoint="list_timesheet_messages")
    @auth_required
    def list_timesheet_messages(timesheet_id: int):
        rows = messages.list_messages(timesheet_id=timesheet_id, actor=current_identity())
        return jsonify({"messages": [m.to_dict() for m in rows]})

    @app.route("/timesheets/<int:timesheet_id>/messages", methods=["POST"], endpoint="post_timesheet_message")
    @auth_required
    def post_timesheet_message(timesheet_id: int):
        body = json_body()
        message = messages.post_message(timesheet_id=timesheet_id, actor=current_identity(), content=body.get("content"))
        return jsonify({"message": message.to_dict()}), 201
