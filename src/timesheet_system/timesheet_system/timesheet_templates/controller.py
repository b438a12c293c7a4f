from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import current_identity, json_body, make_auth_required
from ..container import Container


def register(app: Flask, container: Container) -> None:
    auth_required = make_auth_required(container.tokens)
    templates = container.template_service

    @app.route("/timesheet-templates", methods=["GET"], endpoint="list_templates")
    @auth_required
    def list_templates():
        rows = templates.list_templates(user_id=current_identity().user_id)
        return jsonify({"templates": [t.to_dict() for t in rows]})

    @app.route("/timesheet-templates", methods=["POST"], endpoint="create_template")
    @auth_required
    def create_template():
        body = json_body()
        template = templates.create_template(
            user_id=current_identity().user_id,
            name=body.get("name"),
            description=body.get("description"),
            patterns=body.get("patterns"),
            timesheet_id=body.get("timesheetId"),
            is_default=bool(body.get("isDefault", False)),
        )
        return jsonify({"template": template.to_dict()}), 201

    @app.route("/timesheet-templates/<int:template_id>", methods=["DELETE"], endpoint="delete_template")
    @auth_required
    def delete_template(template_id: int):
        templates.delete_template(user_id=current_identity().user_id, template_id=template_id)
        return jsonify({"message": "Template deleted"})
