from __future__ import annotations

from typing import Any, Optional

from flask import Flask, jsonify

from ..access.guard import HR_ROLES, AccessGuard
from ..common.http import current_identity, json_body, make_auth_required
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import NotFoundError, ValidationError
from .service import UNCHANGED


def _parse_role(value: Any) -> Optional[Role]:
    if value is None:
        return None
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown role: {value!r}")


def register(app: Flask, container: Container) -> None:
    auth_required = make_auth_required(container.tokens)
    accounts = container.user_service

    @app.route("/health", methods=["GET"], endpoint="health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/auth/login", methods=["POST"], endpoint="login")
    def login():
        body = json_body()
        result = container.auth_service.authenticate(body.get("email", ""), body.get("password", ""))
        return jsonify({"token": result.token, "user": result.user.public_dict()})

    @app.route("/auth/me", methods=["GET"], endpoint="me")
    @auth_required
    def me():
        user = container.users_repo.get_by_id(current_identity().user_id)
        if not user or not user.is_active:
            raise NotFoundError("User not found")
        return jsonify({"user": user.public_dict()})

    # -------- HR user administration --------
    @app.route("/hr/users", methods=["GET"], endpoint="hr_list_users")
    @auth_required
    def hr_list_users():
        AccessGuard.require_role(current_identity(), HR_ROLES)
        return jsonify({"users": [u.admin_dict() for u in accounts.list_accounts()]})

    @app.route("/hr/users", methods=["POST"], endpoint="hr_create_user")
    @auth_required
    def hr_create_user():
        AccessGuard.require_role(current_identity(), HR_ROLES)
        body = json_body()
        user_id = accounts.create_account(
            full_name=body.get("name"),
            email=body.get("email"),
            password=body.get("password"),
            role=_parse_role(body.get("role")) or Role.STAFF,
            manager_id=body.get("managerId"),
            pay_rate=body.get("payRate", "0"),
        )
        user = container.users_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return jsonify({"user": user.admin_dict()}), 201

    @app.route("/hr/users/<int:user_id>", methods=["PUT"], endpoint="hr_update_user")
    @auth_required
    def hr_update_user(user_id: int):
        AccessGuard.require_role(current_identity(), HR_ROLES)
        body = json_body()
        user = accounts.update_account(
            user_id,
            full_name=body.get("name"),
            email=body.get("email"),
            role=_parse_role(body.get("role")),
            manager_id=body["managerId"] if "managerId" in body else UNCHANGED,
            pay_rate=body.get("payRate"),
            password=body.get("password"),
            is_active=body.get("isActive"),
        )
        return jsonify({"user": user.admin_dict()})
