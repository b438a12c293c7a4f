from __future__ import annotations

from functools import wraps
from typing import Any

from flask import Flask, g, jsonify, request
from loguru import logger
from werkzeug.exceptions import HTTPException

from ..core.exceptions import AuthenticationError, DomainError, ValidationError
from ..users.tokens import IdentityClaims, TokenService


def make_auth_required(tokens: TokenService):
    """Decorator factory: verify the bearer token and expose it as ``g.identity``."""

    def auth_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            header = request.headers.get("Authorization", "")
            if not header.startswith("Bearer "):
                raise AuthenticationError("No token provided")
            identity = tokens.verify(header[len("Bearer "):].strip())
            if identity is None:
                raise AuthenticationError("Invalid token")
            g.identity = identity
            return view(*args, **kwargs)

        return wrapper

    return auth_required


def current_identity() -> IdentityClaims:
    return g.identity


def json_body() -> dict:
    data: Any = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def _domain_error(e: DomainError):
        return jsonify({"error": str(e)}), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({"error": "Internal server error"}), 500
