from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from loguru import logger

from ..core.constants import DEFAULT_TOKEN_MAX_AGE_SECONDS
from ..core.enums import Role
from .model import User


@dataclass(frozen=True)
class IdentityClaims:
    """What a verified bearer token tells us about the caller."""

    user_id: int
    role: Role
    name: str = ""


class TokenService:
    """Issue and verify signed, time-limited bearer tokens."""

    _SALT = "timesheet-system.auth"

    def __init__(self, secret_key: str, *, max_age_seconds: int = DEFAULT_TOKEN_MAX_AGE_SECONDS):
        self._serializer = URLSafeTimedSerializer(secret_key, salt=self._SALT)
        self._max_age = int(max_age_seconds)

    def issue(self, user: User) -> str:
        return self._serializer.dumps({"id": user.user_id, "role": user.role.value, "name": user.full_name})

    def verify(self, token: str) -> Optional[IdentityClaims]:
        if not token:
            return None
        try:
            data = self._serializer.loads(token, max_age=self._max_age)
        except SignatureExpired:
            logger.info("Rejected expired token")
            return None
        except BadSignature:
            logger.warning("Rejected token with bad signature")
            return None

        try:
            return IdentityClaims(user_id=int(data["id"]), role=Role(data["role"]), name=str(data.get("name", "")))
        except (KeyError, TypeError, ValueError):
            logger.warning("Rejected token with malformed payload")
            return None
