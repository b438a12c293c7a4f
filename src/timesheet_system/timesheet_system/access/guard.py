"""Role and ownership checks for timesheet operations.

A timesheet operation declares the capability it needs; the guard decides
from the caller's identity and the owner's manager reference. Denials raise
``AuthorizationError`` (HTTP 403). Callers that are not allowed still learn
that the timesheet exists: a missing timesheet is ``NotFoundError`` and an
unauthorized one is ``AuthorizationError``.
"""
from __future__ import annotations

from enum import Enum

from ..core.enums import Role
from ..core.exceptions import AuthorizationError
from ..users.model import User
from ..users.tokens import IdentityClaims


class Capability(str, Enum):
    IS_OWNER = "IS_OWNER"
    IS_DIRECT_MANAGER_OF_OWNER = "IS_DIRECT_MANAGER_OF_OWNER"
    HAS_ROLE_HR_OR_ADMIN = "HAS_ROLE_HR_OR_ADMIN"


HR_ROLES = frozenset({Role.HR, Role.ADMIN})


class AccessGuard:
    def allows(self, actor: IdentityClaims, capability: Capability, owner: User) -> bool:
        if capability is Capability.IS_OWNER:
            return actor.user_id == owner.user_id
        if capability is Capability.IS_DIRECT_MANAGER_OF_OWNER:
            return owner.manager_id is not None and owner.manager_id == actor.user_id
        if capability is Capability.HAS_ROLE_HR_OR_ADMIN:
            return actor.role in HR_ROLES
        raise ValueError(f"Unknown capability: {capability!r}")

    def require(self, actor: IdentityClaims, capability: Capability, owner: User, *, action: str) -> None:
        if not self.allows(actor, capability, owner):
            raise AuthorizationError(f"You are not allowed to {action} this timesheet")

    def can_view(self, actor: IdentityClaims, owner: User) -> bool:
        return any(self.allows(actor, c, owner) for c in Capability)

    def require_view(self, actor: IdentityClaims, owner: User) -> None:
        if not self.can_view(actor, owner):
            raise AuthorizationError("You are not allowed to view this timesheet")

    @staticmethod
    def require_role(actor: IdentityClaims, roles: frozenset) -> None:
        if actor.role not in roles:
            raise AuthorizationError("Forbidden")
