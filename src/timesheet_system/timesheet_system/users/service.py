from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Sequence

from loguru import logger
from werkzeug.security import check_password_hash, generate_password_hash

from ..common.validators import require_decimal, require_min_length, require_non_empty, require_positive_int
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from .model import User
from .repository import UserRepository
from .tokens import TokenService

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MANAGER_ROLES = frozenset({Role.MANAGER, Role.ADMIN})

# Marks an optional field the caller did not send (``None`` clears the manager).
UNCHANGED: Any = object()


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: User


class AuthService:
    """Use case: authenticate user (login) and issue a bearer token."""

    def __init__(self, users: UserRepository, tokens: TokenService):
        self._users = users
        self._tokens = tokens

    def authenticate(self, email: str, password: str) -> LoginResult:
        user = self._users.get_by_email((email or "").strip().lower())
        if not user or not user.is_active:
            raise AuthenticationError("Invalid email or password")

        try:
            ok = check_password_hash(user.password_hash, password or "")
        except Exception:
            # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
            ok = False

        if not ok:
            raise AuthenticationError("Invalid email or password")

        return LoginResult(token=self._tokens.issue(user), user=user)


class UserService:
    """Use case: manage user accounts (HR/admin screens and tooling)."""

    def __init__(self, users: UserRepository):
        self._users = users

    @staticmethod
    def _clean_email(email: str) -> str:
        email = require_non_empty(email, "Email").lower()
        if not _EMAIL_RE.match(email):
            raise ValidationError("Invalid email format")
        return email

    @staticmethod
    def _clean_pay_rate(pay_rate: Any) -> Decimal:
        value = require_decimal(pay_rate, "Pay rate")
        if value < 0:
            raise ValidationError("Pay rate cannot be negative")
        return value

    def _check_manager(self, manager_id: Optional[int], *, user_id: Optional[int] = None) -> Optional[int]:
        if manager_id is None:
            return None
        manager_id = require_positive_int(manager_id, "Manager")
        if user_id is not None and manager_id == int(user_id):
            raise ValidationError("A user cannot be their own manager")
        manager = self._users.get_by_id(manager_id)
        if not manager or manager.role not in _MANAGER_ROLES:
            raise ValidationError("Manager does not exist")
        return manager_id

    def list_accounts(self) -> Sequence[User]:
        return self._users.list_all()

    def create_account(
        self,
        *,
        full_name: str,
        email: str,
        password: str,
        role: Role,
        manager_id: Optional[int] = None,
        pay_rate: Decimal = Decimal("0"),
    ) -> int:
        full_name = require_non_empty(full_name, "Full name")
        email = self._clean_email(email)
        require_min_length(password, "Password", 6)
        pay_rate = self._clean_pay_rate(pay_rate)

        if self._users.get_by_email(email):
            raise ConflictError("Email already registered")
        manager_id = self._check_manager(manager_id)

        user_id = self._users.create_user(
            full_name=full_name,
            email=email,
            password_hash=generate_password_hash(password),
            role=role,
            manager_id=manager_id,
            pay_rate=pay_rate,
        )
        logger.info(f"User {user_id} <{email}> created as {role.value}")
        return user_id

    def update_account(
        self,
        user_id: int,
        *,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[Role] = None,
        manager_id: Any = UNCHANGED,
        pay_rate: Any = None,
        password: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        """Change only the fields that were given.

        Role changes reach the user's bearer token at its next login.
        """
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")

        changes: dict[str, Any] = {}
        if full_name is not None:
            changes["full_name"] = require_non_empty(full_name, "Full name")
        if email is not None:
            email = self._clean_email(email)
            existing = self._users.get_by_email(email)
            if existing and existing.user_id != user.user_id:
                raise ConflictError("Email is already taken by another user")
            changes["email"] = email
        if role is not None:
            changes["role"] = role
        if manager_id is not UNCHANGED:
            changes["manager_id"] = self._check_manager(manager_id, user_id=user.user_id)
        if pay_rate is not None:
            changes["pay_rate"] = self._clean_pay_rate(pay_rate)
        if password is not None:
            require_min_length(password, "Password", 6)
            changes["password_hash"] = generate_password_hash(password)
        if is_active is not None:
            changes["is_active"] = bool(is_active)

        if changes and not self._users.update_user(user.user_id, changes):
            raise NotFoundError("User not found")
        logger.info(f"User {user.user_id} updated: {', '.join(sorted(changes)) or 'no changes'}")

        updated = self._users.get_by_id(user.user_id)
        if not updated:
            raise NotFoundError("User not found")
        return updated
