from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import Role
from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): services depend on this interface, not on a concrete DB.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def list_by_roles(self, roles: Iterable[Role]) -> Sequence[User]:
        """Active users holding any of ``roles``."""

        raise NotImplementedError

    def list_direct_reports(self, manager_id: int) -> Sequence[User]:
        raise NotImplementedError

    def create_user(
        self,
        *,
        full_name: str,
        email: str,
        password_hash: str,
        role: Role,
        manager_id: Optional[int] = None,
        pay_rate: Decimal = Decimal("0"),
    ) -> int:
        raise NotImplementedError

    def list_all(self) -> Sequence[User]:
        raise NotImplementedError

    def update_user(self, user_id: int, changes: dict) -> bool:
        """Apply column changes (``full_name``, ``email``, ``password_hash``,
        ``role``, ``manager_id``, ``pay_rate``, ``is_active``)."""

        raise NotImplementedError
