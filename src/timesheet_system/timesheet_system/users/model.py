from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Plain data object; ``manager_id`` is a back-reference to the direct
    manager and carries no ownership.
    """

    user_id: int
    full_name: str
    email: str
    password_hash: str
    role: Role
    manager_id: Optional[int] = None
    pay_rate: Decimal = Decimal("0")
    is_active: bool = True

    def public_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.full_name,
            "email": self.email,
            "role": self.role.value,
            "managerId": self.manager_id,
        }

    def admin_dict(self) -> dict:
        return {**self.public_dict(), "payRate": str(self.pay_rate), "isActive": self.is_active}
