from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import TemplatePattern, TimesheetTemplate


class TemplateRepository(Protocol):
    def list_for_user(self, user_id: int) -> Sequence[TimesheetTemplate]:
        raise NotImplementedError

    def get_for_user(self, *, template_id: int, user_id: int) -> Optional[TimesheetTemplate]:
        """Only returns templates owned by ``user_id``."""

        raise NotImplementedError

    def get_by_name(self, *, user_id: int, name: str) -> Optional[TimesheetTemplate]:
        raise NotImplementedError

    def create(
        self,
        *,
        user_id: int,
        name: str,
        description: Optional[str],
        is_default: bool,
        patterns: Sequence[TemplatePattern],
    ) -> int:
        """Insert template and patterns; clears the user's other default if ``is_default``."""

        raise NotImplementedError

    def delete(self, *, template_id: int, user_id: int) -> bool:
        raise NotImplementedError
