"""
Expense Sheet Repository - Data access layer for ExpenseSheet entities.

Implements repository pattern for expense sheets with:
- Code presence and uniqueness checks
- Resource-based lookups
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from planwright.models import ExpenseSheet, ExpenseSheetLine, Resource
from planwright.domain.exceptions import ValidationError
from .base_repository import BaseRepository


class ExpenseSheetRepository(BaseRepository[ExpenseSheet]):
    """
    Repository for ExpenseSheet entities.

    Lines are owned by their sheet and saved or removed with it.
    """

    def __init__(self, session: Session):
        super().__init__(session, ExpenseSheet)

    def exists(self, **criteria) -> bool:
        """Check if an ExpenseSheet matching the criteria exists."""
        return self._exists_matching(**criteria)

    def find_by_code(self, code: str) -> Optional[ExpenseSheet]:
        return self.session.query(ExpenseSheet).filter(ExpenseSheet.code == code).first()

    def get_by_resource(self, resource: Resource) -> List[ExpenseSheet]:
        """
        Get sheets holding at least one line charged to a resource.

        Args:
            resource: Resource the lines belong to

        Returns:
            Distinct sheets ordered by id
        """
        return self.session.query(ExpenseSheet).join(
            ExpenseSheetLine, ExpenseSheetLine.expense_sheet_id == ExpenseSheet.id
        ).filter(
            ExpenseSheetLine.resource_id == resource.id
        ).distinct().order_by(ExpenseSheet.id).all()

    def validate(self, entity: ExpenseSheet) -> None:
        """
        Check codes before saving.

        Raises:
            ValidationError: If the sheet or a line lacks a code, a line code
                is repeated, or another sheet already uses the sheet code
        """
        if not entity.code:
            raise ValidationError("code", "expense sheet code must not be empty")

        seen = set()
        for line in entity.expense_sheet_lines:
            if not line.code:
                raise ValidationError("code", "expense sheet line code must not be empty")
            if line.code in seen:
                raise ValidationError("code", f"repeated expense sheet line code '{line.code}'")
            seen.add(line.code)

        with self.session.no_autoflush:
            existing = self.find_by_code(entity.code)
        if existing is not None and existing is not entity:
            raise ValidationError("code", f"expense sheet code '{entity.code}' already in use")
