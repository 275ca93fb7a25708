"""
Advance Type Repository - Data access layer for AdvanceType entities.

Adds unit-name lookups on top of the generic CRUD contract.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from planwright.models import AdvanceType
from planwright.domain.exceptions import DuplicateNameError
from .base_repository import BaseRepository


class AdvanceTypeRepository(BaseRepository[AdvanceType]):
    """Repository for AdvanceType entities. Unit names are unique."""

    def __init__(self, session: Session):
        super().__init__(session, AdvanceType)

    def exists(self, **criteria) -> bool:
        """Check if an AdvanceType matching the criteria exists."""
        return self._exists_matching(**criteria)

    def exists_name_advance_type(self, unit_name: str) -> bool:
        """
        Check whether an advance type already uses a unit name.

        Args:
            unit_name: Unit name to look for

        Returns:
            True if an advance type with that unit name exists
        """
        return self.exists(unit_name=unit_name)

    def find_by_name(self, name: str) -> Optional[AdvanceType]:
        """
        Get the advance type with a given unit name.

        Args:
            name: Unit name

        Returns:
            AdvanceType if found, None otherwise
        """
        return self.session.query(AdvanceType).filter(
            AdvanceType.unit_name == name
        ).first()

    def find_active(self) -> List[AdvanceType]:
        """All active advance types ordered by unit name."""
        return self.session.query(AdvanceType).filter(
            AdvanceType.active.is_(True)
        ).order_by(AdvanceType.unit_name).all()

    def validate(self, entity: AdvanceType) -> None:
        """Reject a unit name already used by another advance type."""
        with self.session.no_autoflush:
            existing = self.find_by_name(entity.unit_name)
        if existing is not None and existing is not entity:
            raise DuplicateNameError("AdvanceType", entity.unit_name)
