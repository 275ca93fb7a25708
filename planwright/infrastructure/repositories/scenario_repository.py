"""
Scenario Repository - Data access layer for Scenario entities.

Implements repository pattern for scenarios with:
- Name uniqueness
- Master scenario lookup
- Derivation tree queries
"""
from typing import List
from sqlalchemy.orm import Session

from planwright.config import get_config
from planwright.models import Scenario
from planwright.domain.exceptions import DuplicateNameError, InstanceNotFoundError
from .base_repository import BaseRepository


class ScenarioRepository(BaseRepository[Scenario]):
    """Repository for Scenario entities."""

    def __init__(self, session: Session):
        super().__init__(session, Scenario)

    def exists(self, **criteria) -> bool:
        """Check if a Scenario matching the criteria exists."""
        return self._exists_matching(**criteria)

    def exists_by_name(self, name: str) -> bool:
        return self.exists(name=name)

    def find_by_name(self, name: str) -> Scenario:
        """
        Get a scenario by name.

        Raises:
            InstanceNotFoundError: If no scenario has that name
        """
        scenario = self.session.query(Scenario).filter(Scenario.name == name).first()
        if scenario is None:
            raise InstanceNotFoundError("Scenario", name)
        return scenario

    def get_master(self) -> Scenario:
        """Get the predefined master scenario."""
        return self.find_by_name(get_config().master_scenario_name)

    def get_derived_scenarios(self, scenario: Scenario) -> List[Scenario]:
        """Scenarios whose immediate predecessor is the given one."""
        return self.session.query(Scenario).filter(
            Scenario.predecessor_id == scenario.id
        ).order_by(Scenario.name).all()

    def validate(self, entity: Scenario) -> None:
        """Reject a name already used by another scenario."""
        with self.session.no_autoflush:
            existing = self.session.query(Scenario).filter(
                Scenario.name == entity.name
            ).first()
        if existing is not None and existing is not entity:
            raise DuplicateNameError("Scenario", entity.name)
