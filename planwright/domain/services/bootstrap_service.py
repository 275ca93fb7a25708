"""
Bootstrap Service - Seeds the data every installation needs.

Loads, if missing:
- the configuration row
- the active entity sequences
- the master scenario
- the predefined advance types
"""
import logging
from typing import Dict
from sqlalchemy.orm import Session

from planwright.config import get_config
from planwright.models import AdvanceType, EntityName, Scenario
from planwright.infrastructure.repositories import (
    AdvanceTypeRepository,
    ConfigurationRepository,
    EntitySequenceRepository,
    ScenarioRepository,
)

logger = logging.getLogger(__name__)


class DataBootstrap:
    """Idempotent loader of required reference data."""

    def __init__(self, session: Session):
        self.session = session
        self.configuration_repo = ConfigurationRepository(session)
        self.entity_sequence_repo = EntitySequenceRepository(session)
        self.scenario_repo = ScenarioRepository(session)
        self.advance_type_repo = AdvanceTypeRepository(session)

    def load_required_data(self) -> Dict[str, int]:
        """
        Create whatever required data is missing and commit.

        Returns:
            Dict with counts of created scenarios and advance types
        """
        self.configuration_repo.get_configuration()
        for entity_name in EntityName:
            self.entity_sequence_repo.get_active_entity_sequence(entity_name)

        created_scenarios = self._load_master_scenario()
        created_advance_types = self._load_advance_types()
        self.session.commit()

        logger.info(
            f"Bootstrap complete: {created_scenarios} scenarios, "
            f"{created_advance_types} advance types created"
        )
        return {
            'scenarios_created': created_scenarios,
            'advance_types_created': created_advance_types,
        }

    def _load_master_scenario(self) -> int:
        master_name = get_config().master_scenario_name
        if self.scenario_repo.exists_by_name(master_name):
            return 0
        self.scenario_repo.save(Scenario.create(master_name))
        return 1

    def _load_advance_types(self) -> int:
        created = 0
        for definition in get_config().predefined_advance_types:
            unit_name = definition["unit_name"]
            if self.advance_type_repo.exists_name_advance_type(unit_name):
                continue
            advance_type = AdvanceType.create(
                unit_name=unit_name,
                default_max_value=float(definition.get("default_max_value", 100.0)),
                updatable=False,
                unit_precision=float(definition.get("unit_precision", 0.01)),
                percentage=bool(definition.get("percentage", False)),
            )
            advance_type.read_only = True
            self.advance_type_repo.save(advance_type)
            created += 1
        return created
