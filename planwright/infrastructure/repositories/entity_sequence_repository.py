"""
Entity Sequence Repository - Default code allocation per entity type.
"""
import logging
from sqlalchemy.orm import Session

from planwright.config import get_config
from planwright.models import EntityName, EntitySequence
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EntitySequenceRepository(BaseRepository[EntitySequence]):
    """
    Repository for EntitySequence entities.

    Only one sequence per entity name is active at a time. A missing
    sequence is created from the codes.sequences configuration.
    """

    def __init__(self, session: Session):
        super().__init__(session, EntitySequence)

    def exists(self, **criteria) -> bool:
        return self._exists_matching(**criteria)

    def get_active_entity_sequence(self, entity_name: EntityName) -> EntitySequence:
        """
        Get the active sequence of an entity type.

        Args:
            entity_name: Entity whose codes are generated

        Returns:
            The active EntitySequence
        """
        sequence = self.session.query(EntitySequence).filter(
            EntitySequence.entity_name == entity_name.value,
            EntitySequence.active.is_(True)
        ).first()
        if sequence is None:
            defaults = get_config().get_sequence_defaults(entity_name.value)
            logger.info(f"Creating entity sequence for {entity_name.value} with prefix {defaults['prefix']}")
            sequence = EntitySequence(
                entity_name=entity_name.value,
                prefix=defaults["prefix"],
                number_of_digits=defaults["number_of_digits"],
                last_value=0,
                active=True
            )
            self.session.add(sequence)
            self.session.flush()
        return sequence

    def get_next_code(self, entity_name: EntityName) -> str:
        """Code the next entity of this type will receive, without reserving it."""
        return self.get_active_entity_sequence(entity_name).get_next_code()

    def get_number_of_digits_code(self, entity_name: EntityName) -> int:
        return self.get_active_entity_sequence(entity_name).number_of_digits

    def update_last_value(self, entity_name: EntityName) -> int:
        """
        Consume the next value of the sequence.

        Returns:
            The new last value
        """
        sequence = self.get_active_entity_sequence(entity_name)
        sequence.increment_last_value()
        logger.info(f"Allocated code {sequence.format_value(sequence.last_value)} for {entity_name.value}")
        return sequence.last_value
