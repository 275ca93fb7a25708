"""
Presentation-model base for entities identified by a code.

Handles default codes drawn from entity sequences and the switch
between generated and manually typed codes.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from planwright.models import EntityName, IntegrationEntity
from planwright.infrastructure.repositories import EntitySequenceRepository

logger = logging.getLogger(__name__)


class IntegrationEntityModel(ABC):
    """
    Base for stateful presentation models editing a coded entity.

    Subclasses expose the entity under edit and its coded children.
    """

    def __init__(self, session: Session):
        self.session = session
        self.entity_sequence_repo = EntitySequenceRepository(session)
        self._old_code: Optional[str] = None
        self._old_children_codes: Dict[IntegrationEntity, Optional[str]] = {}

    @abstractmethod
    def get_entity_name(self) -> EntityName:
        pass

    @abstractmethod
    def get_current_entity(self) -> Optional[IntegrationEntity]:
        pass

    @abstractmethod
    def get_children(self) -> Iterable[IntegrationEntity]:
        pass

    def get_number_of_digits_code(self) -> int:
        return self.entity_sequence_repo.get_number_of_digits_code(self.get_entity_name())

    def set_default_code(self) -> None:
        """
        Give the current entity the next code of its sequence.

        Raises:
            ValueError: If the sequence produced no code
        """
        code = self.entity_sequence_repo.get_next_code(self.get_entity_name())
        if not code:
            raise ValueError(
                f"Could not retrieve code for {self.get_entity_name().value}: "
                f"entity sequence not defined"
            )
        self.get_current_entity().code = code

    def init_old_codes(self) -> None:
        """Remember the codes of the entity and its children as loaded."""
        entity = self.get_current_entity()
        self._old_code = entity.code if entity is not None else None
        self._old_children_codes = {child: child.code for child in self.get_children()}

    def set_code_autogenerated(self, code_autogenerated: bool) -> None:
        """
        Switch the current entity between generated and manual codes.

        Enabling assigns a sequence code and blanks child codes so they are
        generated again; disabling restores the codes remembered by
        init_old_codes().
        """
        entity = self.get_current_entity()
        if entity is None:
            return
        if code_autogenerated:
            self.set_default_code()
            for child in self.get_children():
                child.code = ""
        else:
            self._restore_old_codes()
        entity.code_autogenerated = code_autogenerated

    def _restore_old_codes(self) -> None:
        entity = self.get_current_entity()
        entity.code = self._old_code or ""
        for child in self.get_children():
            child.code = self._old_children_codes.get(child, "")
