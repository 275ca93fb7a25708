"""
Configuration Repository - Access to the single configuration row.
"""
import logging
from sqlalchemy.orm import Session

from planwright.config import get_config
from planwright.models import Configuration
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConfigurationRepository(BaseRepository[Configuration]):
    """Repository for the global Configuration row."""

    def __init__(self, session: Session):
        super().__init__(session, Configuration)

    def exists(self, **criteria) -> bool:
        return self._exists_matching(**criteria)

    def get_configuration(self) -> Configuration:
        """
        Get the configuration row, creating it from YAML defaults if missing.
        """
        configuration = self.session.query(Configuration).order_by(Configuration.id).first()
        if configuration is None:
            logger.warning("No configuration row found, seeding defaults")
            configuration = Configuration(
                generate_code_for_expense_sheets=get_config().generate_code_for_expense_sheets
            )
            self.session.add(configuration)
            self.session.flush()
        return configuration
