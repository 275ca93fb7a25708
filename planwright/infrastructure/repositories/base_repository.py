"""
Base Repository - Abstract repository pattern implementation.

Provides the generic CRUD contract shared by every aggregate:
save, remove, list, reattach, plus lookup and transaction helpers.
"""
from abc import ABC, abstractmethod
from typing import Generic, TypeVar, List, Optional, Type
from sqlalchemy.orm import Session

from planwright.models import Base
from planwright.domain.exceptions import InstanceNotFoundError

T = TypeVar('T', bound=Base)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository providing common data access operations.

    Type Parameters:
        T: The SQLAlchemy model type this repository manages
    """

    def __init__(self, session: Session, model_class: Type[T]):
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy database session
            model_class: The model class this repository manages
        """
        self.session = session
        self.model_class = model_class

    @property
    def entity_type(self) -> str:
        return self.model_class.__name__

    def get_by_id(self, entity_id: int) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        Args:
            entity_id: Primary key value

        Returns:
            The entity if found, None otherwise
        """
        return self.session.query(self.model_class).filter(
            self.model_class.id == entity_id
        ).first()

    def find(self, entity_id: int) -> T:
        """
        Retrieve an entity by its primary key.

        Raises:
            InstanceNotFoundError: If no entity has that id
        """
        entity = self.get_by_id(entity_id)
        if entity is None:
            raise InstanceNotFoundError(self.entity_type, entity_id)
        return entity

    def list(self, limit: Optional[int] = None, offset: int = 0) -> List[T]:
        """
        Retrieve all entities with optional pagination.

        Args:
            limit: Maximum number of entities to return
            offset: Number of entities to skip

        Returns:
            List of entities ordered by id
        """
        query = self.session.query(self.model_class).order_by(self.model_class.id).offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def count(self) -> int:
        """Count total entities."""
        return self.session.query(self.model_class).count()

    def validate(self, entity: T) -> None:
        """Hook for aggregate-specific checks run before every save."""
        pass

    def save(self, entity: T) -> T:
        """
        Validate and add an entity to the session, flushing it.

        Args:
            entity: New or modified entity

        Returns:
            The saved entity (with its id assigned)
        """
        self.validate(entity)
        self.session.add(entity)
        self.session.flush()
        return entity

    def remove(self, entity_id: int) -> None:
        """
        Delete an entity by its primary key.

        Raises:
            InstanceNotFoundError: If no entity has that id
        """
        entity = self.find(entity_id)
        self.session.delete(entity)
        self.session.flush()

    def reattach(self, entity: T) -> T:
        """
        Re-associate a detached entity with the session.

        Entities already in the session are returned untouched.
        """
        if entity not in self.session:
            self.session.add(entity)
        return entity

    def commit(self) -> None:
        """Commit the current transaction."""
        self.session.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.session.rollback()

    def flush(self) -> None:
        """Flush pending changes to the database."""
        self.session.flush()

    def refresh(self, entity: T) -> T:
        """Refresh an entity from the database."""
        self.session.refresh(entity)
        return entity

    @abstractmethod
    def exists(self, **criteria) -> bool:
        """
        Check if an entity matching the criteria exists.

        Args:
            **criteria: Field-value pairs to match

        Returns:
            True if entity exists, False otherwise
        """
        pass

    def _exists_matching(self, **criteria) -> bool:
        query = self.session.query(self.model_class)
        for field, value in criteria.items():
            query = query.filter(getattr(self.model_class, field) == value)
        return query.first() is not None
