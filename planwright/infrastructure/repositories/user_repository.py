"""
User Repository - Data access layer for User and Resource entities.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from planwright.models import Resource, User, Worker
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for application users."""

    def __init__(self, session: Session):
        super().__init__(session, User)

    def exists(self, **criteria) -> bool:
        return self._exists_matching(**criteria)

    def find_by_login_name(self, login_name: str) -> Optional[User]:
        return self.session.query(User).filter(User.login_name == login_name).first()


class ResourceRepository(BaseRepository[Resource]):
    """Repository for resources (workers and others)."""

    def __init__(self, session: Session):
        super().__init__(session, Resource)

    def exists(self, **criteria) -> bool:
        return self._exists_matching(**criteria)

    def get_workers(self) -> List[Worker]:
        return self.session.query(Worker).order_by(Worker.surname, Worker.first_name).all()
