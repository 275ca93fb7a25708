"""
Order Repository - Data access layer for Order trees.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from planwright.config import get_config
from planwright.models import Order, OrderElement, Scenario, ScenarioOrder
from planwright.domain.exceptions import InstanceNotFoundError
from .base_repository import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """
    Repository for Order entities and their element trees.

    Active orders are those whose state is not listed in the
    orders.inactive_states configuration.
    """

    def __init__(self, session: Session):
        super().__init__(session, Order)

    def exists(self, **criteria) -> bool:
        """Check if an Order matching the criteria exists."""
        return self._exists_matching(**criteria)

    def get_active_orders(self) -> List[Order]:
        """
        Get all orders that are still being worked on.

        Returns:
            Orders ordered by name
        """
        inactive_states = get_config().inactive_order_states
        return self.session.query(Order).filter(
            Order.state.notin_(inactive_states)
        ).order_by(Order.name).all()

    def find_by_name(self, name: str) -> Optional[Order]:
        return self.session.query(Order).filter(Order.name == name).first()

    def find_by_code(self, code: str) -> Optional[Order]:
        return self.session.query(Order).filter(Order.code == code).first()

    def get_order_element(self, element_id: int) -> OrderElement:
        """
        Get any node of an order tree by id.

        Raises:
            InstanceNotFoundError: If no element has that id
        """
        element = self.session.query(OrderElement).filter(
            OrderElement.id == element_id
        ).first()
        if element is None:
            raise InstanceNotFoundError("OrderElement", element_id)
        return element

    def get_orders_in_scenario(self, scenario: Scenario) -> List[Order]:
        """Orders a scenario holds a version of."""
        return self.session.query(Order).join(
            ScenarioOrder, ScenarioOrder.order_id == Order.id
        ).filter(
            ScenarioOrder.scenario_id == scenario.id
        ).order_by(Order.name).all()
