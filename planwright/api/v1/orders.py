"""
Order API Endpoints.

Implements:
- GET /api/v1/orders/active - Orders still being worked on
- GET /api/v1/orders/{id}/tasks - Every element below an order
- GET /api/v1/order-elements/{id}/expenses - Cached expense totals
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from planwright.models import get_db, OrderElement
from planwright.infrastructure.repositories import OrderRepository, SumExpensesRepository
from planwright.domain.exceptions import InstanceNotFoundError

router = APIRouter()
elements_router = APIRouter()


class OrderElementResponse(BaseModel):
    """Response model for any node of an order tree."""
    id: int
    code: Optional[str]
    name: Optional[str]
    element_type: str
    parent_id: Optional[int]
    state: Optional[str]


class SumExpensesResponse(BaseModel):
    """Cached expense totals of an order element."""
    order_element_id: int
    total_direct_expenses_cents: int
    total_indirect_expenses_cents: int
    total_expenses_cents: int


def _to_response(element: OrderElement) -> dict:
    return {
        'id': element.id,
        'code': element.code,
        'name': element.name,
        'element_type': element.element_type,
        'parent_id': element.parent_id,
        'state': element.state,
    }


@router.get("/active", response_model=List[OrderElementResponse], summary="List active orders")
def list_active_orders(db: Session = Depends(get_db)):
    return [_to_response(o) for o in OrderRepository(db).get_active_orders()]


@router.get(
    "/{order_id}/tasks",
    response_model=List[OrderElementResponse],
    summary="List the tasks of an order"
)
def list_order_tasks(order_id: int, db: Session = Depends(get_db)):
    try:
        order = OrderRepository(db).find(order_id)
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return [_to_response(e) for e in order.get_all_children()]


@elements_router.get(
    "/{element_id}/expenses",
    response_model=SumExpensesResponse,
    summary="Get expense totals of an order element"
)
def get_order_element_expenses(element_id: int, db: Session = Depends(get_db)):
    try:
        element = OrderRepository(db).get_order_element(element_id)
    except InstanceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    sum_expenses = SumExpensesRepository(db).find_by_order_element(element)
    direct = sum_expenses.total_direct_expenses_cents if sum_expenses else 0
    indirect = sum_expenses.total_indirect_expenses_cents if sum_expenses else 0
    return {
        'order_element_id': element.id,
        'total_direct_expenses_cents': direct,
        'total_indirect_expenses_cents': indirect,
        'total_expenses_cents': direct + indirect,
    }
