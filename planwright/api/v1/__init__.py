"""
API v1 - REST endpoints for planning entities.

- Scenario endpoints (list, create, read, derive)
- Advance type endpoints (list, create, lookup by name, delete)
- Order endpoints (active orders, tasks, expense totals)
- Expense sheet endpoints (CRUD, ownership)
"""
from fastapi import APIRouter

from .scenarios import router as scenarios_router
from .advance_types import router as advance_types_router
from .orders import router as orders_router, elements_router as order_elements_router
from .expense_sheets import router as expense_sheets_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(scenarios_router, prefix="/scenarios", tags=["Scenarios"])
api_router.include_router(advance_types_router, prefix="/advance-types", tags=["Advance Types"])
api_router.include_router(orders_router, prefix="/orders", tags=["Orders"])
api_router.include_router(order_elements_router, prefix="/order-elements", tags=["Orders"])
api_router.include_router(expense_sheets_router, prefix="/expense-sheets", tags=["Expense Sheets"])
