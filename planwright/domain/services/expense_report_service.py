"""
Expense Report Service - Tabular summaries of project expenses.

Builds pandas DataFrames from the SumExpenses aggregates of every
order element, one row per element, grouped under its order.
"""
from typing import List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from planwright.models import Order, OrderElement
from planwright.infrastructure.repositories import OrderRepository, SumExpensesRepository
from planwright.domain.exceptions import InvariantViolationError

REPORT_COLUMNS = [
    'order_code', 'order_name', 'element_code', 'element_name', 'depth',
    'direct_expenses_cents', 'indirect_expenses_cents', 'total_expenses_cents',
]


def cents_to_display(cents: int) -> str:
    """Format integer cents as a currency string."""
    sign = "-" if cents < 0 else ""
    cents = abs(int(cents))
    return f"{sign}${cents // 100:,}.{cents % 100:02d}"


class ExpenseReportService:
    """Service producing expense summaries per order."""

    def __init__(self, session: Session):
        self.session = session
        self.order_repo = OrderRepository(session)
        self.sum_expenses_repo = SumExpensesRepository(session)

    def _element_row(self, order: Order, element: OrderElement) -> dict:
        sum_expenses = element.sum_expenses
        direct = sum_expenses.total_direct_expenses_cents if sum_expenses else 0
        indirect = sum_expenses.total_indirect_expenses_cents if sum_expenses else 0
        return {
            'order_code': order.code,
            'order_name': order.name,
            'element_code': element.code,
            'element_name': element.name,
            'depth': len(element.get_all_ancestors()),
            'direct_expenses_cents': direct,
            'indirect_expenses_cents': indirect,
            'total_expenses_cents': direct + indirect,
        }

    def order_expenses_frame(self, orders: Optional[List[Order]] = None) -> pd.DataFrame:
        """
        Expense totals of every element of the given orders.

        Args:
            orders: Orders to report on (default: all active orders)

        Returns:
            DataFrame with REPORT_COLUMNS, orders first then their elements
        """
        if orders is None:
            orders = self.order_repo.get_active_orders()

        rows = []
        for order in orders:
            rows.append(self._element_row(order, order))
            for element in order.get_all_children():
                rows.append(self._element_row(order, element))

        if not rows:
            return pd.DataFrame(columns=REPORT_COLUMNS)
        return pd.DataFrame(rows, columns=REPORT_COLUMNS)

    def order_totals_frame(self, orders: Optional[List[Order]] = None) -> pd.DataFrame:
        """One row per order with its total expenses."""
        df = self.order_expenses_frame(orders)
        roots = df[df['depth'] == 0]
        return roots[['order_code', 'order_name', 'total_expenses_cents']].reset_index(drop=True)

    def verify(self, orders: Optional[List[Order]] = None) -> List[str]:
        """
        Check cached direct totals against persisted lines.

        Returns:
            Descriptions of every mismatch found (empty when consistent)
        """
        if orders is None:
            orders = self.order_repo.get_active_orders()
        problems = []
        for order in orders:
            for element in [order] + order.get_all_children():
                try:
                    self.sum_expenses_repo.check_totals(element)
                except InvariantViolationError as e:
                    problems.append(e.message)
        return problems
