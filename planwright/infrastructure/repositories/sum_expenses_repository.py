"""
Sum Expenses Repository - Cached expense totals per order element.

A line charged to element E contributes its value to E's direct total
and to the indirect total of every ancestor of E. Contributions are
applied as deltas whenever expense sheets are saved or removed.
"""
import logging
from typing import Iterable, Mapping, Optional, Tuple
from sqlalchemy import func, inspect
from sqlalchemy.orm import Session

from planwright.models import ExpenseSheetLine, OrderElement, SumExpenses
from planwright.domain.exceptions import InvariantViolationError
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

Contributions = Mapping[ExpenseSheetLine, Tuple[Optional[OrderElement], int]]


class SumExpensesRepository(BaseRepository[SumExpenses]):
    """Repository maintaining SumExpenses aggregates."""

    def __init__(self, session: Session):
        super().__init__(session, SumExpenses)

    def exists(self, **criteria) -> bool:
        return self._exists_matching(**criteria)

    def find_by_order_element(self, order_element: OrderElement) -> Optional[SumExpenses]:
        return self.session.query(SumExpenses).filter(
            SumExpenses.order_element_id == order_element.id
        ).first()

    # =========================================================================
    # Aggregate maintenance
    # =========================================================================

    def update_related_sum_expenses_with_expense_sheet_lines(
        self,
        lines: Iterable[ExpenseSheetLine],
        previous: Optional[Contributions] = None
    ) -> None:
        """
        Bring aggregates in line with the current state of some lines.

        New lines add their value. Persistent lines first take back what
        they contributed when last saved, then add their current value,
        so edits of the value or of the order element net out.

        Args:
            lines: Lines whose current state should be counted
            previous: Saved (order element, value) per line. Lines missing
                from it are treated as never saved. When omitted, the saved
                state is read from attribute history.
        """
        with self.session.no_autoflush:
            changes = [(line, self._previous_contribution(line, previous)) for line in lines]
            for line, (old_element, old_value) in changes:
                if old_element is not None:
                    self._apply(old_element, -old_value)
                if line.order_element is not None:
                    self._apply(line.order_element, line.value_cents or 0)

    def update_related_sum_expenses_with_deleted_expense_sheet_lines(
        self,
        lines: Iterable[ExpenseSheetLine],
        previous: Optional[Contributions] = None
    ) -> None:
        """
        Take back the contribution of lines being deleted.

        Lines that were never persisted contributed nothing and are skipped.
        """
        with self.session.no_autoflush:
            changes = [self._previous_contribution(line, previous) for line in lines]
            for old_element, old_value in changes:
                if old_element is not None:
                    self._apply(old_element, -old_value)

    def _previous_contribution(
        self,
        line: ExpenseSheetLine,
        previous: Optional[Contributions]
    ) -> Tuple[Optional[OrderElement], int]:
        if previous is not None:
            return previous.get(line, (None, 0))
        return self._persisted_contribution(line)

    def _persisted_contribution(
        self,
        line: ExpenseSheetLine
    ) -> Tuple[Optional[OrderElement], int]:
        """Order element and value a line had when last loaded or flushed."""
        state = inspect(line)
        if not state.has_identity:
            return None, 0

        value_history = state.attrs.value_cents.history
        element_history = state.attrs.order_element.history

        if value_history.has_changes():
            old_value = value_history.deleted[0] if value_history.deleted else 0
        else:
            old_value = line.value_cents
        # An element set on a line that had none shows no deleted value
        if element_history.has_changes():
            old_element = element_history.deleted[0] if element_history.deleted else None
        else:
            old_element = line.order_element
        return old_element, old_value or 0

    def _get_or_create(self, order_element: OrderElement) -> SumExpenses:
        if order_element.sum_expenses is None:
            # The backref alone does not cascade the new row into the session
            self.session.add(SumExpenses.create(order_element))
        return order_element.sum_expenses

    def _apply(self, order_element: OrderElement, delta_cents: int) -> None:
        if delta_cents == 0:
            return
        logger.debug(f"Applying {delta_cents} cents to order element {order_element.id}")
        sum_expenses = self._get_or_create(order_element)
        sum_expenses.total_direct_expenses_cents += delta_cents
        for ancestor in order_element.get_all_ancestors():
            self._get_or_create(ancestor).total_indirect_expenses_cents += delta_cents

    # =========================================================================
    # Verification
    # =========================================================================

    def get_direct_expenses_from_lines(self, order_element: OrderElement) -> int:
        """Sum of persisted lines charged directly to an element."""
        result = self.session.query(
            func.coalesce(func.sum(ExpenseSheetLine.value_cents), 0)
        ).filter(
            ExpenseSheetLine.order_element_id == order_element.id,
            ExpenseSheetLine.expense_sheet_id.isnot(None)
        ).scalar()
        return result or 0

    def check_totals(self, order_element: OrderElement) -> bool:
        """
        Verify the cached direct total against the persisted lines.

        Raises:
            InvariantViolationError: If they disagree
        """
        expected = self.get_direct_expenses_from_lines(order_element)
        sum_expenses = self.find_by_order_element(order_element)
        actual = sum_expenses.total_direct_expenses_cents if sum_expenses else 0
        if expected != actual:
            raise InvariantViolationError(
                invariant_name=f"direct expenses of order element {order_element.id}",
                expected=str(expected),
                actual=str(actual)
            )
        return True
