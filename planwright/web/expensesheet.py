"""
Expense Sheet Model - Presentation model for the expense sheet screens.

Holds the sheet under edit, the lines removed since it was loaded and
the selection state of the view, and turns view actions into entity
mutations and repository calls, one transaction per action.
"""
import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from planwright.models import (
    EntityName,
    ExpenseSheet,
    ExpenseSheetLine,
    Order,
    OrderElement,
    Resource,
    User,
)
from planwright.infrastructure.repositories import (
    ConfigurationRepository,
    ExpenseSheetRepository,
    OrderRepository,
    SumExpensesRepository,
)
from planwright.domain.exceptions import InstanceNotFoundError
from .common import IntegrationEntityModel

logger = logging.getLogger(__name__)

CurrentUserProvider = Callable[[], Optional[User]]


class ExpenseSheetModel(IntegrationEntityModel):
    """
    Stateful model behind the expense sheet list and edit views.

    One instance serves one view scope; it is never shared between users.

    Args:
        session: Session the edited entities live in
        current_user_provider: Returns the user of the current session
    """

    def __init__(self, session: Session, current_user_provider: Optional[CurrentUserProvider] = None):
        super().__init__(session)
        self.current_user_provider = current_user_provider
        self.order_repo = OrderRepository(session)
        self.expense_sheet_repo = ExpenseSheetRepository(session)
        self.configuration_repo = ConfigurationRepository(session)
        self.sum_expenses_repo = SumExpensesRepository(session)

        self.expense_sheet: Optional[ExpenseSheet] = None
        self.new_expense_sheet_line: Optional[ExpenseSheetLine] = None
        self.active_orders: List[Order] = []
        self.all_active_orders_children: List[OrderElement] = []
        self.selected_project: Optional[Order] = None
        self.deleted_expense_sheet_lines: List[ExpenseSheetLine] = []
        # Order element and value of each line as last saved
        self.saved_contributions: Dict[ExpenseSheetLine, Tuple[Optional[OrderElement], int]] = {}
        self.resource: Optional[Resource] = None

    # =========================================================================
    # Edited entity
    # =========================================================================

    def get_expense_sheet(self) -> Optional[ExpenseSheet]:
        return self.expense_sheet

    def set_expense_sheet(self, expense_sheet: Optional[ExpenseSheet]) -> None:
        self.expense_sheet = expense_sheet

    def get_entity_name(self) -> EntityName:
        return EntityName.EXPENSE_SHEET

    def get_current_entity(self) -> Optional[ExpenseSheet]:
        return self.expense_sheet

    def get_children(self) -> List[ExpenseSheetLine]:
        if self.expense_sheet is None:
            return []
        return list(self.expense_sheet.expense_sheet_lines)

    def get_resource(self) -> Optional[Resource]:
        return self.resource

    def get_new_expense_sheet_line(self) -> Optional[ExpenseSheetLine]:
        return self.new_expense_sheet_line

    # =========================================================================
    # Screen preparation
    # =========================================================================

    def prepare_to_list(self) -> None:
        self.expense_sheet = None

    def init_create(self, personal: bool) -> None:
        """
        Start editing a brand-new sheet.

        The auto-code policy comes from the configuration row; a personal
        sheet is charged to the worker bound to the current user.
        """
        self.set_selected_project(None)
        self._create_new_expense_sheet_line()
        self.expense_sheet = ExpenseSheet.create()

        configuration = self.configuration_repo.get_configuration()
        self.expense_sheet.code_autogenerated = configuration.generate_code_for_expense_sheets
        if self.expense_sheet.is_code_autogenerated():
            self.set_default_code()
        else:
            self.expense_sheet.code = ""

        self.deleted_expense_sheet_lines = []
        self.saved_contributions = {}
        self.expense_sheet.personal = personal
        self.resource = self._init_resource()

    def prepare_to_edit(self, expense_sheet: ExpenseSheet) -> None:
        """
        Start editing an existing sheet.

        Raises:
            ValueError: If expense_sheet is None
        """
        self.set_selected_project(None)
        self._create_new_expense_sheet_line()
        if expense_sheet is None:
            raise ValueError("expense_sheet must not be None")
        self.expense_sheet = self._get_from_db(expense_sheet)
        self.init_old_codes()
        self.deleted_expense_sheet_lines = []
        self.saved_contributions = self._snapshot_contributions(self.expense_sheet)
        self.resource = self._init_resource()

    def _init_resource(self) -> Optional[Resource]:
        if self.expense_sheet.is_not_personal():
            return None

        lines = self.expense_sheet.get_expense_sheet_lines()
        if lines:
            return lines[0].resource

        user = self._get_user_from_session()
        if user is None or not user.is_bound():
            return None
        return user.worker

    def _get_user_from_session(self) -> Optional[User]:
        if self.current_user_provider is None:
            return None
        return self.current_user_provider()

    def _get_from_db(self, expense_sheet: ExpenseSheet) -> ExpenseSheet:
        self.expense_sheet_repo.reattach(expense_sheet)
        self._force_load_expense_sheet_data(expense_sheet)
        return expense_sheet

    def _force_load_expense_sheet_data(self, expense_sheet: ExpenseSheet) -> None:
        # Touching lazy attributes loads them while the session is open
        expense_sheet.total_cents
        for line in expense_sheet.expense_sheet_lines:
            self._force_load_expense_sheet_line_data(line)

    def _force_load_expense_sheet_line_data(self, line: ExpenseSheetLine) -> None:
        line.code
        if line.resource is not None:
            line.resource.name
        if line.order_element is not None:
            # Walking the ancestors loads the whole branch up to the order
            line.order_element.get_all_ancestors()

    def _snapshot_contributions(
        self,
        expense_sheet: ExpenseSheet
    ) -> Dict[ExpenseSheetLine, Tuple[Optional[OrderElement], int]]:
        return {
            line: (line.order_element, line.value_cents or 0)
            for line in expense_sheet.expense_sheet_lines
        }

    def _create_new_expense_sheet_line(self) -> None:
        self.new_expense_sheet_line = ExpenseSheetLine.create(0, "", date.today(), None)

    # =========================================================================
    # Lines
    # =========================================================================

    def get_expense_sheet_lines(self) -> List[ExpenseSheetLine]:
        if self.expense_sheet is None:
            return []
        return self.expense_sheet.get_expense_sheet_lines()

    def add_expense_sheet_line(self) -> None:
        """Move the buffered new line into the sheet and start a fresh buffer."""
        if self.expense_sheet is not None:
            line = self.get_new_expense_sheet_line()
            if self.expense_sheet.is_personal():
                line.resource = self.resource
            self.expense_sheet.add(line)
        self._create_new_expense_sheet_line()

    def remove_expense_sheet_line(self, expense_sheet_line: ExpenseSheetLine) -> None:
        """Detach a line; its aggregate contribution is taken back on save."""
        if self.expense_sheet is not None:
            self.deleted_expense_sheet_lines.append(expense_sheet_line)
            self.expense_sheet.remove(expense_sheet_line)
            expense_sheet_line.expense_sheet = None

    def keep_sorted_expense_sheet_lines(self, expense_sheet_line: ExpenseSheetLine, new_date: date) -> None:
        if self.expense_sheet is not None:
            self.expense_sheet.keep_sorted_expense_sheet_lines(expense_sheet_line, new_date)

    def generate_expense_sheet_line_codes_if_is_necessary(self) -> None:
        if self.expense_sheet.is_code_autogenerated():
            self.expense_sheet.generate_expense_sheet_line_codes(self.get_number_of_digits_code())

    # =========================================================================
    # Persistence
    # =========================================================================

    def confirm_save(self) -> None:
        """
        Save the sheet under edit.

        The sheet is validated before anything is touched, so a rejected
        save leaves the edit state as it was and can be retried. Deleted
        lines give back their contribution to the expense aggregates
        before current lines add theirs.

        Raises:
            ValidationError: If a sheet or line code is missing or taken
        """
        expense_sheet = self.get_expense_sheet()
        self.expense_sheet_repo.validate(expense_sheet)

        current_lines = list(expense_sheet.expense_sheet_lines)
        deleted_lines = [
            line for line in self.deleted_expense_sheet_lines
            if line not in current_lines
        ]
        is_new = expense_sheet.is_new_object()

        try:
            self.sum_expenses_repo.update_related_sum_expenses_with_deleted_expense_sheet_lines(
                deleted_lines, self.saved_contributions
            )
            self.sum_expenses_repo.update_related_sum_expenses_with_expense_sheet_lines(
                current_lines, self.saved_contributions
            )

            expense_sheet.update_calculated_properties()
            self.expense_sheet_repo.save(expense_sheet)
            if is_new and expense_sheet.is_code_autogenerated():
                self.entity_sequence_repo.update_last_value(self.get_entity_name())
            self.expense_sheet_repo.commit()
        except Exception:
            self.expense_sheet_repo.rollback()
            raise

        logger.info(
            f"Saved expense sheet {expense_sheet.code} with {len(current_lines)} lines "
            f"({len(deleted_lines)} removed), total {expense_sheet.total_cents} cents"
        )
        self._dont_pose_as_transient_and_children_objects(expense_sheet)
        self.deleted_expense_sheet_lines = []
        self.saved_contributions = self._snapshot_contributions(expense_sheet)
        self.init_old_codes()

    def _dont_pose_as_transient_and_children_objects(self, expense_sheet: ExpenseSheet) -> None:
        expense_sheet.dont_pose_as_transient_object_anymore()
        for line in expense_sheet.expense_sheet_lines:
            line.dont_pose_as_transient_object_anymore()

    def get_expense_sheets(self) -> List[ExpenseSheet]:
        return self.expense_sheet_repo.list()

    def remove_expense_sheet(self, expense_sheet: ExpenseSheet) -> None:
        """
        Delete a sheet and take back its lines' contribution.

        Raises:
            ValueError: If expense_sheet is None
            InstanceNotFoundError: If the sheet no longer exists
        """
        if expense_sheet is None:
            raise ValueError("expense_sheet must not be None")
        identity = inspect(expense_sheet).identity
        try:
            if identity is None:
                raise InstanceNotFoundError("ExpenseSheet", None)
            expense_sheet = self.expense_sheet_repo.find(identity[0])
            self._force_load_expense_sheet_data(expense_sheet)
            code = expense_sheet.code
            previous = self.saved_contributions if expense_sheet is self.expense_sheet else None
            lines = list(expense_sheet.expense_sheet_lines)
            if previous is not None:
                lines.extend(line for line in self.deleted_expense_sheet_lines if line not in lines)
            self.sum_expenses_repo.update_related_sum_expenses_with_deleted_expense_sheet_lines(
                lines, previous
            )
            self.expense_sheet_repo.remove(expense_sheet.id)
            self.expense_sheet_repo.commit()
        except Exception:
            self.expense_sheet_repo.rollback()
            raise
        logger.info(f"Removed expense sheet {code}")
        if self.expense_sheet is expense_sheet:
            self.expense_sheet = None
            self.deleted_expense_sheet_lines = []
            self.saved_contributions = {}

    # =========================================================================
    # Orders & tasks
    # =========================================================================

    def get_orders(self) -> List[Order]:
        """Active orders; their element trees are loaded for get_tasks()."""
        self.active_orders = self.order_repo.get_active_orders()
        self._load_orders_data()
        return self.active_orders

    def _load_orders_data(self) -> None:
        self.all_active_orders_children = []
        for order in self.active_orders:
            self.all_active_orders_children.extend(order.get_all_children())

    def get_tasks(self) -> List[OrderElement]:
        if self.selected_project is None:
            return self.all_active_orders_children
        return self.selected_project.get_all_children()

    def set_selected_project(self, selected_project: Optional[Order]) -> None:
        self.selected_project = selected_project

    def get_selected_project(self) -> Optional[Order]:
        return self.selected_project

    # =========================================================================
    # Ownership
    # =========================================================================

    def is_personal_and_belongs_to_current_user(self, expense_sheet: ExpenseSheet) -> bool:
        """
        Whether a sheet is personal and charged to the current user's worker.
        """
        if not expense_sheet.is_personal():
            return False

        lines = self._get_from_db(expense_sheet).get_expense_sheet_lines()
        if not lines or lines[0].resource is None:
            return False

        user = self._get_user_from_session()
        if user is None or not user.is_bound():
            return False
        return user.worker.id == lines[0].resource.id
