"""
Unit Tests for the Expense Sheet Model.

Tests business rules:
- Default codes from entity sequences
- Expense aggregates follow added, edited, moved and deleted lines
- Personal sheet ownership
- Task lists of active orders
"""
import pytest
from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from planwright.models import (
    Base,
    Configuration,
    EntityName,
    ExpenseSheet,
    ExpenseSheetLine,
    Order,
    OrderLine,
    OrderLineGroup,
    OrderStatus,
    Resource,
    SumExpenses,
    User,
    Worker,
)
from planwright.domain.exceptions import InstanceNotFoundError, ValidationError
from planwright.domain.services import DataBootstrap
from planwright.infrastructure.repositories import (
    EntitySequenceRepository,
    SumExpensesRepository,
)
from planwright.web import ExpenseSheetModel


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def test_db(tmp_path):
    """Create a test database with required data and one order tree."""
    engine = create_engine(f"sqlite:///{tmp_path / 'planning.db'}", echo=False)
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)
    session = TestingSessionLocal()

    DataBootstrap(session).load_required_data()

    # Bridge
    # ├── Deck
    # │   └── Pour
    # └── Survey
    order = Order.create("Bridge", "ORD-1")
    deck = order.add(OrderLineGroup.create("Deck", "ORD-1-1"))
    pour = deck.add(OrderLine.create("Pour", "ORD-1-1-1"))
    survey = order.add(OrderLine.create("Survey", "ORD-1-2"))
    session.add(order)
    session.commit()

    yield session, {'order': order, 'deck': deck, 'pour': pour, 'survey': survey}

    session.close()
    engine.dispose()


@pytest.fixture
def worker_user(test_db):
    session, _ = test_db
    worker = Worker.create("Ada", "Lovelace")
    user = User(login_name="ada", worker=worker)
    session.add(user)
    session.commit()
    return user


def direct(element) -> int:
    return element.sum_expenses.total_direct_expenses_cents if element.sum_expenses else 0


def indirect(element) -> int:
    return element.sum_expenses.total_indirect_expenses_cents if element.sum_expenses else 0


def persisted_totals(session, element):
    """Direct and indirect totals of an element as read by a fresh session."""
    element_id = element.id
    other = Session(bind=session.get_bind())
    try:
        sum_expenses = other.query(SumExpenses).filter(
            SumExpenses.order_element_id == element_id
        ).first()
        if sum_expenses is None:
            return 0, 0
        return sum_expenses.total_direct_expenses_cents, sum_expenses.total_indirect_expenses_cents
    finally:
        other.close()


def add_line(model, value_cents, order_element, line_date=None, concept="expense"):
    line = model.get_new_expense_sheet_line()
    line.value_cents = value_cents
    line.concept = concept
    line.order_element = order_element
    if line_date is not None:
        line.date = line_date
    model.add_expense_sheet_line()
    return line


def save(model):
    model.generate_expense_sheet_line_codes_if_is_necessary()
    model.confirm_save()


@pytest.fixture
def saved_sheet(test_db):
    """A saved sheet with one 1500 cent line charged to Pour."""
    session, tree = test_db
    model = ExpenseSheetModel(session)
    model.init_create(personal=False)
    line = add_line(model, 1500, tree['pour'])
    save(model)
    return model.get_expense_sheet(), line


@pytest.fixture
def two_line_sheet(test_db):
    """A saved sheet with 1000 cents on Pour and 500 cents on Survey."""
    session, tree = test_db
    model = ExpenseSheetModel(session)
    model.init_create(personal=False)
    first = add_line(model, 1000, tree['pour'])
    second = add_line(model, 500, tree['survey'])
    save(model)
    return model.get_expense_sheet(), first, second


# =============================================================================
# Codes
# =============================================================================

class TestCodes:
    """Tests for default codes."""

    def test_init_create_assigns_sequence_code(self, test_db):
        session, _ = test_db
        model = ExpenseSheetModel(session)
        model.init_create(personal=False)

        sheet = model.get_expense_sheet()
        assert sheet.code == "EXP00001"
        assert sheet.is_code_autogenerated()
        assert sheet.is_new_object()
        assert model.get_new_expense_sheet_line() is not None

    def test_line_codes_generated_on_save(self, saved_sheet):
        sheet, line = saved_sheet
        assert line.code == "EXP00001-00001"
        assert sheet.last_expense_sheet_line_sequence_code == 1

    def test_sequence_consumed_on_save(self, test_db, saved_sheet):
        session, _ = test_db
        sequence = EntitySequenceRepository(session).get_active_entity_sequence(EntityName.EXPENSE_SHEET)
        assert sequence.last_value == 1

        model = ExpenseSheetModel(session)
        model.init_create(personal=False)
        assert model.get_expense_sheet().code == "EXP00002"

    def test_unsaved_sheet_does_not_consume_sequence(self, test_db):
        session, _ = test_db
        ExpenseSheetModel(session).init_create(personal=False)
        model = ExpenseSheetModel(session)
        model.init_create(personal=False)
        assert model.get_expense_sheet().code == "EXP00001"

    def test_line_codes_continue_after_existing(self, test_db, saved_sheet):
        session, tree = test_db
        sheet, _ = saved_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        line = add_line(model, 100, tree['survey'])
        save(model)
        assert line.code == "EXP00001-00002"

    def test_manual_codes_required(self, test_db):
        session, tree = test_db
        session.query(Configuration).one().generate_code_for_expense_sheets = False
        session.commit()

        model = ExpenseSheetModel(session)
        model.init_create(personal=False)
        assert model.get_expense_sheet().code == ""
        assert not model.get_expense_sheet().is_code_autogenerated()

        add_line(model, 100, tree['pour'])
        with pytest.raises(ValidationError):
            save(model)
        assert session.query(ExpenseSheet).count() == 0

    def test_manual_codes_saved(self, test_db):
        session, tree = test_db
        session.query(Configuration).one().generate_code_for_expense_sheets = False
        session.commit()

        model = ExpenseSheetModel(session)
        model.init_create(personal=False)
        model.get_expense_sheet().code = "TRIP-7"
        line = add_line(model, 100, tree['pour'])
        line.code = "TRIP-7-A"
        save(model)

        assert session.query(ExpenseSheet).one().code == "TRIP-7"
        sequence = EntitySequenceRepository(session).get_active_entity_sequence(EntityName.EXPENSE_SHEET)
        assert sequence.last_value == 0

    def test_toggle_code_autogenerated_restores_old_codes(self, test_db, saved_sheet):
        session, _ = test_db
        sheet, line = saved_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)

        model.set_code_autogenerated(True)
        assert sheet.code == "EXP00002"
        assert line.code == ""

        model.set_code_autogenerated(False)
        assert sheet.code == "EXP00001"
        assert line.code == "EXP00001-00001"
        assert not sheet.is_code_autogenerated()


# =============================================================================
# Lines
# =============================================================================

class TestLines:
    """Tests for line handling inside the model."""

    def test_prepare_to_edit_none(self, test_db):
        session, _ = test_db
        with pytest.raises(ValueError):
            ExpenseSheetModel(session).prepare_to_edit(None)

    def test_lines_sorted_undated_first_then_newest(self, test_db):
        session, tree = test_db
        model = ExpenseSheetModel(session)
        model.init_create(personal=False)
        add_line(model, 1, tree['pour'], date(2024, 1, 1), "old")
        add_line(model, 2, tree['pour'], date(2024, 3, 1), "new")
        undated = add_line(model, 3, tree['pour'], concept="undated")
        undated.date = None

        concepts = [line.concept for line in model.get_expense_sheet_lines()]
        assert concepts == ["undated", "new", "old"]

    def test_keep_sorted_updates_expense_range(self, test_db):
        session, tree = test_db
        model = ExpenseSheetModel(session)
        model.init_create(personal=False)
        first = add_line(model, 1, tree['pour'], date(2024, 1, 10))
        add_line(model, 2, tree['pour'], date(2024, 2, 10))

        model.keep_sorted_expense_sheet_lines(first, date(2024, 5, 1))
        sheet = model.get_expense_sheet()
        assert sheet.first_expense == date(2024, 2, 10)
        assert sheet.last_expense == date(2024, 5, 1)
        assert model.get_expense_sheet_lines()[0] is first

    def test_calculated_properties_on_save(self, test_db):
        session, tree = test_db
        model = ExpenseSheetModel(session)
        model.init_create(personal=False)
        add_line(model, 1000, tree['pour'], date(2024, 1, 10))
        add_line(model, 250, tree['survey'], date(2024, 2, 10))
        save(model)

        sheet = model.get_expense_sheet()
        assert sheet.total_cents == 1250
        assert sheet.first_expense == date(2024, 1, 10)
        assert sheet.last_expense == date(2024, 2, 10)

    def test_negative_value_rejected(self):
        with pytest.raises(ValueError):
            ExpenseSheetLine.create(-1, "refund", None, None)


# =============================================================================
# Expense aggregates
# =============================================================================

class TestExpenseAggregates:
    """Tests for SumExpenses maintenance through confirm_save()."""

    def test_new_line_updates_direct_and_indirect(self, test_db, saved_sheet):
        _, tree = test_db
        assert direct(tree['pour']) == 1500
        assert indirect(tree['deck']) == 1500
        assert indirect(tree['order']) == 1500
        assert direct(tree['deck']) == 0
        assert tree['survey'].sum_expenses is None

    def test_new_line_totals_are_persisted(self, test_db, saved_sheet):
        session, tree = test_db
        assert persisted_totals(session, tree['pour']) == (1500, 0)
        assert persisted_totals(session, tree['deck']) == (0, 1500)
        assert persisted_totals(session, tree['order']) == (0, 1500)
        assert persisted_totals(session, tree['survey']) == (0, 0)

    def test_resave_without_changes_is_stable(self, test_db, saved_sheet):
        session, tree = test_db
        sheet, _ = saved_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        save(model)
        assert direct(tree['pour']) == 1500
        assert indirect(tree['order']) == 1500

    def test_edit_value(self, test_db, saved_sheet):
        session, tree = test_db
        sheet, line = saved_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        line.value_cents = 2000
        save(model)

        assert direct(tree['pour']) == 2000
        assert indirect(tree['deck']) == 2000
        assert indirect(tree['order']) == 2000
        assert persisted_totals(session, tree['pour']) == (2000, 0)
        assert persisted_totals(session, tree['order']) == (0, 2000)

    def test_move_line_to_other_task(self, test_db, saved_sheet):
        session, tree = test_db
        sheet, line = saved_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        line.order_element = tree['survey']
        save(model)

        assert direct(tree['pour']) == 0
        assert indirect(tree['deck']) == 0
        assert direct(tree['survey']) == 1500
        assert indirect(tree['order']) == 1500
        assert persisted_totals(session, tree['pour']) == (0, 0)
        assert persisted_totals(session, tree['deck']) == (0, 0)
        assert persisted_totals(session, tree['survey']) == (1500, 0)

    def test_delete_line(self, test_db, saved_sheet):
        session, tree = test_db
        sheet, line = saved_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        model.remove_expense_sheet_line(line)
        save(model)

        assert direct(tree['pour']) == 0
        assert indirect(tree['order']) == 0
        assert session.query(ExpenseSheetLine).count() == 0
        assert sheet.total_cents == 0
        assert persisted_totals(session, tree['pour']) == (0, 0)
        assert persisted_totals(session, tree['order']) == (0, 0)

    def test_add_then_remove_unsaved_line(self, test_db, saved_sheet):
        """A line removed before it was ever saved changes nothing."""
        session, tree = test_db
        sheet, _ = saved_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        extra = add_line(model, 999, tree['survey'])
        model.remove_expense_sheet_line(extra)
        save(model)

        assert session.query(ExpenseSheetLine).count() == 1
        assert direct(tree['pour']) == 1500
        assert direct(tree['survey']) == 0
        assert indirect(tree['order']) == 1500

    def test_totals_match_lines(self, test_db, saved_sheet):
        session, tree = test_db
        repo = SumExpensesRepository(session)
        for element in tree.values():
            assert repo.check_totals(element)

    def test_remove_expense_sheet(self, test_db, saved_sheet):
        session, tree = test_db
        sheet, _ = saved_sheet
        model = ExpenseSheetModel(session)
        model.remove_expense_sheet(sheet)

        assert session.query(ExpenseSheet).count() == 0
        assert session.query(ExpenseSheetLine).count() == 0
        assert direct(tree['pour']) == 0
        assert indirect(tree['deck']) == 0
        assert indirect(tree['order']) == 0
        assert persisted_totals(session, tree['pour']) == (0, 0)
        assert persisted_totals(session, tree['deck']) == (0, 0)
        assert persisted_totals(session, tree['order']) == (0, 0)

    def test_remove_expense_sheet_twice(self, test_db, saved_sheet):
        session, _ = test_db
        sheet, _ = saved_sheet
        ExpenseSheetModel(session).remove_expense_sheet(sheet)
        with pytest.raises(InstanceNotFoundError):
            ExpenseSheetModel(session).remove_expense_sheet(sheet)

    def test_remove_unsaved_sheet(self, test_db):
        session, _ = test_db
        with pytest.raises(InstanceNotFoundError):
            ExpenseSheetModel(session).remove_expense_sheet(ExpenseSheet.create())

    def test_edits_net_out_when_session_autoflushes(self, test_db):
        """Flushes between editing and saving keep the last saved values."""
        session, tree = test_db
        autoflush_session = sessionmaker(bind=session.get_bind())()
        try:
            pour = autoflush_session.get(OrderLine, tree['pour'].id)
            model = ExpenseSheetModel(autoflush_session)
            model.init_create(personal=False)
            first = add_line(model, 100, pour)
            second = add_line(model, 200, pour)
            save(model)

            model.prepare_to_edit(model.get_expense_sheet())
            first.value_cents = 1000
            autoflush_session.query(ExpenseSheetLine).count()
            second.value_cents = 2000
            save(model)

            assert direct(pour) == 3000
        finally:
            autoflush_session.close()

        assert persisted_totals(session, tree['pour']) == (3000, 0)
        assert persisted_totals(session, tree['deck']) == (0, 3000)
        assert persisted_totals(session, tree['order']) == (0, 3000)

    def test_remove_sheet_under_edit(self, test_db, two_line_sheet):
        """Unsaved edits of the sheet being removed do not skew the totals."""
        session, tree = test_db
        sheet, first, second = two_line_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        first.value_cents = 9999
        model.remove_expense_sheet_line(second)
        model.remove_expense_sheet(sheet)

        assert model.get_expense_sheet() is None
        assert persisted_totals(session, tree['pour']) == (0, 0)
        assert persisted_totals(session, tree['survey']) == (0, 0)
        assert persisted_totals(session, tree['order']) == (0, 0)


class TestRejectedSave:
    """Tests for saving again after validation refused a save."""

    def test_rejected_save_changes_nothing(self, test_db, two_line_sheet):
        session, tree = test_db
        sheet, first, second = two_line_sheet
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        model.remove_expense_sheet_line(first)
        second.value_cents = 5000
        second.code = ""

        with pytest.raises(ValidationError):
            model.confirm_save()

        assert model.get_expense_sheet_lines() == [second]
        assert model.deleted_expense_sheet_lines == [first]
        assert second.value_cents == 5000
        assert direct(tree['pour']) == 1000
        assert direct(tree['survey']) == 500
        assert persisted_totals(session, tree['order']) == (0, 1500)

    def test_retry_after_fixing_code(self, test_db, two_line_sheet):
        session, tree = test_db
        sheet, first, second = two_line_sheet
        code = second.code
        model = ExpenseSheetModel(session)
        model.prepare_to_edit(sheet)
        model.remove_expense_sheet_line(first)
        second.value_cents = 5000
        second.code = ""
        with pytest.raises(ValidationError):
            model.confirm_save()

        second.code = code
        model.confirm_save()

        assert session.query(ExpenseSheetLine).count() == 1
        assert sheet.total_cents == 5000
        assert persisted_totals(session, tree['pour']) == (0, 0)
        assert persisted_totals(session, tree['deck']) == (0, 0)
        assert persisted_totals(session, tree['survey']) == (5000, 0)
        assert persisted_totals(session, tree['order']) == (0, 5000)


# =============================================================================
# Ownership
# =============================================================================

class TestOwnership:
    """Tests for is_personal_and_belongs_to_current_user()"""

    def _personal_sheet(self, session, tree, user):
        model = ExpenseSheetModel(session, current_user_provider=lambda: user)
        model.init_create(personal=True)
        add_line(model, 500, tree['pour'])
        save(model)
        return model.get_expense_sheet()

    def test_personal_sheet_charged_to_user_worker(self, test_db, worker_user):
        session, tree = test_db
        sheet = self._personal_sheet(session, tree, worker_user)
        assert sheet.get_expense_sheet_lines()[0].resource is worker_user.worker

        model = ExpenseSheetModel(session, current_user_provider=lambda: worker_user)
        assert model.is_personal_and_belongs_to_current_user(sheet)

    def test_other_user(self, test_db, worker_user):
        session, tree = test_db
        sheet = self._personal_sheet(session, tree, worker_user)
        other = User(login_name="grace", worker=Worker.create("Grace", "Hopper"))
        session.add(other)
        session.commit()

        model = ExpenseSheetModel(session, current_user_provider=lambda: other)
        assert not model.is_personal_and_belongs_to_current_user(sheet)

    def test_unbound_or_missing_user(self, test_db, worker_user):
        session, tree = test_db
        sheet = self._personal_sheet(session, tree, worker_user)
        unbound = User(login_name="nobody")
        session.add(unbound)
        session.commit()

        assert not ExpenseSheetModel(session, lambda: unbound).is_personal_and_belongs_to_current_user(sheet)
        assert not ExpenseSheetModel(session).is_personal_and_belongs_to_current_user(sheet)

    def test_not_personal(self, test_db, worker_user, saved_sheet):
        session, _ = test_db
        sheet, _ = saved_sheet
        model = ExpenseSheetModel(session, current_user_provider=lambda: worker_user)
        assert not model.is_personal_and_belongs_to_current_user(sheet)

    def test_personal_without_lines(self, test_db, worker_user):
        session, _ = test_db
        model = ExpenseSheetModel(session, current_user_provider=lambda: worker_user)
        model.init_create(personal=True)
        assert model.get_resource() is worker_user.worker
        assert not model.is_personal_and_belongs_to_current_user(model.get_expense_sheet())


# =============================================================================
# Orders & tasks
# =============================================================================

class TestTasks:
    """Tests for order and task lists."""

    def test_get_orders_excludes_finished(self, test_db):
        session, tree = test_db
        finished = Order.create("Old road", "ORD-2")
        finished.state = OrderStatus.FINISHED.value
        session.add(finished)
        session.commit()

        model = ExpenseSheetModel(session)
        assert [o.name for o in model.get_orders()] == ["Bridge"]

    def test_get_tasks_all_active(self, test_db):
        session, tree = test_db
        model = ExpenseSheetModel(session)
        model.get_orders()
        assert [e.name for e in model.get_tasks()] == ["Deck", "Pour", "Survey"]

    def test_get_tasks_selected_project(self, test_db):
        session, tree = test_db
        other = Order.create("Tunnel", "ORD-3")
        other.add(OrderLine.create("Dig", "ORD-3-1"))
        session.add(other)
        session.commit()

        model = ExpenseSheetModel(session)
        model.get_orders()
        model.set_selected_project(other)
        assert model.get_selected_project() is other
        assert [e.name for e in model.get_tasks()] == ["Dig"]

    def test_init_create_clears_selected_project(self, test_db):
        session, tree = test_db
        model = ExpenseSheetModel(session)
        model.set_selected_project(tree['order'])
        model.init_create(personal=False)
        assert model.get_selected_project() is None


# =============================================================================
# Resources
# =============================================================================

class TestResources:
    """Tests for resource names."""

    def test_resource_name_is_stored(self, test_db):
        session, _ = test_db
        crane = Resource.create("Tower crane", code="RES-1")
        session.add(crane)
        session.commit()

        found = session.query(Resource).filter(Resource.name == "Tower crane").one()
        assert found is crane
        assert found.resource_type == "resource"

    def test_worker_name(self, test_db, worker_user):
        session, _ = test_db
        found = session.query(Resource).filter(Resource.name == "Lovelace, Ada").one()
        assert found is worker_user.worker
        assert isinstance(found, Worker)
