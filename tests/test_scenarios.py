"""
Unit Tests for Scenarios.

Tests business rules:
- Derived scenarios start with the parent's orders and versions
- Parent and child mappings evolve independently
- Scenario names are unique
"""
import pytest

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from planwright.models import Base, Order, OrderVersion, Scenario
from planwright.domain.exceptions import DuplicateNameError, InstanceNotFoundError
from planwright.domain.services import DataBootstrap
from planwright.infrastructure.repositories import OrderRepository, ScenarioRepository


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def test_db():
    """Create a test database with required data for each test."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    Session = sessionmaker(autoflush=False, bind=engine)
    session = Session()

    DataBootstrap(session).load_required_data()

    yield session

    session.close()


@pytest.fixture
def parent_with_order():
    """Unsaved parent scenario holding one order."""
    parent = Scenario.create("parent")
    order = Order.create("order1")
    parent.add_order(order)
    return parent, order


# =============================================================================
# Derivation
# =============================================================================

class TestNewDerivedScenario:
    """Tests for Scenario.new_derived_scenario()"""

    def test_child_points_to_parent(self, parent_with_order):
        parent, _ = parent_with_order
        child = parent.new_derived_scenario()
        assert child.predecessor is parent
        assert child.predecessor.name == "parent"

    def test_child_has_parent_orders(self, parent_with_order):
        parent, order = parent_with_order
        child = parent.new_derived_scenario()
        assert len(child.orders) == 1
        assert next(iter(child.orders.keys())).name == "order1"
        assert child.contains(order)

    def test_child_shares_order_versions(self, parent_with_order):
        parent, order = parent_with_order
        child = parent.new_derived_scenario()
        assert child.get_order_version(order) is parent.get_order_version(order)

    def test_default_name(self, parent_with_order):
        parent, _ = parent_with_order
        assert parent.new_derived_scenario().name == "parent derived"

    def test_explicit_name(self, parent_with_order):
        parent, _ = parent_with_order
        assert parent.new_derived_scenario("what-if").name == "what-if"

    def test_mappings_are_independent(self, parent_with_order):
        """Adding to the child does not touch the parent and vice versa."""
        parent, order = parent_with_order
        child = parent.new_derived_scenario()

        other = Order.create("order2")
        child.add_order(other)
        assert child.contains(other)
        assert not parent.contains(other)

        parent.remove_order(order)
        assert not parent.contains(order)
        assert child.contains(order)

    def test_replacing_version_in_child(self, parent_with_order):
        parent, order = parent_with_order
        child = parent.new_derived_scenario()
        new_version = OrderVersion.create_initial_version(child)
        child.add_order(order, new_version)

        assert child.get_order_version(order) is new_version
        assert parent.get_order_version(order) is not new_version

    def test_empty_parent(self):
        child = Scenario.create("empty").new_derived_scenario()
        assert len(child.orders) == 0


class TestScenarioEntity:
    """Tests for scenario identity and ancestry."""

    def test_create_requires_name(self):
        with pytest.raises(ValueError):
            Scenario.create("")

    def test_is_derived_from_transitively(self):
        root = Scenario.create("root")
        middle = root.new_derived_scenario()
        leaf = middle.new_derived_scenario()

        assert leaf.is_derived_from(middle)
        assert leaf.is_derived_from(root)
        assert not root.is_derived_from(leaf)
        assert not root.is_derived_from(root)

    def test_add_order_creates_owned_version(self):
        scenario = Scenario.create("s")
        version = scenario.add_order(Order.create("o"))
        assert version.owner_scenario is scenario
        assert not version.has_been_modified()
        version.saving_through_owner()
        assert version.has_been_modified()

    def test_master_is_predefined(self):
        assert Scenario.create("master").is_predefined()
        assert not Scenario.create("other").is_predefined()


# =============================================================================
# Persistence
# =============================================================================

class TestScenarioRepository:
    """Tests for ScenarioRepository."""

    def test_bootstrap_creates_master(self, test_db):
        repo = ScenarioRepository(test_db)
        master = repo.get_master()
        assert master.name == "master"
        assert master.predecessor is None

    def test_bootstrap_is_idempotent(self, test_db):
        counts = DataBootstrap(test_db).load_required_data()
        assert counts == {'scenarios_created': 0, 'advance_types_created': 0}
        assert ScenarioRepository(test_db).count() == 1

    def test_derived_scenario_persists_mapping(self, test_db):
        repo = ScenarioRepository(test_db)
        master = repo.get_master()
        order = Order.create("Bridge", "ORD-1")
        master.add_order(order)
        test_db.commit()

        child = master.new_derived_scenario("what-if")
        repo.save(child)
        test_db.commit()
        test_db.expire_all()

        loaded = repo.find_by_name("what-if")
        assert loaded.predecessor.name == "master"
        assert loaded.get_order_version(order) is master.get_order_version(order)
        assert [o.name for o in OrderRepository(test_db).get_orders_in_scenario(loaded)] == ["Bridge"]

    def test_duplicate_name_rejected(self, test_db):
        repo = ScenarioRepository(test_db)
        with pytest.raises(DuplicateNameError):
            repo.save(Scenario.create("master"))

    def test_find_by_name_missing(self, test_db):
        with pytest.raises(InstanceNotFoundError):
            ScenarioRepository(test_db).find_by_name("nope")

    def test_get_derived_scenarios(self, test_db):
        repo = ScenarioRepository(test_db)
        master = repo.get_master()
        repo.save(master.new_derived_scenario("b"))
        repo.save(master.new_derived_scenario("a"))
        test_db.commit()

        names = [s.name for s in repo.get_derived_scenarios(master)]
        assert names == ["a", "b"]

    def test_version_increments_on_update(self, test_db):
        master = ScenarioRepository(test_db).get_master()
        assert master.version_id == 1

        master.description = "Baseline plan"
        test_db.commit()
        assert master.version_id == 2

    def test_concurrent_update_rejected(self, test_db):
        master = ScenarioRepository(test_db).get_master()
        test_db.execute(
            text("UPDATE scenarios SET version_id = version_id + 1 WHERE id = :id"),
            {"id": master.id}
        )

        master.description = "Baseline plan"
        with pytest.raises(StaleDataError):
            test_db.flush()
        test_db.rollback()
