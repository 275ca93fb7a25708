"""
Database models and SQLAlchemy setup for Planwright.
All monetary values stored as integer cents to avoid float drift.
"""
from datetime import date, datetime
from typing import List, Optional
from sqlalchemy import (
    create_engine, Column, Integer, String, Float, Boolean,
    DateTime, Date, Text, ForeignKey, UniqueConstraint
)
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import (
    declarative_base, sessionmaker, relationship, column_property,
    reconstructor, validates, attribute_keyed_dict
)
import enum

from planwright.config import get_config

DATABASE_URL = get_config().database_url
engine = create_engine(
    DATABASE_URL,
    echo=get_config().database_echo,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)
SessionLocal = sessionmaker(autoflush=False, bind=engine)
Base = declarative_base()


class OrderStatus(enum.Enum):
    """Lifecycle state of an order."""
    OFFERED = "OFFERED"
    ACCEPTED = "ACCEPTED"
    STARTED = "STARTED"
    ON_HOLD = "ON_HOLD"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"
    STORED = "STORED"


class EntityName(enum.Enum):
    """Entities whose codes are drawn from an entity sequence."""
    EXPENSE_SHEET = "EXPENSE_SHEET"
    ORDER = "ORDER"
    RESOURCE = "RESOURCE"


class BaseEntity:
    """
    Mixin tracking whether an instance has been saved yet.

    Instances built in Python start as new objects; instances loaded
    by the ORM never are.
    """

    _new_object = True

    @reconstructor
    def _init_on_load(self):
        self._new_object = False

    def is_new_object(self) -> bool:
        return self._new_object

    def dont_pose_as_transient_object_anymore(self) -> None:
        self._new_object = False


class IntegrationEntity(BaseEntity):
    """Mixin for entities exchanged with external systems through a code."""

    CODE_SEPARATOR_CHILDREN = "-"


# =============================================================================
# Configuration
# =============================================================================

class Configuration(Base):
    """Global application configuration (single row)."""
    __tablename__ = "configuration"

    id = Column(Integer, primary_key=True, index=True)
    generate_code_for_expense_sheets = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EntitySequence(Base):
    """Sequence used to build default codes for an entity type."""
    __tablename__ = "entity_sequences"

    MIN_NUMBER_OF_DIGITS = 1
    MAX_NUMBER_OF_DIGITS = 9

    id = Column(Integer, primary_key=True, index=True)
    entity_name = Column(String(50), nullable=False, index=True)
    prefix = Column(String(20), nullable=False, default="")
    last_value = Column(Integer, nullable=False, default=0)
    number_of_digits = Column(Integer, nullable=False, default=5)
    active = Column(Boolean, nullable=False, default=True)

    @validates("number_of_digits")
    def validate_number_of_digits(self, key, value):
        if not self.MIN_NUMBER_OF_DIGITS <= value <= self.MAX_NUMBER_OF_DIGITS:
            raise ValueError(
                f"number_of_digits must be between {self.MIN_NUMBER_OF_DIGITS} "
                f"and {self.MAX_NUMBER_OF_DIGITS}"
            )
        return value

    def format_value(self, value: int) -> str:
        return f"{self.prefix}{str(value).zfill(self.number_of_digits)}"

    def get_next_code(self) -> str:
        """Code the next saved entity will receive."""
        return self.format_value((self.last_value or 0) + 1)

    def increment_last_value(self) -> None:
        self.last_value = (self.last_value or 0) + 1


# =============================================================================
# Resources & Users
# =============================================================================

class Resource(IntegrationEntity, Base):
    """Anything that can be assigned to project work or charged expenses."""
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=True)
    resource_type = Column(String(20), nullable=False)
    description = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    surname = Column(String(100), nullable=True)
    name = Column(String(255), nullable=True)
    nif = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __mapper_args__ = {
        "polymorphic_on": resource_type,
        "polymorphic_identity": "resource",
    }

    @classmethod
    def create(cls, name: str, code: Optional[str] = None) -> 'Resource':
        return cls(name=name, code=code)


class Worker(Resource):
    """A person that can be bound to a user account."""

    __mapper_args__ = {"polymorphic_identity": "worker"}

    @classmethod
    def create(cls, first_name: str, surname: str, nif: Optional[str] = None) -> 'Worker':
        return cls(first_name=first_name, surname=surname, nif=nif, name=f"{surname}, {first_name}")


class User(Base):
    """Application user, optionally bound to a worker."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    login_name = Column(String(100), unique=True, index=True, nullable=False)
    worker_id = Column(Integer, ForeignKey('resources.id'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    worker = relationship("Worker")

    def is_bound(self) -> bool:
        return self.worker is not None


# =============================================================================
# Orders (project / task tree)
# =============================================================================

class OrderElement(IntegrationEntity, Base):
    """
    Node of the project tree.

    Orders are the roots, line groups are inner nodes and order lines
    are the leaf tasks.
    """
    __tablename__ = "order_elements"

    id = Column(Integer, primary_key=True, index=True)
    element_type = Column(String(20), nullable=False)
    code = Column(String(50), unique=True, index=True, nullable=True)
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    parent_id = Column(Integer, ForeignKey('order_elements.id'), nullable=True, index=True)
    position = Column(Integer, nullable=True)
    # Order-only columns
    state = Column(String(20), nullable=True, index=True)
    init_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    parent = relationship("OrderLineGroup", remote_side=[id], back_populates="children")
    sum_expenses = relationship(
        "SumExpenses", uselist=False, back_populates="order_element",
        cascade="all, delete-orphan"
    )

    __mapper_args__ = {
        "polymorphic_on": element_type,
        "polymorphic_identity": "element",
    }

    def get_children(self) -> List['OrderElement']:
        return []

    def get_all_children(self) -> List['OrderElement']:
        """All descendants, depth-first."""
        return []

    def get_all_ancestors(self) -> List['OrderLineGroup']:
        """Parents from the immediate one up to the root."""
        ancestors = []
        parent = self.parent
        while parent is not None:
            ancestors.append(parent)
            parent = parent.parent
        return ancestors

    def get_order(self) -> Optional['Order']:
        root = self
        while root.parent is not None:
            root = root.parent
        return root if isinstance(root, Order) else None


class OrderLine(OrderElement):
    """Leaf task of an order."""

    __mapper_args__ = {"polymorphic_identity": "line"}

    @classmethod
    def create(cls, name: Optional[str] = None, code: Optional[str] = None) -> 'OrderLine':
        return cls(name=name, code=code)


class OrderLineGroup(OrderElement):
    """Order element holding child elements."""

    children = relationship(
        "OrderElement",
        back_populates="parent",
        order_by="OrderElement.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"polymorphic_identity": "line_group"}

    @classmethod
    def create(cls, name: Optional[str] = None, code: Optional[str] = None) -> 'OrderLineGroup':
        return cls(name=name, code=code)

    def add(self, child: OrderElement) -> OrderElement:
        self.children.append(child)
        return child

    def get_children(self) -> List[OrderElement]:
        return list(self.children)

    def get_all_children(self) -> List[OrderElement]:
        result = []
        for child in self.children:
            result.append(child)
            result.extend(child.get_all_children())
        return result


class Order(OrderLineGroup):
    """Project: root of an order element tree."""

    __mapper_args__ = {"polymorphic_identity": "order"}

    @classmethod
    def create(cls, name: Optional[str] = None, code: Optional[str] = None) -> 'Order':
        return cls(
            name=name,
            code=code,
            state=OrderStatus.OFFERED.value,
            init_date=date.today()
        )

    def is_active(self, inactive_states: Optional[List[str]] = None) -> bool:
        if inactive_states is None:
            inactive_states = get_config().inactive_order_states
        return self.state not in inactive_states


# =============================================================================
# Scenarios
# =============================================================================

class OrderVersion(BaseEntity, Base):
    """Version of an order as owned and modified by one scenario."""
    __tablename__ = "order_versions"

    id = Column(Integer, primary_key=True, index=True)
    owner_scenario_id = Column(Integer, ForeignKey('scenarios.id'), nullable=True, index=True)
    modification_by_owner_timestamp = Column(DateTime, nullable=True)

    owner_scenario = relationship("Scenario", foreign_keys=[owner_scenario_id])

    @classmethod
    def create_initial_version(cls, owner_scenario: 'Scenario') -> 'OrderVersion':
        return cls(owner_scenario=owner_scenario)

    def saving_through_owner(self) -> None:
        self.modification_by_owner_timestamp = datetime.utcnow()

    def has_been_modified(self) -> bool:
        return self.modification_by_owner_timestamp is not None


class ScenarioOrder(Base):
    """Association row: which version of an order a scenario uses."""
    __tablename__ = "scenario_orders"

    id = Column(Integer, primary_key=True, index=True)
    scenario_id = Column(Integer, ForeignKey('scenarios.id'), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey('order_elements.id'), nullable=False, index=True)
    order_version_id = Column(Integer, ForeignKey('order_versions.id'), nullable=False)

    scenario = relationship("Scenario", back_populates="order_entries")
    order = relationship("Order")
    order_version = relationship("OrderVersion")

    __table_args__ = (
        UniqueConstraint('scenario_id', 'order_id', name='uq_scenario_order'),
    )


class Scenario(BaseEntity, Base):
    """
    Named planning baseline.

    A scenario may derive from a predecessor; it maps every order it
    contains to the order version it works on.
    """
    __tablename__ = "scenarios"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    predecessor_id = Column(Integer, ForeignKey('scenarios.id'), nullable=True, index=True)
    last_not_owned_reassignations_time_stamp = Column(DateTime, nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    predecessor = relationship("Scenario", remote_side=[id])
    order_entries = relationship(
        "ScenarioOrder",
        back_populates="scenario",
        collection_class=attribute_keyed_dict("order"),
        cascade="all, delete-orphan",
    )

    # Order -> OrderVersion
    orders = association_proxy(
        "order_entries",
        "order_version",
        creator=lambda order, version: ScenarioOrder(order=order, order_version=version),
    )

    @classmethod
    def create(cls, name: str, predecessor: Optional['Scenario'] = None) -> 'Scenario':
        if not name:
            raise ValueError("Scenario name must not be empty")
        return cls(name=name, predecessor=predecessor)

    def add_order(self, order: Order, version: Optional[OrderVersion] = None) -> OrderVersion:
        if version is None:
            version = OrderVersion.create_initial_version(self)
        self.orders[order] = version
        return version

    def remove_order(self, order: Order) -> None:
        self.orders.pop(order, None)

    def contains(self, order: Order) -> bool:
        return order in self.orders

    def get_order_version(self, order: Order) -> Optional[OrderVersion]:
        return self.orders.get(order)

    def is_derived_from(self, scenario: 'Scenario') -> bool:
        predecessor = self.predecessor
        while predecessor is not None:
            if predecessor is scenario:
                return True
            predecessor = predecessor.predecessor
        return False

    def is_predefined(self) -> bool:
        return self.name == get_config().master_scenario_name

    def new_derived_scenario(self, name: Optional[str] = None) -> 'Scenario':
        """
        Create a child scenario of this one.

        The child shares the same Order and OrderVersion objects as this
        scenario at derivation time, but owns its own mapping.
        """
        derived = Scenario.create(name or f"{self.name} derived", predecessor=self)
        for order, version in list(self.orders.items()):
            derived.add_order(order, version)
        return derived


# =============================================================================
# Advance Types
# =============================================================================

class AdvanceType(BaseEntity, Base):
    """Unit in which the progress of an order element is measured."""
    __tablename__ = "advance_types"

    id = Column(Integer, primary_key=True, index=True)
    unit_name = Column(String(100), unique=True, index=True, nullable=False)
    default_max_value = Column(Float, nullable=False, default=100.0)
    updatable = Column(Boolean, nullable=False, default=True)
    unit_precision = Column(Float, nullable=False, default=0.01)
    active = Column(Boolean, nullable=False, default=True)
    percentage = Column(Boolean, nullable=False, default=False)
    quality_form = Column(Boolean, nullable=False, default=False)
    read_only = Column(Boolean, nullable=False, default=False)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    @classmethod
    def create(
        cls,
        unit_name: str,
        default_max_value: float,
        updatable: bool = True,
        unit_precision: float = 0.01,
        active: bool = True,
        percentage: bool = False
    ) -> 'AdvanceType':
        return cls(
            unit_name=unit_name,
            default_max_value=default_max_value,
            updatable=updatable,
            unit_precision=unit_precision,
            active=active,
            percentage=percentage,
            quality_form=False,
            read_only=False
        )

    @validates("unit_name")
    def validate_unit_name(self, key, value):
        if not value or not value.strip():
            raise ValueError("Advance type unit name must not be empty")
        return value.strip()

    @validates("default_max_value")
    def validate_default_max_value(self, key, value):
        if value is None or value <= 0:
            raise ValueError("Advance type default max value must be positive")
        return value


# =============================================================================
# Expense Sheets
# =============================================================================

def expense_sheet_line_sort_key(line: 'ExpenseSheetLine'):
    """
    Ordering of lines inside a sheet: undated lines first, then most
    recent date first, then by code.
    """
    if line.date is None:
        return (0, 0, line.code or "")
    return (1, -line.date.toordinal(), line.code or "")


class ExpenseSheet(IntegrationEntity, Base):
    """
    Dated collection of expense lines charged to projects and resources.
    INVARIANT: total_cents = Σ(line.value_cents) after update_calculated_properties()
    """
    __tablename__ = "expense_sheets"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False, default="")
    code_autogenerated = Column(Boolean, nullable=False, default=False)
    personal = Column(Boolean, nullable=False, default=False)
    description = Column(String(500), nullable=True)
    first_expense = Column(Date, nullable=True)
    last_expense = Column(Date, nullable=True)
    total_cents = Column(Integer, nullable=False, default=0)
    last_expense_sheet_line_sequence_code = Column(Integer, nullable=False, default=0)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    expense_sheet_lines = relationship(
        "ExpenseSheetLine",
        back_populates="expense_sheet",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @classmethod
    def create(cls) -> 'ExpenseSheet':
        return cls(
            code="",
            code_autogenerated=False,
            personal=False,
            total_cents=0,
            last_expense_sheet_line_sequence_code=0
        )

    def is_personal(self) -> bool:
        return bool(self.personal)

    def is_not_personal(self) -> bool:
        return not self.is_personal()

    def is_code_autogenerated(self) -> bool:
        return bool(self.code_autogenerated)

    def get_expense_sheet_lines(self) -> List['ExpenseSheetLine']:
        return sorted(self.expense_sheet_lines, key=expense_sheet_line_sort_key)

    def add(self, line: 'ExpenseSheetLine') -> None:
        if line not in self.expense_sheet_lines:
            self.expense_sheet_lines.append(line)

    def remove(self, line: 'ExpenseSheetLine') -> None:
        if line in self.expense_sheet_lines:
            self.expense_sheet_lines.remove(line)

    def keep_sorted_expense_sheet_lines(self, line: 'ExpenseSheetLine', new_date: date) -> None:
        line.date = new_date
        self._update_first_and_last_expense()

    def _update_first_and_last_expense(self) -> None:
        dates = [line.date for line in self.expense_sheet_lines if line.date is not None]
        self.first_expense = min(dates) if dates else None
        self.last_expense = max(dates) if dates else None

    def update_calculated_properties(self) -> None:
        self.total_cents = sum(line.value_cents or 0 for line in self.expense_sheet_lines)
        self._update_first_and_last_expense()

    def generate_expense_sheet_line_codes(self, number_of_digits: int) -> None:
        """Assign '<sheet code>-NNNNN' codes to every line without one."""
        for line in self.expense_sheet_lines:
            if not line.code:
                self.last_expense_sheet_line_sequence_code = (
                    (self.last_expense_sheet_line_sequence_code or 0) + 1
                )
                sequence = str(self.last_expense_sheet_line_sequence_code).zfill(number_of_digits)
                line.code = f"{self.code}{self.CODE_SEPARATOR_CHILDREN}{sequence}"


class ExpenseSheetLine(IntegrationEntity, Base):
    """Single expense charged to an order element."""
    __tablename__ = "expense_sheet_lines"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(80), index=True, nullable=True)
    value_cents = column_property(Column(Integer, nullable=False, default=0), active_history=True)
    concept = Column(String(500), nullable=True)
    date = Column(Date, nullable=True, index=True)
    resource_id = Column(Integer, ForeignKey('resources.id'), nullable=True, index=True)
    order_element_id = Column(Integer, ForeignKey('order_elements.id'), nullable=True, index=True)
    expense_sheet_id = Column(Integer, ForeignKey('expense_sheets.id'), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    expense_sheet = relationship("ExpenseSheet", back_populates="expense_sheet_lines")
    resource = relationship("Resource")
    order_element = relationship("OrderElement", active_history=True)

    @classmethod
    def create(
        cls,
        value_cents: int,
        concept: str,
        date: 'Optional[date]',
        order_element: Optional[OrderElement]
    ) -> 'ExpenseSheetLine':
        return cls(
            value_cents=value_cents,
            concept=concept,
            date=date,
            order_element=order_element,
            code=""
        )

    @validates("value_cents")
    def validate_value_cents(self, key, value):
        if value is None or value < 0:
            raise ValueError("Expense line value must not be negative")
        return value


# =============================================================================
# Expense Aggregates
# =============================================================================

class SumExpenses(Base):
    """
    Cached expense totals of an order element.
    direct = lines charged to the element, indirect = lines charged to descendants.
    """
    __tablename__ = "sum_expenses"

    id = Column(Integer, primary_key=True, index=True)
    order_element_id = Column(
        Integer, ForeignKey('order_elements.id'), unique=True, nullable=False, index=True
    )
    total_direct_expenses_cents = Column(Integer, nullable=False, default=0)
    total_indirect_expenses_cents = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order_element = relationship("OrderElement", back_populates="sum_expenses")

    @classmethod
    def create(cls, order_element: OrderElement) -> 'SumExpenses':
        return cls(
            order_element=order_element,
            total_direct_expenses_cents=0,
            total_indirect_expenses_cents=0
        )

    @property
    def total_expenses_cents(self) -> int:
        return (self.total_direct_expenses_cents or 0) + (self.total_indirect_expenses_cents or 0)


def init_db():
    """Initialize the database and create all tables."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """Database session dependency for FastAPI."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
