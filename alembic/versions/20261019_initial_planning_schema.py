"""Initial planning schema

Creates tables for:
- configuration, entity_sequences: code generation settings
- resources, users: workers and the users bound to them
- order_elements: order trees (orders, line groups, lines)
- scenarios, order_versions, scenario_orders: planning scenarios
- advance_types: progress measurement units
- expense_sheets, expense_sheet_lines, sum_expenses: expenses and their aggregates

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name):
    """Check if a table exists in the database."""
    from sqlalchemy import inspect
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Create the planning schema."""

    # =========================================================================
    # 1. CODE GENERATION
    # =========================================================================
    if not table_exists('configuration'):
        op.create_table(
            'configuration',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('generate_code_for_expense_sheets', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )

    if not table_exists('entity_sequences'):
        op.create_table(
            'entity_sequences',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('entity_name', sa.String(50), nullable=False),
            sa.Column('prefix', sa.String(20), nullable=False, server_default=''),
            sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('number_of_digits', sa.Integer(), nullable=False, server_default='5'),
            sa.Column('active', sa.Boolean(), nullable=False, server_default='1'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_entity_sequences_entity_name', 'entity_sequences', ['entity_name'], unique=False)

    # =========================================================================
    # 2. RESOURCES & USERS
    # =========================================================================
    if not table_exists('resources'):
        op.create_table(
            'resources',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('code', sa.String(50), nullable=True),
            sa.Column('resource_type', sa.String(20), nullable=False),
            sa.Column('description', sa.String(255), nullable=True),
            sa.Column('first_name', sa.String(100), nullable=True),
            sa.Column('surname', sa.String(100), nullable=True),
            sa.Column('name', sa.String(255), nullable=True),
            sa.Column('nif', sa.String(20), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_resources_code', 'resources', ['code'], unique=True)

    if not table_exists('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('login_name', sa.String(100), nullable=False),
            sa.Column('worker_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['worker_id'], ['resources.id']),
        )
        op.create_index('ix_users_login_name', 'users', ['login_name'], unique=True)

    # =========================================================================
    # 3. ORDER TREES
    # =========================================================================
    if not table_exists('order_elements'):
        op.create_table(
            'order_elements',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('element_type', sa.String(20), nullable=False),
            sa.Column('code', sa.String(50), nullable=True),
            sa.Column('name', sa.String(255), nullable=True),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('parent_id', sa.Integer(), nullable=True),
            sa.Column('position', sa.Integer(), nullable=True),
            sa.Column('state', sa.String(20), nullable=True),
            sa.Column('init_date', sa.Date(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['parent_id'], ['order_elements.id']),
        )
        op.create_index('ix_order_elements_code', 'order_elements', ['code'], unique=True)
        op.create_index('ix_order_elements_parent_id', 'order_elements', ['parent_id'], unique=False)
        op.create_index('ix_order_elements_state', 'order_elements', ['state'], unique=False)

    # =========================================================================
    # 4. SCENARIOS
    # =========================================================================
    if not table_exists('scenarios'):
        op.create_table(
            'scenarios',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(200), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('predecessor_id', sa.Integer(), nullable=True),
            sa.Column('last_not_owned_reassignations_time_stamp', sa.DateTime(), nullable=True),
            sa.Column('version_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['predecessor_id'], ['scenarios.id']),
        )
        op.create_index('ix_scenarios_name', 'scenarios', ['name'], unique=True)
        op.create_index('ix_scenarios_predecessor_id', 'scenarios', ['predecessor_id'], unique=False)

    if not table_exists('order_versions'):
        op.create_table(
            'order_versions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('owner_scenario_id', sa.Integer(), nullable=True),
            sa.Column('modification_by_owner_timestamp', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['owner_scenario_id'], ['scenarios.id']),
        )
        op.create_index('ix_order_versions_owner_scenario_id', 'order_versions', ['owner_scenario_id'], unique=False)

    if not table_exists('scenario_orders'):
        op.create_table(
            'scenario_orders',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('scenario_id', sa.Integer(), nullable=False),
            sa.Column('order_id', sa.Integer(), nullable=False),
            sa.Column('order_version_id', sa.Integer(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['scenario_id'], ['scenarios.id']),
            sa.ForeignKeyConstraint(['order_id'], ['order_elements.id']),
            sa.ForeignKeyConstraint(['order_version_id'], ['order_versions.id']),
            sa.UniqueConstraint('scenario_id', 'order_id', name='uq_scenario_order'),
        )
        op.create_index('ix_scenario_orders_scenario_id', 'scenario_orders', ['scenario_id'], unique=False)
        op.create_index('ix_scenario_orders_order_id', 'scenario_orders', ['order_id'], unique=False)

    # =========================================================================
    # 5. ADVANCE TYPES
    # =========================================================================
    if not table_exists('advance_types'):
        op.create_table(
            'advance_types',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('unit_name', sa.String(100), nullable=False),
            sa.Column('default_max_value', sa.Float(), nullable=False, server_default='100.0'),
            sa.Column('updatable', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('unit_precision', sa.Float(), nullable=False, server_default='0.01'),
            sa.Column('active', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('percentage', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('quality_form', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('read_only', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('version_id', sa.Integer(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_advance_types_unit_name', 'advance_types', ['unit_name'], unique=True)

    # =========================================================================
    # 6. EXPENSES
    # =========================================================================
    if not table_exists('expense_sheets'):
        op.create_table(
            'expense_sheets',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('code', sa.String(50), nullable=False, server_default=''),
            sa.Column('code_autogenerated', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('personal', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('description', sa.String(500), nullable=True),
            sa.Column('first_expense', sa.Date(), nullable=True),
            sa.Column('last_expense', sa.Date(), nullable=True),
            sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_expense_sheet_line_sequence_code', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('version_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_expense_sheets_code', 'expense_sheets', ['code'], unique=True)

    if not table_exists('expense_sheet_lines'):
        op.create_table(
            'expense_sheet_lines',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('code', sa.String(80), nullable=True),
            sa.Column('value_cents', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('concept', sa.String(500), nullable=True),
            sa.Column('date', sa.Date(), nullable=True),
            sa.Column('resource_id', sa.Integer(), nullable=True),
            sa.Column('order_element_id', sa.Integer(), nullable=True),
            sa.Column('expense_sheet_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['resource_id'], ['resources.id']),
            sa.ForeignKeyConstraint(['order_element_id'], ['order_elements.id']),
            sa.ForeignKeyConstraint(['expense_sheet_id'], ['expense_sheets.id']),
        )
        op.create_index('ix_expense_sheet_lines_code', 'expense_sheet_lines', ['code'], unique=False)
        op.create_index('ix_expense_sheet_lines_date', 'expense_sheet_lines', ['date'], unique=False)
        op.create_index('ix_expense_sheet_lines_expense_sheet_id', 'expense_sheet_lines', ['expense_sheet_id'], unique=False)
        op.create_index('ix_expense_sheet_lines_order_element_id', 'expense_sheet_lines', ['order_element_id'], unique=False)

    if not table_exists('sum_expenses'):
        op.create_table(
            'sum_expenses',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('order_element_id', sa.Integer(), nullable=False),
            sa.Column('total_direct_expenses_cents', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_indirect_expenses_cents', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['order_element_id'], ['order_elements.id']),
        )
        op.create_index('ix_sum_expenses_order_element_id', 'sum_expenses', ['order_element_id'], unique=True)


def downgrade() -> None:
    """Drop the planning schema."""
    for table_name in (
        'sum_expenses',
        'expense_sheet_lines',
        'expense_sheets',
        'advance_types',
        'scenario_orders',
        'order_versions',
        'scenarios',
        'order_elements',
        'users',
        'resources',
        'entity_sequences',
        'configuration',
    ):
        if table_exists(table_name):
            op.drop_table(table_name)
