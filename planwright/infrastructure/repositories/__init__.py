"""
Repository implementations for data access layer.
"""
from .base_repository import BaseRepository
from .advance_type_repository import AdvanceTypeRepository
from .scenario_repository import ScenarioRepository
from .order_repository import OrderRepository
from .expense_sheet_repository import ExpenseSheetRepository
from .configuration_repository import ConfigurationRepository
from .entity_sequence_repository import EntitySequenceRepository
from .sum_expenses_repository import SumExpensesRepository
from .user_repository import UserRepository, ResourceRepository

__all__ = [
    'BaseRepository',
    'AdvanceTypeRepository',
    'ScenarioRepository',
    'OrderRepository',
    'ExpenseSheetRepository',
    'ConfigurationRepository',
    'EntitySequenceRepository',
    'SumExpensesRepository',
    'UserRepository',
    'ResourceRepository',
]
