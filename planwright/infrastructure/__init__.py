"""
Infrastructure Layer - Repository implementations for data access.
"""

from .repositories import (
    BaseRepository,
    AdvanceTypeRepository,
    ScenarioRepository,
    OrderRepository,
    ExpenseSheetRepository,
    ConfigurationRepository,
    EntitySequenceRepository,
    SumExpensesRepository,
    UserRepository,
    ResourceRepository,
)

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
