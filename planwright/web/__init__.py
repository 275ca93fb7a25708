"""
Presentation models - stateful objects backing the application views.
"""

from .common import IntegrationEntityModel
from .expensesheet import ExpenseSheetModel

__all__ = [
    'IntegrationEntityModel',
    'ExpenseSheetModel',
]
