"""
Domain Services - Reference data bootstrap and expense reporting.
"""

from .bootstrap_service import DataBootstrap
from .expense_report_service import ExpenseReportService, cents_to_display

__all__ = [
    'DataBootstrap',
    'ExpenseReportService',
    'cents_to_display',
]
