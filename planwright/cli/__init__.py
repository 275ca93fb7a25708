"""
CLI Module - Command-line interface for Planwright.

Provides management commands for:
- Database initialization and required data
- Scenario derivation
- Expense reporting
- Running the API server
"""

from .commands import cli, expenses, scenario

__all__ = ['cli', 'expenses', 'scenario']
