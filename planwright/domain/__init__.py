"""
Domain Layer - Exceptions and services built on the ORM entities.

This module contains:
- exceptions: Domain error hierarchy
- services/: DataBootstrap, ExpenseReportService
"""
