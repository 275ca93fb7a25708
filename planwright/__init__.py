"""
Planwright - project management back end for orders, scenarios,
expense sheets and advance tracking.
"""

__version__ = "1.0.0"
