"""
HTTP API for Planwright.
"""
