"""
rategrid - selection and reconciliation engine for a multi-unit rate calendar.
"""

__version__ = "1.0.0"
