"""Bulk import reconciliation engine for employee, asset and SIM card spreadsheets."""

__version__ = "0.1.0"
