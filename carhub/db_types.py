"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid

# Money is always two decimal places; rates are percentages with two decimals
MoneyType = Numeric(12, 2, asdecimal=True)
RateType = Numeric(5, 2, asdecimal=True)
