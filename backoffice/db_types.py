"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid

# Money: two decimals for prices and totals
MoneyType = Numeric(14, 2)

# Tax amounts are stored unrounded so the CGST/SGST halves stay exact
TaxAmountType = Numeric(20, 8)

# Unit prices derived from margins
UnitPriceType = Numeric(14, 4)

# Raw material quantities (kg, litres, ...)
QuantityType = Numeric(14, 3)

# Percentages (GST rate, margin)
PercentType = Numeric(6, 2)
