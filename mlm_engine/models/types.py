"""
Standard type definitions for database models.

Provides consistent types for monetary, percentage and document fields
across all models.
"""

from sqlalchemy import DECIMAL, JSON
from sqlalchemy.dialects.postgresql import JSONB

# Standard money type for amounts, balances, earnings
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Percentage type for referral and fee rates
# Precision: 7 digits total, 4 after decimal point (e.g. 2.5000%)
PercentType = DECIMAL(7, 4)

# JSON documents: JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")
