"""
SmartSplit - Ledger & Settlement Engine

Shared-expense accounting for peer groups and cash allocation across
multi-entity portfolios, built on one balance-netting primitive.

DESIGN PRINCIPLES:
1. Money is exact: integer cents inside, Decimal at the boundary
2. Balances are derived, never stored
3. Fail early, fail visibly
4. No silent corrections
5. Every write is versioned and auditable
"""

__version__ = "1.0.0"
__author__ = "SmartSplit Team"
