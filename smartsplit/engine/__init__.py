"""
Ledger & Settlement Engine.

Pure, synchronous computation over expenses, settlements and entities.
No I/O, no shared state: every function here is safe to call from any
thread, and computations for different groups may run in parallel.
"""

from smartsplit.engine.balances import (
    apply_expense,
    apply_settlement,
    compute_balance_sheet,
    compute_balances,
)
from smartsplit.engine.cashflow import (
    allocate,
    apply_transfers,
    assess_risk,
    plan_allocation,
    summarize_fleet,
    transfer_impact,
)
from smartsplit.engine.errors import InvariantViolation, LedgerError, ValidationError
from smartsplit.engine.settlement import optimize, settlement_residuals, suggest_settlements
from smartsplit.engine.splits import build_expense, split
from smartsplit.engine.stats import group_stats, member_stats, settlement_stats

__all__ = [
    # Errors
    "InvariantViolation",
    "LedgerError",
    "ValidationError",
    # Splits
    "build_expense",
    "split",
    # Balances
    "apply_expense",
    "apply_settlement",
    "compute_balance_sheet",
    "compute_balances",
    # Settlements
    "optimize",
    "settlement_residuals",
    "suggest_settlements",
    # Cashflow
    "allocate",
    "apply_transfers",
    "assess_risk",
    "plan_allocation",
    "summarize_fleet",
    "transfer_impact",
    # Statistics
    "group_stats",
    "member_stats",
    "settlement_stats",
]
