"""Expense validation package."""

from smartsplit.validation.validator import ExpenseValidator, ensure_valid

__all__ = ["ExpenseValidator", "ensure_valid"]
