"""Expenses package."""
from __future__ import annotations

from .store import (
    CATEGORY_VALUES,
    PAYMENT_METHOD_VALUES,
    Expense,
    ExpenseCategory,
    ExpenseFilters,
    PaymentMethod,
    create_expense,
    delete_expense,
    get_expense,
    list_expenses,
    summarize_expenses,
    update_expense,
)

__all__ = [
    "CATEGORY_VALUES",
    "PAYMENT_METHOD_VALUES",
    "Expense",
    "ExpenseCategory",
    "ExpenseFilters",
    "PaymentMethod",
    "create_expense",
    "delete_expense",
    "get_expense",
    "list_expenses",
    "summarize_expenses",
    "update_expense",
]
