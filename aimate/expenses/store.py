"""Expense storage.

Firestore path: users/{user_id}/expenses/{expense_id}
File fallback: {store_dir}/{user}/expenses.jsonl
"""
from __future__ import annotations

import math
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..store import documents
from ..store.validation import (
    ValidationError,
    now_utc,
    parse_datetime,
    require_choice,
    require_text,
)

COLLECTION = "expenses"


class ExpenseCategory(str, Enum):
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    BILLS = "bills"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    TRAVEL = "travel"
    OTHER = "other"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    DIGITAL = "digital"
    OTHER = "other"


CATEGORY_VALUES = [c.value for c in ExpenseCategory]
PAYMENT_METHOD_VALUES = [m.value for m in PaymentMethod]

UPDATABLE_FIELDS = {"amount", "description", "category", "date", "payment_method", "notes"}


@dataclass(slots=True)
class Expense:
    id: str
    amount: float
    description: str
    category: str
    date: datetime
    created_at: datetime
    updated_at: datetime
    payment_method: str = PaymentMethod.CARD.value
    ai_classified: bool = False
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "description": self.description,
            "category": self.category,
            "date": self.date.isoformat(),
            "payment_method": self.payment_method,
            "ai_classified": self.ai_classified,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        return cls(
            id=data["id"],
            amount=float(data["amount"]),
            description=data.get("description", ""),
            category=data.get("category", ExpenseCategory.OTHER.value),
            date=parse_datetime(data.get("date")) or now_utc(),
            payment_method=data.get("payment_method", PaymentMethod.CARD.value),
            ai_classified=bool(data.get("ai_classified", False)),
            notes=data.get("notes"),
            created_at=parse_datetime(data.get("created_at")) or now_utc(),
            updated_at=parse_datetime(data.get("updated_at")) or now_utc(),
        )

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "description": self.description,
            "category": self.category,
            "date": self.date.isoformat(),
            "paymentMethod": self.payment_method,
            "aiClassified": self.ai_classified,
            "notes": self.notes,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(slots=True)
class ExpenseFilters:
    """Category equality plus an inclusive date range."""

    category: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


def validate_amount(value: Any) -> float:
    if value is None or value == "":
        raise ValidationError("Please provide amount and description")
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid amount: {value!r}") from exc
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        raise ValidationError("Amount must be a non-negative number")
    return amount


# =============================================================================
# CRUD Operations
# =============================================================================

def create_expense(
    user_id: str,
    *,
    amount: Any,
    description: str,
    category: str,
    ai_classified: bool = False,
    date: Any = None,
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
) -> Expense:
    """Create and persist an expense.

    Raises:
        ValidationError: if amount/description are missing or a value is out of range.
    """
    now = now_utc()
    expense = Expense(
        id=uuid.uuid4().hex,
        amount=validate_amount(amount),
        description=require_text(description, "description"),
        category=require_choice(category, "category", CATEGORY_VALUES),
        date=parse_datetime(date) or now,
        payment_method=require_choice(
            payment_method or PaymentMethod.CARD.value, "paymentMethod", PAYMENT_METHOD_VALUES
        ),
        ai_classified=ai_classified,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    documents.save_document(user_id, COLLECTION, expense.id, expense.to_dict())
    return expense


def get_expense(user_id: str, expense_id: str) -> Optional[Expense]:
    data = documents.get_document(user_id, COLLECTION, expense_id)
    return Expense.from_dict(data) if data else None


def list_expenses(user_id: str, filters: Optional[ExpenseFilters] = None) -> List[Expense]:
    """List expenses sorted by date, most recent first."""
    expenses = [Expense.from_dict(d) for d in documents.list_documents(user_id, COLLECTION)]
    if filters:
        if filters.category:
            expenses = [e for e in expenses if e.category == filters.category]
        if filters.start_date:
            expenses = [e for e in expenses if e.date >= filters.start_date]
        if filters.end_date:
            expenses = [e for e in expenses if e.date <= filters.end_date]
    expenses.sort(key=lambda e: e.date, reverse=True)
    return expenses


def update_expense(user_id: str, expense_id: str, updates: Dict[str, Any]) -> Optional[Expense]:
    """Apply a validated partial update. Returns None if not found."""
    expense = get_expense(user_id, expense_id)
    if not expense:
        return None

    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update expense field(s): {', '.join(sorted(unknown))}")

    if "amount" in updates:
        expense.amount = validate_amount(updates["amount"])
    if "description" in updates:
        expense.description = require_text(updates["description"], "description")
    if "category" in updates:
        expense.category = require_choice(updates["category"], "category", CATEGORY_VALUES)
        # A user-chosen category replaces the classifier's guess.
        expense.ai_classified = False
    if "date" in updates:
        expense.date = parse_datetime(updates["date"]) or expense.date
    if "payment_method" in updates:
        expense.payment_method = require_choice(
            updates["payment_method"], "paymentMethod", PAYMENT_METHOD_VALUES
        )
    if "notes" in updates:
        expense.notes = updates["notes"]

    expense.updated_at = now_utc()
    documents.save_document(user_id, COLLECTION, expense.id, expense.to_dict())
    return expense


def delete_expense(user_id: str, expense_id: str) -> bool:
    return documents.delete_document(user_id, COLLECTION, expense_id)


def summarize_expenses(expenses: List[Expense]) -> Dict[str, Any]:
    """Return the overall total and per-category totals."""
    by_category: Dict[str, float] = defaultdict(float)
    for expense in expenses:
        by_category[expense.category] += expense.amount
    return {
        "total": round(sum(e.amount for e in expenses), 2),
        "byCategory": {k: round(v, 2) for k, v in by_category.items()},
    }
