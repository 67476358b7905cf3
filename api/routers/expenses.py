"""Expenses Router - expense CRUD, AI classification and budget insights."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from aimate.expenses import (
    ExpenseFilters,
    create_expense,
    delete_expense,
    get_expense,
    list_expenses,
    summarize_expenses,
    update_expense,
)
from aimate.expenses.store import validate_amount
from aimate.store.validation import ValidationError, parse_datetime
from api.dependencies import Services, get_current_user, get_services
from api.models import ExpenseCreateRequest, ExpenseUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter()

NO_EXPENSES_INSIGHT = "No expenses found for the selected period."


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Expense not found")


def _filters(category: Optional[str], start_date: Optional[str], end_date: Optional[str]) -> ExpenseFilters:
    return ExpenseFilters(
        category=category,
        start_date=parse_datetime(start_date, "startDate"),
        end_date=parse_datetime(end_date, "endDate"),
    )


@router.get("")
def list_user_expenses(
    category: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: str = Depends(get_current_user),
) -> dict:
    expenses = list_expenses(user, _filters(category, start_date, end_date))
    return {
        "success": True,
        "count": len(expenses),
        **summarize_expenses(expenses),
        "expenses": [e.to_api_dict() for e in expenses],
    }


@router.post("", status_code=201)
def create_user_expense(
    request: ExpenseCreateRequest,
    user: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    if request.amount is None or not (request.description or "").strip():
        raise ValidationError("Please provide amount and description")
    amount = validate_amount(request.amount)

    category = request.category
    if not category:
        category = services.assistant.classify_expense(request.description)

    expense = create_expense(
        user,
        amount=amount,
        description=request.description,
        category=category,
        ai_classified=not request.category,
        date=request.date,
        payment_method=request.payment_method,
        notes=request.notes,
    )
    return {"success": True, "expense": expense.to_api_dict()}


@router.get("/insights")
def expense_insights(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    expenses = list_expenses(user, _filters(None, start_date, end_date))
    if not expenses:
        return {"success": True, "insights": NO_EXPENSES_INSIGHT}
    return {"success": True, "insights": services.assistant.budget_insights(expenses)}


@router.get("/{expense_id}")
def get_user_expense(expense_id: str, user: str = Depends(get_current_user)) -> dict:
    expense = get_expense(user, expense_id)
    if not expense:
        raise _not_found()
    return {"success": True, "expense": expense.to_api_dict()}


@router.put("/{expense_id}")
def update_user_expense(
    expense_id: str,
    request: ExpenseUpdateRequest,
    user: str = Depends(get_current_user),
) -> dict:
    expense = update_expense(user, expense_id, request.updates())
    if not expense:
        raise _not_found()
    return {"success": True, "expense": expense.to_api_dict()}


@router.delete("/{expense_id}")
def delete_user_expense(expense_id: str, user: str = Depends(get_current_user)) -> dict:
    if not delete_expense(user, expense_id):
        raise _not_found()
    return {"success": True, "message": "Expense deleted successfully"}
