"""Shared Pydantic request models for API routers.

Request bodies use the frontend's camelCase names; fields are read back by
their snake_case attribute names.

Usage in routers:
    from api.models import TaskCreateRequest, TaskUpdateRequest
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def updates(self) -> Dict[str, Any]:
        """Fields the client actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# Auth Models
# =============================================================================

class RegisterRequest(RequestModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(RequestModel):
    email: Optional[str] = None
    password: Optional[str] = None


class GmailCallbackRequest(RequestModel):
    code: Optional[str] = None


# =============================================================================
# Task Models
# =============================================================================

class TaskCreateRequest(RequestModel):
    title: Optional[str] = None
    description: str = ""
    goal: Optional[str] = None
    priority: str = "medium"
    status: str = "pending"
    due_date: Optional[str] = Field(None, alias="dueDate")
    tags: List[str] = Field(default_factory=list)


class TaskUpdateRequest(RequestModel):
    title: Optional[str] = None
    description: Optional[str] = None
    goal: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    due_date: Optional[str] = Field(None, alias="dueDate")
    tags: Optional[List[str]] = None


class GenerateTasksRequest(RequestModel):
    goal: Optional[str] = None


# =============================================================================
# Expense Models
# =============================================================================

class ExpenseCreateRequest(RequestModel):
    amount: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = None
    date: Optional[str] = None
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    notes: Optional[str] = None


class ExpenseUpdateRequest(RequestModel):
    amount: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = None
    date: Optional[str] = None
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    notes: Optional[str] = None


# =============================================================================
# Meeting Models
# =============================================================================

class ActionItemModel(RequestModel):
    id: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = Field(None, alias="assignedTo")
    due_date: Optional[str] = Field(None, alias="dueDate")
    status: str = "pending"


class MeetingCreateRequest(RequestModel):
    title: Optional[str] = None
    participants: List[str] = Field(default_factory=list)
    date: Optional[str] = None
    summary: Optional[str] = None


class MeetingUpdateRequest(RequestModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    key_points: Optional[List[str]] = Field(None, alias="keyPoints")
    action_items: Optional[List[ActionItemModel]] = Field(None, alias="actionItems")
    participants: Optional[List[str]] = None
    date: Optional[str] = None
    duration: Optional[int] = None


# =============================================================================
# Email Models
# =============================================================================

class GenerateReplyRequest(RequestModel):
    context: str = ""


class ManualReplyRequest(RequestModel):
    original_body: Optional[str] = Field(None, alias="originalBody")
    subject: Optional[str] = None
    from_address: Optional[str] = Field(None, alias="from")
    context: str = ""


class SendReplyRequest(RequestModel):
    reply_text: Optional[str] = Field(None, alias="replyText")


class EmailUpdateRequest(RequestModel):
    ai_reply: Optional[str] = Field(None, alias="aiReply")
    sent_reply: Optional[str] = Field(None, alias="sentReply")
    status: Optional[str] = None
    tags: Optional[List[str]] = None
