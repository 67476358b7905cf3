"""Task storage.

Firestore path: users/{user_id}/tasks/{task_id}
File fallback: {store_dir}/{user}/tasks.jsonl

Tasks are created directly by the user, in bulk from an AI goal breakdown,
or from a meeting action item. Moving a task to ``completed`` stamps
``completed_at``; moving it back leaves the stamp in place.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ..store import documents
from ..store.validation import (
    ValidationError,
    coerce_str_list,
    iso_or_none,
    now_utc,
    parse_datetime,
    require_choice,
    require_text,
)

if TYPE_CHECKING:
    from ..llm.decode import PlannedTask

COLLECTION = "tasks"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


STATUS_VALUES = [s.value for s in TaskStatus]
PRIORITY_VALUES = [p.value for p in TaskPriority]

UPDATABLE_FIELDS = {"title", "description", "goal", "priority", "status", "due_date", "tags"}


@dataclass(slots=True)
class Task:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    goal: Optional[str] = None
    priority: str = TaskPriority.MEDIUM.value
    status: str = TaskStatus.PENDING.value
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    ai_generated: bool = False
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "goal": self.goal,
            "priority": self.priority,
            "status": self.status,
            "due_date": iso_or_none(self.due_date),
            "completed_at": iso_or_none(self.completed_at),
            "ai_generated": self.ai_generated,
            "tags": self.tags,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description") or "",
            goal=data.get("goal"),
            priority=data.get("priority", TaskPriority.MEDIUM.value),
            status=data.get("status", TaskStatus.PENDING.value),
            due_date=parse_datetime(data.get("due_date")),
            completed_at=parse_datetime(data.get("completed_at")),
            ai_generated=bool(data.get("ai_generated", False)),
            tags=list(data.get("tags") or []),
            created_at=parse_datetime(data.get("created_at")) or now_utc(),
            updated_at=parse_datetime(data.get("updated_at")) or now_utc(),
        )

    def to_api_dict(self) -> Dict[str, Any]:
        """Convert to API response format (camelCase)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "goal": self.goal,
            "priority": self.priority,
            "status": self.status,
            "dueDate": iso_or_none(self.due_date),
            "completedAt": iso_or_none(self.completed_at),
            "aiGenerated": self.ai_generated,
            "tags": self.tags,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(slots=True)
class TaskFilters:
    """Equality filters for listing tasks."""

    status: Optional[str] = None
    priority: Optional[str] = None
    goal: Optional[str] = None


# =============================================================================
# CRUD Operations
# =============================================================================

def create_task(
    user_id: str,
    title: str,
    *,
    description: Optional[str] = None,
    goal: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    due_date: Any = None,
    tags: Optional[List[str]] = None,
    ai_generated: bool = False,
) -> Task:
    """Create and persist a task.

    Raises:
        ValidationError: if the title is missing or an enum value is invalid.
    """
    now = now_utc()
    task = Task(
        id=uuid.uuid4().hex,
        title=require_text(title, "task title"),
        description=(description or "").strip(),
        goal=goal or None,
        priority=require_choice(priority or TaskPriority.MEDIUM.value, "priority", PRIORITY_VALUES),
        status=require_choice(status or TaskStatus.PENDING.value, "status", STATUS_VALUES),
        due_date=parse_datetime(due_date, "dueDate"),
        ai_generated=ai_generated,
        tags=coerce_str_list(tags),
        created_at=now,
        updated_at=now,
    )
    if task.status == TaskStatus.COMPLETED.value:
        task.completed_at = now
    documents.save_document(user_id, COLLECTION, task.id, task.to_dict())
    return task


def create_tasks_from_plan(
    user_id: str,
    goal: str,
    planned: Sequence["PlannedTask"],
) -> List[Task]:
    """Persist an AI goal breakdown as tasks.

    Each due date is ``now + estimated_days`` when an estimate was given.
    """
    now = now_utc()
    tasks = []
    for item in planned:
        due = now + timedelta(days=item.estimated_days) if item.estimated_days else None
        tasks.append(
            create_task(
                user_id,
                item.title,
                description=item.description,
                goal=goal,
                priority=item.priority,
                due_date=due,
                tags=item.tags,
                ai_generated=True,
            )
        )
    return tasks


def get_task(user_id: str, task_id: str) -> Optional[Task]:
    data = documents.get_document(user_id, COLLECTION, task_id)
    return Task.from_dict(data) if data else None


def list_tasks(user_id: str, filters: Optional[TaskFilters] = None) -> List[Task]:
    """List the user's tasks, newest first, with optional equality filters."""
    tasks = [Task.from_dict(data) for data in documents.list_documents(user_id, COLLECTION)]
    if filters:
        tasks = _apply_filters(tasks, filters)
    tasks.sort(key=lambda t: t.created_at, reverse=True)
    return tasks


def update_task(user_id: str, task_id: str, updates: Dict[str, Any]) -> Optional[Task]:
    """Apply a partial update.

    Args:
        user_id: Owner of the task.
        task_id: The task ID.
        updates: snake_case field names to new values; unknown fields are rejected.

    Returns:
        Updated Task, or None if the user has no such task.

    Raises:
        ValidationError: for unknown fields or invalid values.
    """
    task = get_task(user_id, task_id)
    if not task:
        return None

    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update task field(s): {', '.join(sorted(unknown))}")

    now = now_utc()
    if "title" in updates:
        task.title = require_text(updates["title"], "task title")
    if "description" in updates:
        task.description = (updates["description"] or "").strip()
    if "goal" in updates:
        task.goal = updates["goal"] or None
    if "priority" in updates:
        task.priority = require_choice(updates["priority"], "priority", PRIORITY_VALUES)
    if "status" in updates:
        task.status = require_choice(updates["status"], "status", STATUS_VALUES)
        if task.status == TaskStatus.COMPLETED.value:
            task.completed_at = now
    if "due_date" in updates:
        task.due_date = parse_datetime(updates["due_date"], "dueDate")
    if "tags" in updates:
        task.tags = coerce_str_list(updates["tags"])

    task.updated_at = now
    documents.save_document(user_id, COLLECTION, task.id, task.to_dict())
    return task


def delete_task(user_id: str, task_id: str) -> bool:
    return documents.delete_document(user_id, COLLECTION, task_id)


def _apply_filters(tasks: List[Task], filters: TaskFilters) -> List[Task]:
    result = tasks
    if filters.status:
        result = [t for t in result if t.status == filters.status]
    if filters.priority:
        result = [t for t in result if t.priority == filters.priority]
    if filters.goal:
        result = [t for t in result if t.goal == filters.goal]
    return result
