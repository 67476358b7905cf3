"""Tasks package - task data models and storage."""
from __future__ import annotations

from .store import (
    PRIORITY_VALUES,
    STATUS_VALUES,
    Task,
    TaskFilters,
    TaskPriority,
    TaskStatus,
    create_task,
    create_tasks_from_plan,
    delete_task,
    get_task,
    list_tasks,
    update_task,
)

__all__ = [
    "PRIORITY_VALUES",
    "STATUS_VALUES",
    "Task",
    "TaskFilters",
    "TaskPriority",
    "TaskStatus",
    "create_task",
    "create_tasks_from_plan",
    "delete_task",
    "get_task",
    "list_tasks",
    "update_task",
]
