"""Tasks Router - task CRUD and AI goal breakdown."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from aimate.store.validation import require_text
from aimate.task_store import (
    TaskFilters,
    create_task,
    create_tasks_from_plan,
    delete_task,
    get_task,
    list_tasks,
    update_task,
)
from api.dependencies import Services, get_current_user, get_services
from api.models import GenerateTasksRequest, TaskCreateRequest, TaskUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Task not found")


@router.get("")
def list_user_tasks(
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    goal: Optional[str] = Query(None),
    user: str = Depends(get_current_user),
) -> dict:
    tasks = list_tasks(user, TaskFilters(status=status, priority=priority, goal=goal))
    return {"success": True, "count": len(tasks), "tasks": [t.to_api_dict() for t in tasks]}


@router.post("", status_code=201)
def create_user_task(
    request: TaskCreateRequest,
    user: str = Depends(get_current_user),
) -> dict:
    task = create_task(
        user,
        request.title,
        description=request.description,
        goal=request.goal,
        priority=request.priority,
        status=request.status,
        due_date=request.due_date,
        tags=request.tags,
    )
    return {"success": True, "task": task.to_api_dict()}


@router.post("/generate", status_code=201)
def generate_tasks(
    request: GenerateTasksRequest,
    user: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    goal = require_text(request.goal, "goal")
    planned = services.assistant.generate_tasks(goal)
    tasks = create_tasks_from_plan(user, goal, planned)
    logger.info(f"[Tasks] Generated {len(tasks)} tasks from goal for user {user}")
    return {"success": True, "count": len(tasks), "tasks": [t.to_api_dict() for t in tasks]}


@router.get("/{task_id}")
def get_user_task(task_id: str, user: str = Depends(get_current_user)) -> dict:
    task = get_task(user, task_id)
    if not task:
        raise _not_found()
    return {"success": True, "task": task.to_api_dict()}


@router.put("/{task_id}")
def update_user_task(
    task_id: str,
    request: TaskUpdateRequest,
    user: str = Depends(get_current_user),
) -> dict:
    task = update_task(user, task_id, request.updates())
    if not task:
        raise _not_found()
    return {"success": True, "task": task.to_api_dict()}


@router.delete("/{task_id}")
def delete_user_task(task_id: str, user: str = Depends(get_current_user)) -> dict:
    if not delete_task(user, task_id):
        raise _not_found()
    return {"success": True, "message": "Task deleted successfully"}
