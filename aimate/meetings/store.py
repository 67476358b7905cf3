"""Meeting storage with embedded action items.

Firestore path: users/{user_id}/meetings/{meeting_id}
File fallback: {store_dir}/{user}/meetings.jsonl

Action items live inside the meeting document and are addressed by their own
id. Converting one creates a standalone task; the task keeps no reference back.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

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
from ..task_store import STATUS_VALUES, Task, TaskPriority, create_task

if TYPE_CHECKING:
    from ..llm.decode import MeetingContent

logger = logging.getLogger(__name__)

COLLECTION = "meetings"

UPDATABLE_FIELDS = {
    "title",
    "summary",
    "key_points",
    "action_items",
    "participants",
    "date",
    "duration",
}


@dataclass(slots=True)
class ActionItem:
    id: str
    description: str
    assigned_to: str = ""
    due_date: Optional[datetime] = None
    status: str = "pending"
    converted_to_task: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "assigned_to": self.assigned_to,
            "due_date": iso_or_none(self.due_date),
            "status": self.status,
            "converted_to_task": self.converted_to_task,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionItem":
        return cls(
            id=data.get("id") or uuid.uuid4().hex,
            description=data["description"],
            assigned_to=data.get("assigned_to") or "",
            due_date=parse_datetime(data.get("due_date")),
            status=data.get("status", "pending"),
            converted_to_task=bool(data.get("converted_to_task", False)),
        )

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "assignedTo": self.assigned_to,
            "dueDate": iso_or_none(self.due_date),
            "status": self.status,
            "convertedToTask": self.converted_to_task,
        }


@dataclass(slots=True)
class Meeting:
    id: str
    title: str
    date: datetime
    created_at: datetime
    updated_at: datetime
    audio_file_name: Optional[str] = None
    transcription: Optional[str] = None
    summary: str = ""
    key_points: List[str] = field(default_factory=list)
    action_items: List[ActionItem] = field(default_factory=list)
    participants: List[str] = field(default_factory=list)
    duration: Optional[int] = None
    is_ai_generated: bool = False

    def find_action_item(self, item_id: str) -> Optional[ActionItem]:
        return next((item for item in self.action_items if item.id == item_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date.isoformat(),
            "audio_file_name": self.audio_file_name,
            "transcription": self.transcription,
            "summary": self.summary,
            "key_points": self.key_points,
            "action_items": [item.to_dict() for item in self.action_items],
            "participants": self.participants,
            "duration": self.duration,
            "is_ai_generated": self.is_ai_generated,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Meeting":
        return cls(
            id=data["id"],
            title=data["title"],
            date=parse_datetime(data.get("date")) or now_utc(),
            audio_file_name=data.get("audio_file_name"),
            transcription=data.get("transcription"),
            summary=data.get("summary") or "",
            key_points=list(data.get("key_points") or []),
            action_items=[ActionItem.from_dict(i) for i in data.get("action_items") or []],
            participants=list(data.get("participants") or []),
            duration=data.get("duration"),
            is_ai_generated=bool(data.get("is_ai_generated", False)),
            created_at=parse_datetime(data.get("created_at")) or now_utc(),
            updated_at=parse_datetime(data.get("updated_at")) or now_utc(),
        )

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date.isoformat(),
            "audioFileName": self.audio_file_name,
            "transcription": self.transcription,
            "summary": self.summary,
            "keyPoints": self.key_points,
            "actionItems": [item.to_api_dict() for item in self.action_items],
            "participants": self.participants,
            "duration": self.duration,
            "isAIGenerated": self.is_ai_generated,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


# =============================================================================
# CRUD Operations
# =============================================================================

def create_meeting(
    user_id: str,
    title: str,
    *,
    participants: Optional[List[str]] = None,
    date: Any = None,
    summary: Optional[str] = None,
    content: Optional["MeetingContent"] = None,
) -> Meeting:
    """Create a meeting, optionally pre-filled with AI-generated content."""
    now = now_utc()
    meeting = Meeting(
        id=uuid.uuid4().hex,
        title=require_text(title, "meeting title"),
        date=parse_datetime(date) or now,
        participants=coerce_str_list(participants),
        summary=(summary or "").strip(),
        created_at=now,
        updated_at=now,
    )
    if content is not None:
        apply_meeting_content(meeting, content, assign_round_robin=True)
    return save_meeting(user_id, meeting)


def save_meeting(user_id: str, meeting: Meeting) -> Meeting:
    meeting.updated_at = now_utc()
    documents.save_document(user_id, COLLECTION, meeting.id, meeting.to_dict())
    return meeting


def get_meeting(user_id: str, meeting_id: str) -> Optional[Meeting]:
    data = documents.get_document(user_id, COLLECTION, meeting_id)
    return Meeting.from_dict(data) if data else None


def list_meetings(user_id: str) -> List[Meeting]:
    meetings = [Meeting.from_dict(d) for d in documents.list_documents(user_id, COLLECTION)]
    meetings.sort(key=lambda m: m.date, reverse=True)
    return meetings


def update_meeting(user_id: str, meeting_id: str, updates: Dict[str, Any]) -> Optional[Meeting]:
    """Apply a validated partial update. Returns None if not found."""
    meeting = get_meeting(user_id, meeting_id)
    if not meeting:
        return None

    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update meeting field(s): {', '.join(sorted(unknown))}")

    if "title" in updates:
        meeting.title = require_text(updates["title"], "meeting title")
    if "summary" in updates:
        meeting.summary = (updates["summary"] or "").strip()
    if "key_points" in updates:
        meeting.key_points = coerce_str_list(updates["key_points"])
    if "participants" in updates:
        meeting.participants = coerce_str_list(updates["participants"])
    if "date" in updates:
        meeting.date = parse_datetime(updates["date"]) or meeting.date
    if "duration" in updates:
        meeting.duration = updates["duration"]
    if "action_items" in updates:
        meeting.action_items = _merge_action_items(meeting, updates["action_items"] or [])

    return save_meeting(user_id, meeting)


def delete_meeting(user_id: str, meeting_id: str) -> bool:
    return documents.delete_document(user_id, COLLECTION, meeting_id)


def _merge_action_items(meeting: Meeting, items: Sequence[Dict[str, Any]]) -> List[ActionItem]:
    """Replace the action item list, keeping ids and conversion flags of known items."""
    merged = []
    for raw in items:
        existing = meeting.find_action_item(raw.get("id", "")) if raw.get("id") else None
        description = require_text(raw.get("description"), "action item description")
        status = require_choice(raw.get("status", "pending"), "action item status", STATUS_VALUES)
        merged.append(
            ActionItem(
                id=existing.id if existing else uuid.uuid4().hex,
                description=description,
                assigned_to=(raw.get("assigned_to") or "").strip(),
                due_date=parse_datetime(raw.get("due_date"), "dueDate"),
                status=status,
                converted_to_task=existing.converted_to_task if existing else False,
            )
        )
    return merged


# =============================================================================
# AI Content and Conversion
# =============================================================================

def apply_meeting_content(
    meeting: Meeting,
    content: "MeetingContent",
    *,
    assign_round_robin: bool = False,
) -> Meeting:
    """Copy summary, key points and action items onto the meeting.

    With ``assign_round_robin`` unassigned items are spread across the
    participants in order.
    """
    meeting.summary = content.summary
    meeting.key_points = list(content.key_points)
    participants = meeting.participants

    items = []
    for index, draft in enumerate(content.action_items):
        assignee = draft.assigned_to
        if not assignee and assign_round_robin and participants:
            assignee = participants[index % len(participants)]
        items.append(
            ActionItem(id=uuid.uuid4().hex, description=draft.description, assigned_to=assignee)
        )
    if items or assign_round_robin:
        meeting.action_items = items
    meeting.is_ai_generated = True
    return meeting


def convert_action_item(
    user_id: str,
    meeting_id: str,
    item_id: str,
) -> Optional[Tuple[Meeting, Task]]:
    """Create a task from an action item and flag the item as converted.

    Returns:
        (meeting, task), or None if the meeting or the item does not exist.

    Raises:
        ValidationError: if the item was already converted.
    """
    meeting = get_meeting(user_id, meeting_id)
    if not meeting:
        return None
    item = meeting.find_action_item(item_id)
    if not item:
        return None
    if item.converted_to_task:
        raise ValidationError("Action item has already been converted to a task")

    task = create_task(
        user_id,
        item.description,
        description=f"Action item from meeting: {meeting.title}",
        priority=TaskPriority.MEDIUM.value,
        due_date=item.due_date,
    )
    item.converted_to_task = True
    save_meeting(user_id, meeting)
    logger.info(f"[Meetings] Converted action item {item_id} of meeting {meeting_id} to task {task.id}")
    return meeting, task
