"""Tolerant decoding of model output.

Models return JSON in slightly different shapes from call to call. Each
decoder here accepts every shape listed in its table and applies a fixed
fallback per field, so callers never inspect raw completions themselves.

Task plan (``decode_task_plan``)::

    top level      list of items | {"tasks": [...]} | {"Tasks": [...]}
    item           object | plain string (used as the title)
    title          title | Title | task | name              -> item skipped if missing
    description    description | Description | details      -> ""
    priority       priority | Priority (case-insensitive)   -> "medium" if not low/medium/high
    estimated days estimatedDays | estimated_days |
                   EstimatedDays | days                     -> None if not a number >= 0
    tags           tags | Tags (list or single string)      -> []

Meeting content (``decode_meeting_content``)::

    top level      object (anything else is malformed)
    summary        summary | Summary | description          -> caller's fallback summary
    key points     keyPoints | key_points | KeyPoints |
                   agenda                                   -> []
    action items   actionItems | action_items | ActionItems -> []
    action item    plain string | object with
                   description | task | title | text and
                   assignedTo | assigned_to | assignee | owner

Category (``decode_category``): the first known category found in the
answer, otherwise ``"other"``.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..expenses import CATEGORY_VALUES, ExpenseCategory
from ..task_store import PRIORITY_VALUES, TaskPriority
from .errors import AdapterMalformedResponse

SHORT_TRANSCRIPT_CHARS = 50

MEETING_FALLBACK_KEY_POINTS = [
    "Review current status",
    "Discuss key challenges",
    "Plan next steps",
    "Assign responsibilities",
]

MEETING_FALLBACK_ACTION_ITEMS = [
    "Document discussion points",
    "Follow up on action items",
    "Schedule next meeting if needed",
]

_FENCE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)


@dataclass(slots=True)
class PlannedTask:
    title: str
    description: str = ""
    priority: str = TaskPriority.MEDIUM.value
    estimated_days: Optional[int] = None
    tags: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ActionItemDraft:
    description: str
    assigned_to: str = ""


@dataclass(slots=True)
class MeetingContent:
    summary: str
    key_points: List[str] = field(default_factory=list)
    action_items: List[ActionItemDraft] = field(default_factory=list)


# =============================================================================
# JSON Extraction
# =============================================================================

def extract_json(text: str) -> Any:
    """Parse JSON from a completion, tolerating code fences and leading prose."""
    cleaned = (text or "").strip()
    fence_match = _FENCE.match(cleaned)
    if fence_match:
        cleaned = fence_match.group(1).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("{", "}"), ("[", "]")):
        start = cleaned.find(opener)
        end = cleaned.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise AdapterMalformedResponse(f"AI response was not valid JSON: {text[:200]!r}")


def _first(data: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _string_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if isinstance(item, dict):
            item = _first(item, ("text", "point", "description", "title"))
        text = _text(item)
        if text:
            items.append(text)
    return items


# =============================================================================
# Task Plans
# =============================================================================

def decode_task_plan(data: Any) -> List[PlannedTask]:
    """Decode a goal breakdown.

    Raises:
        AdapterMalformedResponse: if no usable task is present.
    """
    if isinstance(data, dict):
        data = _first(data, ("tasks", "Tasks"))
    if not isinstance(data, list):
        raise AdapterMalformedResponse("AI task plan was not a list of tasks")

    planned = [task for task in (_decode_planned_task(item) for item in data) if task]
    if not planned:
        raise AdapterMalformedResponse("AI task plan contained no usable tasks")
    return planned


def _decode_planned_task(item: Any) -> Optional[PlannedTask]:
    if isinstance(item, str):
        return PlannedTask(title=item.strip()) if item.strip() else None
    if not isinstance(item, dict):
        return None

    title = _text(_first(item, ("title", "Title", "task", "name")))
    if not title:
        return None

    priority = _text(_first(item, ("priority", "Priority"))).lower()
    if priority not in PRIORITY_VALUES:
        priority = TaskPriority.MEDIUM.value

    return PlannedTask(
        title=title,
        description=_text(_first(item, ("description", "Description", "details"))),
        priority=priority,
        estimated_days=_non_negative_int(
            _first(item, ("estimatedDays", "estimated_days", "EstimatedDays", "days"))
        ),
        tags=_string_list(_first(item, ("tags", "Tags"))),
    )


def _non_negative_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return None
    return number if number >= 0 else None


# =============================================================================
# Meeting Content
# =============================================================================

def decode_meeting_content(data: Any, *, fallback_summary: str) -> MeetingContent:
    """Decode a meeting summary/description.

    Raises:
        AdapterMalformedResponse: if ``data`` is not an object.
    """
    if not isinstance(data, dict):
        raise AdapterMalformedResponse("AI meeting content was not an object")

    summary = _text(_first(data, ("summary", "Summary", "description"))) or fallback_summary
    key_points = _string_list(_first(data, ("keyPoints", "key_points", "KeyPoints", "agenda")))

    raw_items = _first(data, ("actionItems", "action_items", "ActionItems"))
    action_items = []
    for item in raw_items if isinstance(raw_items, list) else []:
        draft = _decode_action_item(item)
        if draft:
            action_items.append(draft)

    return MeetingContent(summary=summary, key_points=key_points, action_items=action_items)


def _decode_action_item(item: Any) -> Optional[ActionItemDraft]:
    if isinstance(item, dict):
        description = _text(_first(item, ("description", "task", "title", "text")))
        assignee = _text(_first(item, ("assignedTo", "assigned_to", "assignee", "owner")))
        return ActionItemDraft(description, assignee) if description else None
    description = _text(item)
    return ActionItemDraft(description) if description else None


def meeting_description_fallback(title: str, participants: Sequence[str]) -> MeetingContent:
    """Templated agenda used when the model's description cannot be decoded."""
    summary = f"Meeting to discuss: {title}"
    if participants:
        summary += f"\nParticipants: {', '.join(participants)}"
    return MeetingContent(
        summary=summary,
        key_points=list(MEETING_FALLBACK_KEY_POINTS),
        action_items=[ActionItemDraft(text) for text in MEETING_FALLBACK_ACTION_ITEMS],
    )


def transcript_fallback(transcript: str) -> MeetingContent:
    """Summary built from the transcript itself when the model output is unusable."""
    text = transcript.strip()
    if len(text) < SHORT_TRANSCRIPT_CHARS:
        return MeetingContent(summary=f"Brief meeting transcription: {text}", key_points=[text])

    excerpt = text[:500] + ("..." if len(text) > 500 else "")
    sentences = [s.strip() for s in text.split(".")[:5]]
    return MeetingContent(
        summary=f"Meeting transcription: {excerpt}",
        key_points=[s for s in sentences if len(s) > 10],
    )


# =============================================================================
# Expense Categories
# =============================================================================

def decode_category(text: str) -> str:
    """Map a free-text classification answer onto the closed category set."""
    answer = (text or "").strip().lower()
    cleaned = answer.strip(" .\"'`*")
    if cleaned in CATEGORY_VALUES:
        return cleaned
    for word in re.findall(r"[a-z]+", answer):
        if word in CATEGORY_VALUES:
            return word
    return ExpenseCategory.OTHER.value
