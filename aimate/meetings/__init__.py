"""Meetings package."""
from __future__ import annotations

from .store import (
    ActionItem,
    Meeting,
    apply_meeting_content,
    convert_action_item,
    create_meeting,
    delete_meeting,
    get_meeting,
    list_meetings,
    save_meeting,
    update_meeting,
)

__all__ = [
    "ActionItem",
    "Meeting",
    "apply_meeting_content",
    "convert_action_item",
    "create_meeting",
    "delete_meeting",
    "get_meeting",
    "list_meetings",
    "save_meeting",
    "update_meeting",
]
