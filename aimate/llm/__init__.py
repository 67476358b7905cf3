"""LLM helper package."""

from .anthropic_client import AIAssistant, DEFAULT_MODEL, build_anthropic_client
from .decode import (
    ActionItemDraft,
    MeetingContent,
    PlannedTask,
    decode_category,
    decode_meeting_content,
    decode_task_plan,
    extract_json,
)
from .errors import AdapterError, AdapterFailure, AdapterMalformedResponse, AdapterUnavailable

__all__ = [
    "AIAssistant",
    "ActionItemDraft",
    "AdapterError",
    "AdapterFailure",
    "AdapterMalformedResponse",
    "AdapterUnavailable",
    "DEFAULT_MODEL",
    "MeetingContent",
    "PlannedTask",
    "build_anthropic_client",
    "decode_category",
    "decode_meeting_content",
    "decode_task_plan",
    "extract_json",
]
