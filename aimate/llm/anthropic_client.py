"""Anthropic-backed AI assistant.

One ``AIAssistant`` is built at startup with an injected SDK client. When no
API key is configured the assistant is still constructed, and every call
raises ``AdapterUnavailable`` so handlers can tell the user what to fix.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from anthropic import Anthropic, APIConnectionError, APIError, APIStatusError, AuthenticationError

from ..config import Settings
from ..expenses import CATEGORY_VALUES, Expense, ExpenseCategory
from ..store.validation import require_text
from . import prompts
from .decode import (
    SHORT_TRANSCRIPT_CHARS,
    MeetingContent,
    PlannedTask,
    decode_category,
    decode_meeting_content,
    decode_task_plan,
    extract_json,
    meeting_description_fallback,
    transcript_fallback,
)
from .errors import AdapterError, AdapterFailure, AdapterMalformedResponse, AdapterUnavailable

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


def build_anthropic_client(settings: Settings) -> Optional[Anthropic]:
    """Instantiate the SDK client, or None when no API key is configured."""
    if not settings.anthropic_api_key:
        return None
    return Anthropic(api_key=settings.anthropic_api_key, timeout=settings.http_timeout)


class AIAssistant:
    """Task planning, expense classification, meeting and email drafting."""

    def __init__(
        self,
        client: Optional[Anthropic],
        *,
        model: Optional[str] = None,
        max_output_tokens: int = 1500,
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self.model = model or DEFAULT_MODEL
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIAssistant":
        return cls(
            build_anthropic_client(settings),
            model=settings.anthropic_model,
            timeout=settings.http_timeout,
        )

    @property
    def available(self) -> bool:
        return self._client is not None

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    def generate_tasks(self, goal: str) -> List[PlannedTask]:
        """Break a goal into tasks. Unusable output is a hard failure."""
        goal = require_text(goal, "goal")
        text = self._complete(
            prompts.TASK_PLANNER_SYSTEM,
            prompts.task_planner_prompt(goal),
            temperature=0.7,
        )
        return decode_task_plan(extract_json(text))

    def classify_expense(self, description: str) -> str:
        """Return a category for the expense; ``other`` when classification fails."""
        try:
            text = self._complete(
                prompts.expense_classifier_system(CATEGORY_VALUES),
                prompts.EXPENSE_CLASSIFIER_PROMPT.format(description=description),
                temperature=0.3,
                max_tokens=20,
            )
        except AdapterError as exc:
            logger.warning(f"[AI] Expense classification failed, using 'other': {exc}")
            return ExpenseCategory.OTHER.value
        return decode_category(text)

    def budget_insights(self, expenses: Sequence[Expense]) -> str:
        summary: List[Dict[str, Any]] = [
            {
                "amount": e.amount,
                "category": e.category,
                "description": e.description,
                "date": e.date.date().isoformat(),
            }
            for e in expenses
        ]
        return self._complete(
            prompts.BUDGET_ADVISOR_SYSTEM,
            prompts.budget_advisor_prompt(summary),
            temperature=0.7,
        )

    def describe_meeting(self, title: str, participants: Sequence[str] = ()) -> MeetingContent:
        """Draft a description, agenda and action items from a meeting title."""
        participants = list(participants)
        text = self._complete(
            prompts.MEETING_PLANNER_SYSTEM,
            prompts.meeting_planner_prompt(title, participants),
            temperature=0.7,
        )
        try:
            return decode_meeting_content(extract_json(text), fallback_summary=f"Meeting: {title}")
        except AdapterMalformedResponse as exc:
            logger.warning(f"[AI] Meeting description unusable, using template: {exc}")
            return meeting_description_fallback(title, participants)

    def summarize_transcript(self, transcript: str) -> MeetingContent:
        """Summarise a transcript. Short transcripts never reach the model."""
        transcript = require_text(transcript, "transcription")
        if len(transcript) < SHORT_TRANSCRIPT_CHARS:
            return transcript_fallback(transcript)

        text = self._complete(
            prompts.MEETING_SUMMARY_SYSTEM,
            prompts.meeting_summary_prompt(transcript),
            temperature=0.5,
        )
        try:
            return decode_meeting_content(
                extract_json(text), fallback_summary="No summary available"
            )
        except AdapterMalformedResponse as exc:
            logger.warning(f"[AI] Transcript summary unusable, using excerpt: {exc}")
            return transcript_fallback(transcript)

    def draft_email_reply(self, body: str, context: str = "") -> str:
        body = require_text(body, "email content")
        return self._complete(
            prompts.EMAIL_REPLY_SYSTEM,
            prompts.email_reply_prompt(body, context.strip()),
            temperature=0.7,
        )

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _complete(
        self,
        system: str,
        prompt: str,
        *,
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        if self._client is None:
            raise AdapterUnavailable(
                "AI service unavailable. Check that ANTHROPIC_API_KEY is configured."
            )

        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.max_output_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": [{"type": "text", "text": prompt}]}],
                timeout=self.timeout,
            )
        except AuthenticationError as exc:
            raise AdapterUnavailable(
                "AI service rejected the API key. Check ANTHROPIC_API_KEY."
            ) from exc
        except APIStatusError as exc:
            raise AdapterFailure(f"AI service error ({exc.status_code}): {exc.message}") from exc
        except APIConnectionError as exc:
            raise AdapterFailure(f"AI service unreachable or timed out: {exc}") from exc
        except APIError as exc:
            raise AdapterFailure(f"AI request failed: {exc}") from exc

        return _extract_text(response)


def _extract_text(response) -> str:
    chunks = []
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "text":
            chunks.append(getattr(block, "text", ""))
    text = "\n".join(chunks).strip()
    if not text:
        raise AdapterMalformedResponse("AI response did not contain text content.")
    return text
