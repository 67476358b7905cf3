"""Tests for model output decoding and the AI assistant.

The Anthropic SDK client is a MagicMock; no network calls are made.
"""
from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from anthropic import APIConnectionError

from aimate.expenses import Expense
from aimate.llm import (
    AdapterFailure,
    AdapterMalformedResponse,
    AdapterUnavailable,
    AIAssistant,
    DEFAULT_MODEL,
    decode_category,
    decode_meeting_content,
    decode_task_plan,
    extract_json,
)
from aimate.llm import prompts
from aimate.llm.decode import meeting_description_fallback, transcript_fallback
from aimate.store.validation import ValidationError

LONG_TRANSCRIPT = (
    "We reviewed the quarterly roadmap in detail. Priya will draft the launch plan. "
    "Marketing needs the budget numbers by Friday. We agreed to meet again next week."
)


def make_client(*texts: str) -> MagicMock:
    client = MagicMock()
    client.messages.create.side_effect = [
        SimpleNamespace(content=[SimpleNamespace(type="text", text=text)]) for text in texts
    ]
    return client


# =============================================================================
# JSON Extraction
# =============================================================================

class TestExtractJson:

    def test_plain_json(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert extract_json('```json\n[{"title": "x"}]\n```') == [{"title": "x"}]

    def test_leading_prose(self):
        assert extract_json('Here you go: {"summary": "ok"} Thanks!') == {"summary": "ok"}

    def test_garbage_is_malformed(self):
        with pytest.raises(AdapterMalformedResponse):
            extract_json("I cannot help with that")


# =============================================================================
# Task Plans
# =============================================================================

class TestDecodeTaskPlan:

    def test_wrapped_list_with_alternate_keys(self):
        planned = decode_task_plan({
            "Tasks": [
                {"Title": "Research venues", "Priority": "HIGH", "estimated_days": "3", "Tags": "events"},
                {"name": "Send invites", "days": 5},
            ]
        })

        assert [p.title for p in planned] == ["Research venues", "Send invites"]
        assert planned[0].priority == "high"
        assert planned[0].estimated_days == 3
        assert planned[0].tags == ["events"]
        assert planned[1].priority == "medium"

    def test_strings_become_titles_and_invalid_items_are_skipped(self):
        planned = decode_task_plan(["Outline chapters", {"description": "no title"}, 42])

        assert len(planned) == 1
        assert planned[0].title == "Outline chapters"

    def test_unknown_priority_and_negative_days_fall_back(self):
        planned = decode_task_plan([{"title": "Do it", "priority": "urgent", "estimatedDays": -2}])

        assert planned[0].priority == "medium"
        assert planned[0].estimated_days is None

    def test_no_usable_tasks_is_malformed(self):
        with pytest.raises(AdapterMalformedResponse):
            decode_task_plan({"tasks": [{"description": "missing title"}]})
        with pytest.raises(AdapterMalformedResponse):
            decode_task_plan({"summary": "not a plan"})


# =============================================================================
# Meeting Content
# =============================================================================

class TestDecodeMeetingContent:

    def test_action_items_accept_strings_and_objects(self):
        content = decode_meeting_content(
            {
                "summary": "Planning sync",
                "key_points": ["Budget", {"text": "Timeline"}],
                "ActionItems": ["Book room", {"task": "Share notes", "owner": "Sam"}, {}],
            },
            fallback_summary="fallback",
        )

        assert content.summary == "Planning sync"
        assert content.key_points == ["Budget", "Timeline"]
        assert [(a.description, a.assigned_to) for a in content.action_items] == [
            ("Book room", ""),
            ("Share notes", "Sam"),
        ]

    def test_missing_summary_uses_fallback(self):
        content = decode_meeting_content({"agenda": ["Intro"]}, fallback_summary="Meeting: Kickoff")

        assert content.summary == "Meeting: Kickoff"
        assert content.key_points == ["Intro"]
        assert content.action_items == []

    def test_non_object_is_malformed(self):
        with pytest.raises(AdapterMalformedResponse):
            decode_meeting_content(["a", "b"], fallback_summary="x")

    def test_description_fallback_template(self):
        content = meeting_description_fallback("Launch review", ["Ana", "Ben"])

        assert content.summary.startswith("Meeting to discuss: Launch review")
        assert "Ana, Ben" in content.summary
        assert len(content.key_points) == 4
        assert len(content.action_items) == 3

    def test_transcript_fallback_short_and_long(self):
        short = transcript_fallback("Quick hello")
        assert short.summary == "Brief meeting transcription: Quick hello"
        assert short.key_points == ["Quick hello"]

        long = transcript_fallback(LONG_TRANSCRIPT)
        assert long.summary.startswith("Meeting transcription: ")
        assert "We reviewed the quarterly roadmap in detail" in long.key_points


class TestDecodeCategory:

    @pytest.mark.parametrize(
        "answer, expected",
        [
            ("food", "food"),
            ("  Transport. ", "transport"),
            ("The category is: shopping", "shopping"),
            ("groceries", "other"),
            ("", "other"),
        ],
    )
    def test_maps_answers(self, answer, expected):
        assert decode_category(answer) == expected


# =============================================================================
# Prompts
# =============================================================================

def test_summary_prompt_truncates_long_transcripts():
    prompt = prompts.meeting_summary_prompt("x" * (prompts.TRANSCRIPT_PROMPT_LIMIT + 100))
    assert "... (truncated)" in prompt


# =============================================================================
# Assistant
# =============================================================================

class TestAIAssistant:

    def test_unconfigured_assistant_raises_unavailable(self):
        assistant = AIAssistant(None)

        assert assistant.available is False
        with pytest.raises(AdapterUnavailable):
            assistant.generate_tasks("Plan a trip")

    def test_generate_tasks_calls_model(self):
        client = make_client('[{"title": "Book flights", "priority": "high", "estimatedDays": 2}]')
        assistant = AIAssistant(client, timeout=12.0)

        planned = assistant.generate_tasks("Plan a trip")

        assert planned[0].title == "Book flights"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == DEFAULT_MODEL
        assert kwargs["timeout"] == 12.0
        assert "Plan a trip" in kwargs["messages"][0]["content"][0]["text"]

    def test_generate_tasks_rejects_blank_goal(self):
        client = make_client()
        with pytest.raises(ValidationError):
            AIAssistant(client).generate_tasks("   ")
        client.messages.create.assert_not_called()

    def test_generate_tasks_malformed_output_is_an_error(self):
        with pytest.raises(AdapterMalformedResponse):
            AIAssistant(make_client("Sorry, no tasks today.")).generate_tasks("Plan a trip")

    def test_classify_expense_uses_other_on_failure(self):
        client = MagicMock()
        client.messages.create.side_effect = APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )

        assert AIAssistant(client).classify_expense("Uber ride") == "other"

    def test_classify_expense_decodes_answer(self):
        assert AIAssistant(make_client("Transport")).classify_expense("Uber ride") == "transport"

    def test_connection_error_is_adapter_failure(self):
        client = MagicMock()
        client.messages.create.side_effect = APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )

        with pytest.raises(AdapterFailure):
            AIAssistant(client).draft_email_reply("Can we meet Tuesday?")

    def test_empty_completion_is_malformed(self):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(content=[])

        with pytest.raises(AdapterMalformedResponse):
            AIAssistant(client).draft_email_reply("Hello")

    def test_describe_meeting_falls_back_to_template(self):
        content = AIAssistant(make_client("no json here")).describe_meeting("Sprint review", ["Ana"])

        assert content.summary.startswith("Meeting to discuss: Sprint review")

    def test_short_transcript_skips_model(self):
        client = make_client()

        content = AIAssistant(client).summarize_transcript("Hi all, quick check-in.")

        assert content.summary.startswith("Brief meeting transcription:")
        client.messages.create.assert_not_called()

    def test_summarize_transcript_decodes_model_output(self):
        client = make_client(
            '{"summary": "Roadmap review", "keyPoints": ["Launch plan"], '
            '"actionItems": [{"description": "Draft launch plan", "assignedTo": "Priya"}]}'
        )

        content = AIAssistant(client).summarize_transcript(LONG_TRANSCRIPT)

        assert content.summary == "Roadmap review"
        assert content.action_items[0].assigned_to == "Priya"

    def test_budget_insights_sends_expenses(self):
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        expense = Expense(
            id="e1",
            amount=250.0,
            description="Groceries",
            category="food",
            date=now,
            created_at=now,
            updated_at=now,
        )
        client = make_client("Spend less on snacks.")

        insights = AIAssistant(client).budget_insights([expense])

        assert insights == "Spend less on snacks."
        prompt = client.messages.create.call_args.kwargs["messages"][0]["content"][0]["text"]
        assert "Groceries" in prompt
