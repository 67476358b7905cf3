"""Tests for the per-user resource stores (file-backed)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from aimate.email.store import (
    EmailRecord,
    get_email,
    insert_email,
    list_emails,
    update_email,
)
from aimate.expenses import (
    ExpenseFilters,
    create_expense,
    get_expense,
    list_expenses,
    summarize_expenses,
    update_expense,
)
from aimate.llm.decode import ActionItemDraft, MeetingContent, PlannedTask
from aimate.meetings import (
    apply_meeting_content,
    convert_action_item,
    create_meeting,
    get_meeting,
    update_meeting,
)
from aimate.store.validation import ValidationError, now_utc
from aimate.task_store import (
    TaskFilters,
    create_task,
    create_tasks_from_plan,
    delete_task,
    get_task,
    list_tasks,
    update_task,
)
from aimate.users import (
    authenticate,
    clear_gmail_connection,
    get_user,
    register_user,
    set_gmail_address,
    set_gmail_tokens,
    verify_password,
)


# =============================================================================
# Users
# =============================================================================

class TestUsers:

    def test_register_normalizes_email_and_hashes_password(self, user):
        assert user.email == "tester@example.com"
        assert user.password_hash != "s3cret-pass"
        assert verify_password("s3cret-pass", user.password_hash)
        assert not verify_password("wrong", user.password_hash)

    def test_duplicate_email_rejected(self, user):
        with pytest.raises(ValidationError, match="already exists"):
            register_user("Other", "TESTER@example.com", "pw")

    def test_missing_fields_rejected(self):
        with pytest.raises(ValidationError):
            register_user("", "a@example.com", "pw")

    def test_authenticate(self, user):
        assert authenticate("Tester@Example.com", "s3cret-pass").id == user.id
        assert authenticate("tester@example.com", "nope") is None
        assert authenticate("nobody@example.com", "s3cret-pass") is None

    def test_api_dict_hides_credentials(self, user):
        set_gmail_tokens(user, access_token="a", refresh_token="r")
        public = get_user(user.id).to_api_dict()

        assert public["gmailConnected"] is True
        assert "password_hash" not in public
        assert "gmail_refresh_token" not in public

    def test_repeat_consent_keeps_refresh_token(self, user):
        set_gmail_tokens(user, access_token="a1", refresh_token="r1")
        set_gmail_tokens(user, access_token="a2", refresh_token=None)

        stored = get_user(user.id)
        assert stored.gmail_refresh_token == "r1"
        assert stored.gmail_access_token == "a2"

    def test_new_consent_clears_connected_address(self, user):
        set_gmail_tokens(user, access_token="a1", refresh_token="r1")
        set_gmail_address(user, "old@example.com")

        set_gmail_tokens(get_user(user.id), access_token="a2", refresh_token="r2")

        assert get_user(user.id).gmail_email is None

    def test_clear_gmail_connection(self, user):
        set_gmail_tokens(user, access_token="a", refresh_token="r")
        clear_gmail_connection(user)

        assert get_user(user.id).gmail_connected is False


# =============================================================================
# Tasks
# =============================================================================

class TestTasks:

    def test_create_defaults(self, user):
        task = create_task(user.id, "  Write report ")

        assert task.title == "Write report"
        assert task.status == "pending"
        assert task.priority == "medium"
        assert get_task(user.id, task.id).title == "Write report"

    def test_create_rejects_blank_title_and_bad_enum(self, user):
        with pytest.raises(ValidationError):
            create_task(user.id, "  ")
        with pytest.raises(ValidationError):
            create_task(user.id, "Task", priority="urgent")

    def test_tasks_are_isolated_per_user(self, user):
        other = register_user("Other", "other@example.com", "pw")
        task = create_task(user.id, "Mine")

        assert get_task(other.id, task.id) is None
        assert list_tasks(other.id) == []
        assert update_task(other.id, task.id, {"title": "Stolen"}) is None
        assert delete_task(other.id, task.id) is False

    def test_list_filters(self, user):
        create_task(user.id, "A", priority="high", goal="Launch")
        create_task(user.id, "B", priority="low", status="completed")

        assert [t.title for t in list_tasks(user.id, TaskFilters(priority="high"))] == ["A"]
        assert [t.title for t in list_tasks(user.id, TaskFilters(status="completed"))] == ["B"]
        assert [t.title for t in list_tasks(user.id, TaskFilters(goal="Launch"))] == ["A"]

    def test_completion_stamp_is_kept_when_reopened(self, user):
        task = create_task(user.id, "Ship")

        done = update_task(user.id, task.id, {"status": "completed"})
        assert done.completed_at is not None

        reopened = update_task(user.id, task.id, {"status": "in-progress"})
        assert reopened.status == "in-progress"
        assert reopened.completed_at == done.completed_at

    def test_update_rejects_unknown_fields(self, user):
        task = create_task(user.id, "Ship")
        with pytest.raises(ValidationError):
            update_task(user.id, task.id, {"ai_generated": True})

    def test_create_from_plan_sets_due_dates(self, user):
        before = now_utc()
        tasks = create_tasks_from_plan(
            user.id,
            "Learn Spanish",
            [PlannedTask("Pick a course", estimated_days=3, priority="high"), PlannedTask("Practice daily")],
        )

        assert all(t.ai_generated and t.goal == "Learn Spanish" for t in tasks)
        assert tasks[0].due_date >= before + timedelta(days=3)
        assert tasks[1].due_date is None


# =============================================================================
# Expenses
# =============================================================================

class TestExpenses:

    def test_create_and_summarize(self, user):
        create_expense(user.id, amount=120.5, description="Lunch", category="food")
        create_expense(user.id, amount="80", description="Bus pass", category="transport")
        create_expense(user.id, amount=30, description="Snacks", category="food")

        summary = summarize_expenses(list_expenses(user.id))

        assert summary["total"] == 230.5
        assert summary["byCategory"] == {"food": 150.5, "transport": 80.0}

    @pytest.mark.parametrize("amount", [None, "", "abc", -5, float("nan")])
    def test_invalid_amounts(self, user, amount):
        with pytest.raises(ValidationError):
            create_expense(user.id, amount=amount, description="x", category="food")

    def test_date_range_filter_and_order(self, user):
        base = datetime(2026, 2, 1, tzinfo=timezone.utc)
        create_expense(user.id, amount=1, description="Old", category="other", date=base)
        create_expense(user.id, amount=2, description="Mid", category="other", date=base + timedelta(days=10))
        create_expense(user.id, amount=3, description="New", category="bills", date=base + timedelta(days=20))

        window = list_expenses(
            user.id,
            ExpenseFilters(start_date=base + timedelta(days=5), end_date=base + timedelta(days=25)),
        )
        assert [e.description for e in window] == ["New", "Mid"]
        assert [e.description for e in list_expenses(user.id, ExpenseFilters(category="bills"))] == ["New"]

    def test_manual_category_clears_ai_flag(self, user):
        expense = create_expense(
            user.id, amount=10, description="Movie", category="other", ai_classified=True
        )

        updated = update_expense(user.id, expense.id, {"category": "entertainment"})

        assert updated.category == "entertainment"
        assert get_expense(user.id, expense.id).ai_classified is False

    def test_invalid_category_rejected(self, user):
        with pytest.raises(ValidationError):
            create_expense(user.id, amount=10, description="x", category="luxury")


# =============================================================================
# Meetings
# =============================================================================

class TestMeetings:

    def test_ai_content_assigns_participants_round_robin(self, user):
        content = MeetingContent(
            summary="Kickoff",
            key_points=["Scope"],
            action_items=[
                ActionItemDraft("Write brief"),
                ActionItemDraft("Book venue", "Zoe"),
                ActionItemDraft("Send recap"),
            ],
        )

        meeting = create_meeting(user.id, "Kickoff", participants=["Ana", "Ben"], content=content)

        assert meeting.is_ai_generated is True
        assert [i.assigned_to for i in meeting.action_items] == ["Ana", "Zoe", "Ana"]

    def test_transcript_content_keeps_items_when_model_returns_none(self, user):
        meeting = create_meeting(user.id, "Retro")
        meeting = update_meeting(user.id, meeting.id, {"action_items": [{"description": "Fix CI"}]})

        apply_meeting_content(meeting, MeetingContent(summary="Short"))

        assert meeting.summary == "Short"
        assert [i.description for i in meeting.action_items] == ["Fix CI"]

    def test_convert_action_item_once(self, user):
        meeting = create_meeting(user.id, "Planning")
        meeting = update_meeting(
            user.id, meeting.id, {"action_items": [{"description": "Draft budget", "assigned_to": "Ana"}]}
        )
        item_id = meeting.action_items[0].id

        converted_meeting, task = convert_action_item(user.id, meeting.id, item_id)

        assert task.title == "Draft budget"
        assert "Planning" in task.description
        assert converted_meeting.action_items[0].converted_to_task is True
        assert get_meeting(user.id, meeting.id).action_items[0].converted_to_task is True
        with pytest.raises(ValidationError):
            convert_action_item(user.id, meeting.id, item_id)

    def test_convert_missing_item(self, user):
        meeting = create_meeting(user.id, "Planning")

        assert convert_action_item(user.id, meeting.id, "nope") is None
        assert convert_action_item(user.id, "missing", "nope") is None

    def test_update_keeps_item_ids_and_conversion_flags(self, user):
        meeting = create_meeting(user.id, "Planning")
        meeting = update_meeting(user.id, meeting.id, {"action_items": [{"description": "A"}]})
        item = meeting.action_items[0]
        convert_action_item(user.id, meeting.id, item.id)

        meeting = update_meeting(
            user.id,
            meeting.id,
            {"action_items": [{"id": item.id, "description": "A revised"}, {"description": "B"}]},
        )

        assert meeting.action_items[0].id == item.id
        assert meeting.action_items[0].converted_to_task is True
        assert meeting.action_items[1].converted_to_task is False


# =============================================================================
# Emails
# =============================================================================

def _record(message_id: str, account: str, minutes: int, status: str = "draft") -> EmailRecord:
    now = now_utc()
    return EmailRecord(
        gmail_message_id=message_id,
        gmail_email=account,
        thread_id="t",
        from_address="sender@example.org",
        to_address=account,
        subject="s",
        original_body="b",
        received_at=datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes),
        status=status,
        created_at=now,
        updated_at=now,
    )


class TestEmailStore:

    def test_insert_never_overwrites(self, user):
        assert insert_email(user.id, _record("m1", "me@example.com", 1)) is True
        duplicate = _record("m1", "me@example.com", 1)
        duplicate.subject = "changed"

        assert insert_email(user.id, duplicate) is False
        assert get_email(user.id, "m1").subject == "s"

    def test_list_is_scoped_to_account_and_paginated(self, user):
        for i in range(5):
            insert_email(user.id, _record(f"m{i}", "me@example.com", i, status="sent" if i == 4 else "draft"))
        insert_email(user.id, _record("x1", "other@example.com", 10))

        page, total = list_emails(user.id, "me@example.com", limit=2, skip=1)
        assert total == 5
        assert [r.id for r in page] == ["m3", "m2"]

        sent, sent_total = list_emails(user.id, "me@example.com", status="sent")
        assert sent_total == 1 and sent[0].id == "m4"

        assert list_emails(user.id, None) == ([], 0)

    def test_list_rejects_unknown_status(self, user):
        with pytest.raises(ValidationError):
            list_emails(user.id, "me@example.com", status="archived")

    def test_update_only_reply_state(self, user):
        insert_email(user.id, _record("m1", "me@example.com", 1))

        updated = update_email(user.id, "m1", {"status": "sent", "sent_reply": "Done"})
        assert updated.sent_at is not None
        assert updated.sent_reply == "Done"

        with pytest.raises(ValidationError):
            update_email(user.id, "m1", {"subject": "rewrite"})
