"""Email storage.

Firestore path: users/{user_id}/emails/{gmail_message_id}
File fallback: {store_dir}/{user}/emails.jsonl

The Gmail message id is the document id, so a user can hold at most one row
per remote message. Each row also records the Gmail account it was fetched
from; rows from any account other than the connected one are purged on sync.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..store import documents
from ..store.validation import (
    ValidationError,
    coerce_str_list,
    iso_or_none,
    now_utc,
    parse_datetime,
    require_choice,
)

logger = logging.getLogger(__name__)

COLLECTION = "emails"


class EmailStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    FAILED = "failed"


STATUS_VALUES = [s.value for s in EmailStatus]

UPDATABLE_FIELDS = {"ai_reply", "sent_reply", "status", "tags"}


@dataclass(slots=True)
class EmailRecord:
    """A fetched Gmail message plus its local reply state."""

    gmail_message_id: str
    gmail_email: str
    thread_id: str
    from_address: str
    to_address: str
    subject: str
    original_body: str
    created_at: datetime
    updated_at: datetime
    received_at: Optional[datetime] = None
    ai_reply: Optional[str] = None
    sent_reply: Optional[str] = None
    status: str = EmailStatus.DRAFT.value
    sent_at: Optional[datetime] = None
    ai_generated: bool = False
    tags: List[str] = field(default_factory=list)
    message_id_header: str = ""
    references: str = ""

    @property
    def id(self) -> str:
        return self.gmail_message_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gmail_message_id": self.gmail_message_id,
            "gmail_email": self.gmail_email,
            "thread_id": self.thread_id,
            "from": self.from_address,
            "to": self.to_address,
            "subject": self.subject,
            "original_body": self.original_body,
            "received_at": iso_or_none(self.received_at),
            "ai_reply": self.ai_reply,
            "sent_reply": self.sent_reply,
            "status": self.status,
            "sent_at": iso_or_none(self.sent_at),
            "ai_generated": self.ai_generated,
            "tags": self.tags,
            "message_id_header": self.message_id_header,
            "references": self.references,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmailRecord":
        return cls(
            gmail_message_id=data.get("gmail_message_id") or data["id"],
            gmail_email=data.get("gmail_email", ""),
            thread_id=data.get("thread_id", ""),
            from_address=data.get("from", ""),
            to_address=data.get("to", ""),
            subject=data.get("subject", ""),
            original_body=data.get("original_body", ""),
            received_at=parse_datetime(data.get("received_at")),
            ai_reply=data.get("ai_reply"),
            sent_reply=data.get("sent_reply"),
            status=data.get("status", EmailStatus.DRAFT.value),
            sent_at=parse_datetime(data.get("sent_at")),
            ai_generated=bool(data.get("ai_generated", False)),
            tags=list(data.get("tags") or []),
            message_id_header=data.get("message_id_header", ""),
            references=data.get("references", ""),
            created_at=parse_datetime(data.get("created_at")) or now_utc(),
            updated_at=parse_datetime(data.get("updated_at")) or now_utc(),
        )

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "gmailMessageId": self.gmail_message_id,
            "gmailEmail": self.gmail_email,
            "threadId": self.thread_id,
            "from": self.from_address,
            "to": self.to_address,
            "subject": self.subject,
            "originalBody": self.original_body,
            "receivedAt": iso_or_none(self.received_at),
            "aiReply": self.ai_reply,
            "sentReply": self.sent_reply,
            "status": self.status,
            "sentAt": iso_or_none(self.sent_at),
            "aiGenerated": self.ai_generated,
            "tags": self.tags,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


def _sort_key(record: EmailRecord) -> datetime:
    return record.received_at or record.created_at


# =============================================================================
# Queries
# =============================================================================

def get_email(user_id: str, message_id: str) -> Optional[EmailRecord]:
    data = documents.get_document(user_id, COLLECTION, message_id)
    return EmailRecord.from_dict(data) if data else None


def list_all_emails(user_id: str) -> List[EmailRecord]:
    """Every stored row for the user regardless of account (unordered)."""
    return [EmailRecord.from_dict(d) for d in documents.list_documents(user_id, COLLECTION)]


def list_emails(
    user_id: str,
    account: Optional[str],
    *,
    status: Optional[str] = None,
    limit: int = 50,
    skip: int = 0,
) -> Tuple[List[EmailRecord], int]:
    """Page through the rows of one Gmail account, newest first.

    Returns:
        (page, total matching rows). Without a connected account both are empty.
    """
    if not account:
        return [], 0
    if status is not None:
        require_choice(status, "email status", STATUS_VALUES)

    records = [r for r in list_all_emails(user_id) if r.gmail_email == account]
    if status:
        records = [r for r in records if r.status == status]
    records.sort(key=_sort_key, reverse=True)

    skip = max(skip, 0)
    limit = max(limit, 0)
    return records[skip:skip + limit], len(records)


# =============================================================================
# Mutations
# =============================================================================

def insert_email(user_id: str, record: EmailRecord) -> bool:
    """Insert a new row. Returns False (and writes nothing) if the id exists."""
    return documents.create_document(user_id, COLLECTION, record.id, record.to_dict())


def save_email(user_id: str, record: EmailRecord) -> EmailRecord:
    record.updated_at = now_utc()
    documents.save_document(user_id, COLLECTION, record.id, record.to_dict())
    return record


def record_ai_reply(user_id: str, message_id: str, reply: str) -> Optional[EmailRecord]:
    """Attach a drafted reply. Returns None if the row does not exist."""
    record = get_email(user_id, message_id)
    if not record:
        return None
    record.ai_reply = reply
    record.ai_generated = True
    return save_email(user_id, record)


def mark_sent(user_id: str, record: EmailRecord, reply_text: str) -> EmailRecord:
    record.sent_reply = reply_text
    record.status = EmailStatus.SENT.value
    record.sent_at = now_utc()
    return save_email(user_id, record)


def mark_failed(user_id: str, record: EmailRecord) -> EmailRecord:
    record.status = EmailStatus.FAILED.value
    return save_email(user_id, record)


def update_email(user_id: str, message_id: str, updates: Dict[str, Any]) -> Optional[EmailRecord]:
    """Edit the local reply state of a row. Fetched fields are immutable."""
    record = get_email(user_id, message_id)
    if not record:
        return None

    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update email field(s): {', '.join(sorted(unknown))}")

    if "ai_reply" in updates:
        record.ai_reply = updates["ai_reply"]
    if "sent_reply" in updates:
        record.sent_reply = updates["sent_reply"]
    if "status" in updates:
        record.status = require_choice(updates["status"], "email status", STATUS_VALUES)
        if record.status == EmailStatus.SENT.value and record.sent_at is None:
            record.sent_at = now_utc()
    if "tags" in updates:
        record.tags = coerce_str_list(updates["tags"])

    return save_email(user_id, record)


def delete_email(user_id: str, message_id: str) -> bool:
    return documents.delete_document(user_id, COLLECTION, message_id)


def delete_emails_where(user_id: str, predicate: Callable[[EmailRecord], bool]) -> int:
    return documents.delete_documents_where(
        user_id, COLLECTION, lambda data: predicate(EmailRecord.from_dict(data))
    )


def delete_all_emails(user_id: str) -> int:
    deleted = documents.delete_documents_where(user_id, COLLECTION, lambda _data: True)
    logger.info(f"[Emails] Deleted {deleted} stored emails for user {user_id}")
    return deleted
