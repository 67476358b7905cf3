"""Stored Gmail messages and mailbox reconciliation."""
from __future__ import annotations

from .store import (
    EmailRecord,
    EmailStatus,
    delete_all_emails,
    delete_email,
    get_email,
    list_emails,
    mark_failed,
    mark_sent,
    record_ai_reply,
    update_email,
)
from .sync import (
    CredentialMissing,
    SyncFailed,
    SyncInProgress,
    SyncResult,
    gmail_fetcher,
    normalize_address,
    reconcile_mailbox,
)

__all__ = [
    # Storage
    "EmailRecord",
    "EmailStatus",
    "delete_all_emails",
    "delete_email",
    "get_email",
    "list_emails",
    "mark_failed",
    "mark_sent",
    "record_ai_reply",
    "update_email",
    # Reconciliation
    "CredentialMissing",
    "SyncFailed",
    "SyncInProgress",
    "SyncResult",
    "gmail_fetcher",
    "normalize_address",
    "reconcile_mailbox",
]
