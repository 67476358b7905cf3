"""Gmail mailbox reconciliation.

Merges the newest remote messages of the connected Gmail account into the
user's stored emails:

1. Fetch the N newest remote messages (nothing is written if this fails).
2. Resolve the active account address and persist it if it changed.
3. Delete rows belonging to any other account.
4. Insert rows for messages not yet stored; existing rows are never overwritten.
5. Delete rows of the active account that are no longer in the fetched window,
   unless the fetch came back empty.

A per-user lock document keeps two syncs for the same user from interleaving.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, List, Optional

from ..mailer import (
    GmailAuthError,
    GmailError,
    GmailOAuthConfig,
    GmailTokens,
    RemoteMessage,
    fetch_recent_messages,
)
from ..store import documents
from ..store.validation import now_utc, parse_datetime
from ..users import User, get_user, set_gmail_address
from .store import EmailRecord, EmailStatus, delete_emails_where, insert_email

logger = logging.getLogger(__name__)

DEFAULT_SYNC_COUNT = 20
LOCK_COLLECTION = "sync_locks"
LOCK_ID = "email"
LOCK_TTL = timedelta(minutes=5)

_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")

MessageFetcher = Callable[[GmailTokens, int], List[RemoteMessage]]


class CredentialMissing(RuntimeError):
    """Raised when the user has no Gmail refresh token."""


class SyncFailed(RuntimeError):
    """Raised when fetching from Gmail fails; nothing was written."""

    def __init__(self, message: str, *, auth_expired: bool = False) -> None:
        super().__init__(message)
        self.auth_expired = auth_expired


class SyncInProgress(RuntimeError):
    """Raised when another sync for the same user holds the lock."""


@dataclass(slots=True)
class SyncResult:
    """Outcome of one reconciliation run."""

    account: Optional[str]
    fetched: int = 0
    created: List[EmailRecord] = field(default_factory=list)
    removed_other_accounts: int = 0
    removed_stale: int = 0

    @property
    def count(self) -> int:
        return len(self.created)


def normalize_address(value: Optional[str]) -> str:
    """Reduce ``"Display Name <Addr@X.com>"`` or ``"ADDR@X.COM"`` to ``addr@x.com``."""
    if not value:
        return ""
    match = _ANGLE_ADDRESS.search(value)
    address = match.group(1) if match else value
    return address.strip().lower()


def gmail_fetcher(config: GmailOAuthConfig) -> MessageFetcher:
    """Bind the Gmail inbox reader to an OAuth client configuration."""

    def fetch(tokens: GmailTokens, count: int) -> List[RemoteMessage]:
        return fetch_recent_messages(config, tokens, max_results=count)

    return fetch


# =============================================================================
# Reconciliation
# =============================================================================

def reconcile_mailbox(
    user_id: str,
    fetch_messages: MessageFetcher,
    *,
    count: int = DEFAULT_SYNC_COUNT,
) -> SyncResult:
    """Synchronise the user's stored emails with their Gmail inbox.

    Raises:
        CredentialMissing: if the user has no connected Gmail account.
        SyncFailed: if fetching from Gmail fails.
        SyncInProgress: if a sync for this user is already running.
    """
    user = get_user(user_id)
    if user is None or not user.gmail_refresh_token:
        raise CredentialMissing("Gmail account not connected")

    tokens = GmailTokens(
        refresh_token=user.gmail_refresh_token,
        access_token=user.gmail_access_token,
    )

    _acquire_lock(user_id)
    try:
        return _reconcile(user, tokens, fetch_messages, count)
    finally:
        documents.delete_document(user_id, LOCK_COLLECTION, LOCK_ID)


def _reconcile(
    user: User,
    tokens: GmailTokens,
    fetch_messages: MessageFetcher,
    count: int,
) -> SyncResult:
    try:
        messages = fetch_messages(tokens, count)
    except GmailError as exc:
        logger.warning(f"[EmailSync] Fetch failed for user {user.id}: {exc}")
        raise SyncFailed(str(exc), auth_expired=isinstance(exc, GmailAuthError)) from exc

    account = normalize_address(user.gmail_email)
    if not account and messages:
        account = normalize_address(messages[0].to_address)

    if account and account != user.gmail_email:
        logger.info(f"[EmailSync] Active Gmail account for user {user.id} is now {account}")
        set_gmail_address(user, account)

    result = SyncResult(account=account or None, fetched=len(messages))
    if not account:
        return result

    result.removed_other_accounts = delete_emails_where(
        user.id, lambda record: record.gmail_email != account
    )

    # Rows carry the active account rather than each message's To header,
    # so mail addressed to an alias or list is not purged on the next sync.
    now = now_utc()
    for message in messages:
        record = EmailRecord(
            gmail_message_id=message.id,
            gmail_email=account,
            thread_id=message.thread_id,
            from_address=message.from_address,
            to_address=message.to_address,
            subject=message.subject,
            original_body=message.body,
            received_at=message.received_at,
            message_id_header=message.message_id_header,
            references=message.references,
            status=EmailStatus.DRAFT.value,
            created_at=now,
            updated_at=now,
        )
        if insert_email(user.id, record):
            result.created.append(record)

    # An empty fetch must not wipe the account's history.
    if messages:
        fetched_ids = {message.id for message in messages}
        result.removed_stale = delete_emails_where(
            user.id,
            lambda record: record.gmail_email == account and record.gmail_message_id not in fetched_ids,
        )

    logger.info(
        f"[EmailSync] user={user.id} account={account} fetched={result.fetched} "
        f"created={result.count} removed_other={result.removed_other_accounts} "
        f"removed_stale={result.removed_stale}"
    )
    return result


# =============================================================================
# Per-user Lock
# =============================================================================

def _acquire_lock(user_id: str) -> None:
    payload = {"acquired_at": now_utc().isoformat()}
    if documents.create_document(user_id, LOCK_COLLECTION, LOCK_ID, payload):
        return

    existing = documents.get_document(user_id, LOCK_COLLECTION, LOCK_ID) or {}
    acquired_at = parse_datetime(existing.get("acquired_at"))
    if acquired_at is not None and now_utc() - acquired_at < LOCK_TTL:
        raise SyncInProgress("An email sync is already running for this account")

    logger.warning(f"[EmailSync] Taking over expired sync lock for user {user_id}")
    documents.delete_document(user_id, LOCK_COLLECTION, LOCK_ID)
    if not documents.create_document(user_id, LOCK_COLLECTION, LOCK_ID, payload):
        raise SyncInProgress("An email sync is already running for this account")
