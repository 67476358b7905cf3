"""Emails Router - Gmail sync, AI reply drafting and sending."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from aimate.email import (
    CredentialMissing,
    delete_email,
    get_email,
    list_emails,
    mark_failed,
    mark_sent,
    normalize_address,
    reconcile_mailbox,
    record_ai_reply,
    update_email,
)
from aimate.mailer import GmailError, GmailTokens, send_reply
from aimate.store.validation import ValidationError, require_text
from aimate.users import User
from api.dependencies import Services, get_current_account, get_current_user, get_services
from api.models import (
    EmailUpdateRequest,
    GenerateReplyRequest,
    ManualReplyRequest,
    SendReplyRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Email not found")


@router.get("")
def list_user_emails(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=0, le=500),
    skip: int = Query(0, ge=0),
    user: User = Depends(get_current_account),
) -> dict:
    account = normalize_address(user.gmail_email)
    emails, total = list_emails(user.id, account, status=status, limit=limit, skip=skip)
    return {
        "success": True,
        "count": len(emails),
        "total": total,
        "emails": [e.to_api_dict() for e in emails],
    }


@router.get("/sync")
def sync_emails(
    user: User = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> dict:
    if not user.gmail_connected:
        raise CredentialMissing("Gmail not connected. Please connect Gmail first.")
    result = reconcile_mailbox(
        user.id,
        services.require_fetcher(),
        count=services.settings.sync_count,
    )
    return {
        "success": True,
        "count": result.count,
        "emails": [e.to_api_dict() for e in result.created],
        "account": result.account,
        "message": "Emails synced successfully",
    }


@router.post("/generate-reply-manual")
def generate_reply_manual(
    request: ManualReplyRequest,
    user: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    if not (request.original_body and request.subject and request.from_address):
        raise ValidationError("Email body, subject, and from are required")
    reply = services.assistant.draft_email_reply(request.original_body, request.context)
    return {"success": True, "aiReply": reply, "message": "AI reply generated successfully"}


@router.get("/{email_id}")
def get_user_email(email_id: str, user: str = Depends(get_current_user)) -> dict:
    record = get_email(user, email_id)
    if not record:
        raise _not_found()
    return {"success": True, "email": record.to_api_dict()}


@router.post("/{email_id}/generate-reply")
def generate_reply(
    email_id: str,
    request: Optional[GenerateReplyRequest] = None,
    user: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    record = get_email(user, email_id)
    if not record:
        raise _not_found()
    context = request.context if request else ""
    reply = services.assistant.draft_email_reply(record.original_body, context)
    record = record_ai_reply(user, email_id, reply)
    if not record:
        raise _not_found()
    return {"success": True, "email": record.to_api_dict(), "aiReply": reply}


@router.post("/{email_id}/send")
def send_user_reply(
    email_id: str,
    request: SendReplyRequest,
    user: User = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> dict:
    reply_text = require_text(request.reply_text, "reply text")
    record = get_email(user.id, email_id)
    if not record:
        raise _not_found()
    if not user.gmail_connected:
        raise CredentialMissing("Gmail not connected. Please connect Gmail first.")

    config = services.require_gmail()
    tokens = GmailTokens(
        refresh_token=user.gmail_refresh_token,
        access_token=user.gmail_access_token,
    )
    try:
        send_reply(
            config,
            tokens,
            to_address=record.from_address,
            subject=record.subject,
            body=reply_text,
            thread_id=record.thread_id,
            from_address=user.gmail_email,
            in_reply_to=record.message_id_header or None,
            references=record.references or None,
        )
    except GmailError:
        mark_failed(user.id, record)
        logger.warning(f"[Emails] Send failed for email {email_id} of user {user.id}")
        raise

    record = mark_sent(user.id, record, reply_text)
    logger.info(f"[Emails] Reply sent for email {email_id} of user {user.id}")
    return {"success": True, "email": record.to_api_dict(), "message": "Email sent successfully"}


@router.put("/{email_id}")
def update_user_email(
    email_id: str,
    request: EmailUpdateRequest,
    user: str = Depends(get_current_user),
) -> dict:
    record = update_email(user, email_id, request.updates())
    if not record:
        raise _not_found()
    return {"success": True, "email": record.to_api_dict()}


@router.delete("/{email_id}")
def delete_user_email(email_id: str, user: str = Depends(get_current_user)) -> dict:
    if not delete_email(user, email_id):
        raise _not_found()
    return {"success": True, "message": "Email deleted successfully"}
