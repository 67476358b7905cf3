"""Meetings Router - meeting CRUD, AI drafting, transcription and action items."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from aimate.meetings import (
    apply_meeting_content,
    convert_action_item,
    create_meeting,
    delete_meeting,
    get_meeting,
    list_meetings,
    save_meeting,
    update_meeting,
)
from aimate.speech import MAX_AUDIO_BYTES, sanitize_filename
from aimate.store.validation import ValidationError, require_text
from api.dependencies import Services, get_current_user, get_services
from api.models import MeetingCreateRequest, MeetingUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Meeting not found")


@router.get("")
def list_user_meetings(user: str = Depends(get_current_user)) -> dict:
    meetings = list_meetings(user)
    return {
        "success": True,
        "count": len(meetings),
        "meetings": [m.to_api_dict() for m in meetings],
    }


@router.post("", status_code=201)
def create_user_meeting(
    request: MeetingCreateRequest,
    user: str = Depends(get_current_user),
) -> dict:
    meeting = create_meeting(
        user,
        request.title,
        participants=request.participants,
        date=request.date,
        summary=request.summary,
    )
    return {"success": True, "meeting": meeting.to_api_dict()}


@router.post("/create-with-ai", status_code=201)
def create_meeting_with_ai(
    request: MeetingCreateRequest,
    user: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    title = require_text(request.title, "meeting title")
    content = services.assistant.describe_meeting(title, request.participants)
    meeting = create_meeting(
        user,
        title,
        participants=request.participants,
        date=request.date,
        content=content,
    )
    return {"success": True, "meeting": meeting.to_api_dict()}


@router.get("/{meeting_id}")
def get_user_meeting(meeting_id: str, user: str = Depends(get_current_user)) -> dict:
    meeting = get_meeting(user, meeting_id)
    if not meeting:
        raise _not_found()
    return {"success": True, "meeting": meeting.to_api_dict()}


@router.post("/{meeting_id}/upload-audio")
def upload_audio(
    meeting_id: str,
    audio: Optional[UploadFile] = File(None),
    user: str = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    """Transcribe a recording and summarise it onto the meeting.

    The transcription is saved before summarising, so it survives a failed summary.
    """
    meeting = get_meeting(user, meeting_id)
    if not meeting:
        raise _not_found()
    if audio is None:
        raise ValidationError("Audio file is required")

    # One byte past the limit is enough for the size check to reject it.
    data = audio.file.read(MAX_AUDIO_BYTES + 1)
    filename = audio.filename or "audio"
    transcript = services.transcriber.transcribe(data, filename, audio.content_type)
    logger.info(f"[Meetings] Transcribed {len(transcript)} characters for meeting {meeting_id}")

    meeting.transcription = transcript
    meeting.audio_file_name = sanitize_filename(filename)
    save_meeting(user, meeting)

    content = services.assistant.summarize_transcript(transcript)
    apply_meeting_content(meeting, content)
    save_meeting(user, meeting)
    return {
        "success": True,
        "meeting": meeting.to_api_dict(),
        "message": "Audio transcribed and summarized successfully",
    }


@router.post("/{meeting_id}/action-items/{item_id}/convert")
def convert_item(
    meeting_id: str,
    item_id: str,
    user: str = Depends(get_current_user),
) -> dict:
    if not get_meeting(user, meeting_id):
        raise _not_found()
    result = convert_action_item(user, meeting_id, item_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Action item not found")
    meeting, task = result
    return {
        "success": True,
        "task": task.to_api_dict(),
        "meeting": meeting.to_api_dict(),
        "message": "Action item converted to task successfully",
    }


@router.put("/{meeting_id}")
def update_user_meeting(
    meeting_id: str,
    request: MeetingUpdateRequest,
    user: str = Depends(get_current_user),
) -> dict:
    meeting = update_meeting(user, meeting_id, request.updates())
    if not meeting:
        raise _not_found()
    return {"success": True, "meeting": meeting.to_api_dict()}


@router.delete("/{meeting_id}")
def delete_user_meeting(meeting_id: str, user: str = Depends(get_current_user)) -> dict:
    if not delete_meeting(user, meeting_id):
        raise _not_found()
    return {"success": True, "message": "Meeting deleted successfully"}
