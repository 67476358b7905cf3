"""Speech-to-text through the OpenAI transcription endpoint."""
from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

import requests

from ..config import Settings

logger = logging.getLogger(__name__)

TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"
DEFAULT_MODEL = "whisper-1"
MAX_AUDIO_BYTES = 25 * 1024 * 1024

ALLOWED_EXTENSIONS = {".mp3", ".wav", ".m4a", ".webm", ".ogg", ".opus", ".flac", ".aac"}
ALLOWED_MIME_TYPES = {
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/m4a",
    "audio/x-m4a",
    "audio/mp4",
    "audio/webm",
    "audio/ogg",
    "audio/opus",
    "audio/flac",
    "audio/aac",
    "audio/x-aac",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class TranscriptionError(RuntimeError):
    """Base error for transcription failures."""


class EmptyAudio(TranscriptionError):
    """Raised when the uploaded audio has no bytes."""


class UnsupportedFormat(TranscriptionError):
    """Raised when the audio type or size is not accepted."""


class TranscriptionEmpty(TranscriptionError):
    """Raised when the provider returns no text."""


class TranscriptionUnavailable(TranscriptionError):
    """Raised when no transcription API key is configured."""


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", os.path.basename(filename or "")) or "audio"


def validate_audio(audio: bytes, filename: str, content_type: Optional[str] = None) -> None:
    """Reject empty, oversized or non-audio uploads.

    An upload is accepted when either its extension or its MIME type is known.
    """
    if not audio:
        raise EmptyAudio("Audio file is empty or corrupted")

    extension = Path(filename or "").suffix.lower()
    mime = (content_type or "").split(";")[0].strip().lower()
    if extension not in ALLOWED_EXTENSIONS and mime not in ALLOWED_MIME_TYPES:
        raise UnsupportedFormat(
            f"Invalid file type. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    if len(audio) > MAX_AUDIO_BYTES:
        raise UnsupportedFormat("Audio file is too large. Maximum size is 25MB.")


class Transcriber:
    """Turns uploaded audio into transcript text."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        temp_dir: Optional[str] = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.timeout = timeout
        self._session = session or requests.Session()
        self._temp_dir = temp_dir

    @classmethod
    def from_settings(cls, settings: Settings) -> "Transcriber":
        return cls(
            settings.openai_api_key,
            model=settings.transcribe_model,
            timeout=settings.http_timeout,
        )

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    def transcribe(self, audio: bytes, filename: str, content_type: Optional[str] = None) -> str:
        """Return the transcript of ``audio``.

        The audio is staged in a temporary file that is removed on every exit path.

        Raises:
            EmptyAudio, UnsupportedFormat: for unusable uploads.
            TranscriptionUnavailable: when no API key is configured.
            TranscriptionEmpty: when the provider returns blank text.
            TranscriptionError: when the provider call fails.
        """
        validate_audio(audio, filename, content_type)
        if not self._api_key:
            raise TranscriptionUnavailable(
                "Transcription service unavailable. Check that OPENAI_API_KEY is configured."
            )

        safe_name = sanitize_filename(filename)
        fd, temp_path = tempfile.mkstemp(prefix="aimate_", suffix=f"_{safe_name}", dir=self._temp_dir)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(audio)
            logger.info(f"[Speech] Transcribing {safe_name} ({len(audio)} bytes)")
            text = self._post(temp_path, safe_name, content_type)
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

        text = text.strip()
        if not text:
            raise TranscriptionEmpty("Transcription returned empty result")
        return text

    def _post(self, path: str, filename: str, content_type: Optional[str]) -> str:
        try:
            with open(path, "rb") as handle:
                response = self._session.post(
                    TRANSCRIPTION_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    data={"model": self.model, "response_format": "text"},
                    files={"file": (filename, handle, content_type or "application/octet-stream")},
                    timeout=self.timeout,
                )
        except requests.Timeout as exc:
            raise TranscriptionError("Transcription timed out. Try a shorter recording.") from exc
        except requests.RequestException as exc:
            raise TranscriptionError(f"Transcription request failed: {exc}") from exc

        if response.status_code == 401:
            raise TranscriptionUnavailable("Transcription service rejected the API key.")
        if response.status_code == 413:
            raise UnsupportedFormat("Audio file is too large. Maximum size is 25MB.")
        if response.status_code >= 400:
            raise TranscriptionError(
                f"Transcription failed ({response.status_code}): {response.text[:300]}"
            )
        return response.text
