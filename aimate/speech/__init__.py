"""Speech-to-text package."""

from .whisper import (
    ALLOWED_EXTENSIONS,
    MAX_AUDIO_BYTES,
    EmptyAudio,
    Transcriber,
    TranscriptionEmpty,
    TranscriptionError,
    TranscriptionUnavailable,
    UnsupportedFormat,
    sanitize_filename,
    validate_audio,
)

__all__ = [
    "ALLOWED_EXTENSIONS",
    "MAX_AUDIO_BYTES",
    "EmptyAudio",
    "Transcriber",
    "TranscriptionEmpty",
    "TranscriptionError",
    "TranscriptionUnavailable",
    "UnsupportedFormat",
    "sanitize_filename",
    "validate_audio",
]
