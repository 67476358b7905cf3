"""Configuration helpers for the AIMate API and CLI."""
from __future__ import annotations

from dataclasses import dataclass
import os
from typing import List, Optional

from dotenv import load_dotenv


DEV_JWT_SECRET = "aimate-local-development-secret"


class ConfigError(RuntimeError):
    """Raised when required configuration is missing."""


@dataclass(slots=True)
class Settings:
    """Runtime configuration resolved once at process start."""

    jwt_secret: str
    environment: str = "local"
    jwt_expire_days: int = 7
    anthropic_api_key: Optional[str] = None
    anthropic_model: Optional[str] = None
    openai_api_key: Optional[str] = None
    transcribe_model: str = "whisper-1"
    gmail_client_id: Optional[str] = None
    gmail_client_secret: Optional[str] = None
    gmail_redirect_uri: Optional[str] = None
    sync_count: int = 20
    http_timeout: float = 30.0
    strict: bool = False

    @property
    def gmail_configured(self) -> bool:
        return bool(
            self.gmail_client_id and self.gmail_client_secret and self.gmail_redirect_uri
        )

    def missing_credentials(self) -> List[str]:
        """Return the names of external services that are not configured."""
        missing = []
        if not self.anthropic_api_key:
            missing.append("anthropic")
        if not self.openai_api_key:
            missing.append("transcription")
        if not self.gmail_configured:
            missing.append("gmail")
        return missing


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def load_settings(*, use_dotenv: bool = True) -> Settings:
    """Load settings from environment variables.

    Args:
        use_dotenv: Load a local .env file before reading the environment.

    Returns:
        Settings with every value resolved.

    Raises:
        ConfigError: if a value is malformed, if the JWT secret is missing
            outside local development, or if strict mode is on and an
            external service has no credentials.
    """

    if use_dotenv:
        load_dotenv()

    environment = os.getenv("AIMATE_ENV", "local").strip() or "local"

    jwt_secret = _optional("AIMATE_JWT_SECRET")
    if not jwt_secret:
        if environment != "local":
            raise ConfigError(
                "Missing AIMATE_JWT_SECRET. It is required when AIMATE_ENV is not 'local'."
            )
        jwt_secret = DEV_JWT_SECRET

    sync_count = _int_env("AIMATE_SYNC_COUNT", 20)
    if sync_count < 1:
        raise ConfigError("AIMATE_SYNC_COUNT must be at least 1.")

    settings = Settings(
        jwt_secret=jwt_secret,
        environment=environment,
        jwt_expire_days=_int_env("AIMATE_JWT_EXPIRE_DAYS", 7),
        anthropic_api_key=_optional("ANTHROPIC_API_KEY"),
        anthropic_model=_optional("ANTHROPIC_MODEL"),
        openai_api_key=_optional("OPENAI_API_KEY"),
        transcribe_model=_optional("AIMATE_TRANSCRIBE_MODEL") or "whisper-1",
        gmail_client_id=_optional("GMAIL_CLIENT_ID"),
        gmail_client_secret=_optional("GMAIL_CLIENT_SECRET"),
        gmail_redirect_uri=_optional("GMAIL_REDIRECT_URI"),
        sync_count=sync_count,
        http_timeout=_float_env("AIMATE_HTTP_TIMEOUT", 30.0),
        strict=os.getenv("AIMATE_STRICT_CONFIG", "").strip() == "1",
    )

    if settings.strict:
        missing = settings.missing_credentials()
        if missing:
            raise ConfigError(
                "Strict configuration enabled but credentials are missing for: "
                + ", ".join(missing)
            )

    return settings
