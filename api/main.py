"""FastAPI service for AIMate."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aimate import __version__
from aimate.email import CredentialMissing, SyncFailed, SyncInProgress
from aimate.llm import AdapterFailure, AdapterMalformedResponse, AdapterUnavailable
from aimate.mailer import GmailError, GmailNotConfigured
from aimate.speech import (
    EmptyAudio,
    TranscriptionError,
    TranscriptionUnavailable,
    UnsupportedFormat,
)
from aimate.store.validation import ValidationError
from api.dependencies import ALLOWED_ORIGINS, Services, get_services
from api.routers import (
    auth_router,
    emails_router,
    expenses_router,
    meetings_router,
    tasks_router,
)

logging.basicConfig(
    level=os.getenv("AIMATE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Build adapters at startup so configuration errors stop the server.
    get_services()
    yield


app = FastAPI(
    title="AIMate API",
    version=__version__,
    description="REST interface for tasks, expenses, meetings and email replies.",
    lifespan=lifespan,
)

origins = [origin for origin in ALLOWED_ORIGINS if origin]

if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# =============================================================================
# Error Responses
# =============================================================================

def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


# (exception type, HTTP status); more specific types take precedence.
ERROR_STATUS = [
    (ValidationError, 400),
    (CredentialMissing, 400),
    (EmptyAudio, 400),
    (UnsupportedFormat, 400),
    (SyncInProgress, 409),
    (AdapterUnavailable, 503),
    (GmailNotConfigured, 503),
    (TranscriptionUnavailable, 503),
    (AdapterMalformedResponse, 502),
    (AdapterFailure, 502),
    (SyncFailed, 502),
    (GmailError, 502),
    (TranscriptionError, 502),
]


def _register_domain_handler(exc_type: type, status_code: int) -> None:
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.warning(f"[API] {request.method} {request.url.path} failed: {exc}")
        return _error(status_code, str(exc))

    app.add_exception_handler(exc_type, handler)


for _exc_type, _status in ERROR_STATUS:
    _register_domain_handler(_exc_type, _status)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
        message = f"Invalid {field}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return _error(400, message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}")
    return _error(500, "Server error")


# =============================================================================
# Routes
# =============================================================================

@app.get("/api/health")
def health_check(services: Services = Depends(get_services)) -> dict:
    """Liveness probe with adapter configuration status."""
    missing = set(services.settings.missing_credentials())
    return {
        "success": True,
        "status": "ok",
        "version": __version__,
        "environment": services.settings.environment,
        "services": {
            name: "not_configured" if name in missing else "configured"
            for name in ("anthropic", "transcription", "gmail")
        },
    }


app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(tasks_router, prefix="/api/tasks", tags=["tasks"])
app.include_router(expenses_router, prefix="/api/expenses", tags=["expenses"])
app.include_router(meetings_router, prefix="/api/meetings", tags=["meetings"])
app.include_router(emails_router, prefix="/api/emails", tags=["emails"])
