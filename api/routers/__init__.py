"""API Routers Package.

Each router handles one resource and is mounted under /api in main.py:

    app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    app.include_router(tasks_router, prefix="/api/tasks", tags=["tasks"])
    app.include_router(expenses_router, prefix="/api/expenses", tags=["expenses"])
    app.include_router(meetings_router, prefix="/api/meetings", tags=["meetings"])
    app.include_router(emails_router, prefix="/api/emails", tags=["emails"])
"""

from .auth import router as auth_router
from .emails import router as emails_router
from .expenses import router as expenses_router
from .meetings import router as meetings_router
from .tasks import router as tasks_router

__all__ = [
    "auth_router",
    "emails_router",
    "expenses_router",
    "meetings_router",
    "tasks_router",
]
