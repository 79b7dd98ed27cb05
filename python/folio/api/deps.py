"""FastAPI dependencies for route handlers.

Database sessions and the process-local collaborators kept on app.state.
"""

from fastapi import Request

from folio.db.session import get_db, get_session_factory
from folio.services.autosave import AutosaveQueue
from folio.services.locks import PublishLockRegistry

__all__ = ["get_db", "get_autosave_queue", "get_publish_locks", "get_session_factory"]


def get_autosave_queue(request: Request) -> AutosaveQueue:
    """Get the shared autosave queue from app state.

    The queue is created at app startup; drafts live for the lifetime of the
    process.
    """
    return request.app.state.autosave_queue


def get_publish_locks(request: Request) -> PublishLockRegistry:
    """Get the shared per-(space, slug) publish lock registry from app state."""
    return request.app.state.publish_locks
