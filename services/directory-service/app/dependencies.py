"""
Shared dependencies for the application.

The cache and the refresh worker are created once in the application
lifespan and kept on ``app.state``; routers reach them through these
dependency functions.
"""

from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from .cache.record_cache import RecordCache
    from .workers.refresh_worker import RefreshWorker


def get_cache(request: Request) -> "RecordCache":
    """Get the record cache for dependency injection."""
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        raise RuntimeError("Record cache not initialized")
    return cache


def get_refresh_worker(request: Request) -> "RefreshWorker":
    """Get the refresh worker for dependency injection."""
    worker = getattr(request.app.state, "refresh_worker", None)
    if worker is None:
        raise RuntimeError("Refresh worker not initialized")
    return worker
