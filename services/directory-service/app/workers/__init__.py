"""Background workers for directory service."""

from app.workers.refresh_worker import RefreshWorker

__all__ = ["RefreshWorker"]
