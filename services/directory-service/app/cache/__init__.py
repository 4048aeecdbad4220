"""Cache module initialization."""

from app.cache.record_cache import RecordCache
from app.cache.rwlock import ReadWriteLock

__all__ = ["RecordCache", "ReadWriteLock"]
