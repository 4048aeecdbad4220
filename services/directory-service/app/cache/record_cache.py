"""
In-memory record cache partitioned by entity kind.

Holds one identifier-to-record mapping per entity kind and serves all
reads of the directory API. Partitions are only ever replaced as a
whole: a refresh builds the new partition aside and swaps it in under an
exclusive lock, so readers observe either the old or the new content of
a partition, never a mix.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from app.cache.rwlock import ReadWriteLock
from app.domain.entities import EntityKind, Record, break_cycles, record_kind
from app.domain.exceptions import DataIntegrityException
from app.metrics import record_cache_lookup, set_partition_size

logger = logging.getLogger(__name__)


class RecordCache:
    """
    Typed multi-partition cache of directory records.

    Every partition exists from construction on, so lookups against a
    kind that was never refreshed return None instead of failing. Each
    successful ``replace`` advances the partition's generation.

    Attributes:
        hits: Number of point lookups that found a record
        misses: Number of point lookups that found nothing
    """

    def __init__(self):
        """Initialize an empty cache with one partition per kind."""
        self._lock = ReadWriteLock()
        self._partitions: Dict[EntityKind, Dict[str, Record]] = {
            kind: {} for kind in EntityKind
        }
        self._generations: Dict[EntityKind, int] = {kind: 0 for kind in EntityKind}
        self._refreshed_at: Dict[EntityKind, Optional[datetime]] = {
            kind: None for kind in EntityKind
        }

        # Statistics
        self._stats_lock = threading.Lock()
        self.hits = 0
        self.misses = 0

        logger.info(f"Initialized RecordCache with {len(self._partitions)} partitions")

    def lookup(self, kind: EntityKind, record_id: str) -> Optional[Record]:
        """
        Get one record from a partition.

        Args:
            kind: Partition to read
            record_id: Identifier of the record within that partition

        Returns:
            The current record, or None if the identifier is absent
        """
        with self._lock.read_locked():
            record = self._partitions[kind].get(record_id)

        with self._stats_lock:
            if record is None:
                self.misses += 1
            else:
                self.hits += 1
        record_cache_lookup(kind, record is not None)

        if record is None:
            logger.debug(f"Cache MISS: {kind.value}/{record_id}")
        return record

    def list_all(self, kind: EntityKind) -> List[Record]:
        """
        Get every record of a partition.

        Args:
            kind: Partition to read

        Returns:
            Shallow copy of the partition's records, in no particular order
        """
        with self._lock.read_locked():
            return list(self._partitions[kind].values())

    def replace(self, kind: EntityKind, records: Iterable[Record]) -> int:
        """
        Atomically swap in a new partition for a kind.

        Back-references are cleared one level below every record before
        it is stored. When two records share an identifier the later one
        wins.

        Args:
            kind: Partition to replace
            records: Complete new content of the partition

        Returns:
            Number of records installed

        Raises:
            DataIntegrityException: If a record belongs to another kind
        """
        partition: Dict[str, Record] = {}
        for record in records:
            actual = record_kind(record)
            if actual is not kind:
                raise DataIntegrityException(
                    kind.value, f"record {record.id} is a {actual.value}"
                )
            partition[record.id] = break_cycles(record)

        with self._lock.write_locked():
            self._partitions[kind] = partition
            self._generations[kind] += 1
            self._refreshed_at[kind] = datetime.now(timezone.utc)
            generation = self._generations[kind]

        set_partition_size(kind, len(partition))
        logger.info(
            f"Replaced {kind.value} partition with {len(partition)} records "
            f"(generation {generation})"
        )
        return len(partition)

    def generation(self, kind: EntityKind) -> int:
        """Number of replacements a partition has gone through."""
        with self._lock.read_locked():
            return self._generations[kind]

    def get_stats(self) -> Dict[str, object]:
        """
        Get cache statistics.

        Returns:
            Dictionary with per-partition sizes and lookup counters
        """
        with self._lock.read_locked():
            partitions = {
                kind.value: {
                    "size": len(self._partitions[kind]),
                    "generation": self._generations[kind],
                    "refreshed_at": (
                        self._refreshed_at[kind].isoformat()
                        if self._refreshed_at[kind]
                        else None
                    ),
                }
                for kind in EntityKind
            }

        with self._stats_lock:
            hits, misses = self.hits, self.misses
        total_requests = hits + misses
        hit_rate = (hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "partitions": partitions,
            "hits": hits,
            "misses": misses,
            "total_requests": total_requests,
            "hit_rate_percent": int(round(hit_rate)),
        }
