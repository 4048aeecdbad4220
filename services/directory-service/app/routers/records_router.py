"""
Directory records router.

Serves every entity kind from the record cache:
- GET /{collection}: all records of a kind
- GET /{collection}/{id}: one record, 404 if absent
- ``Cache-Control: no-cache`` refreshes the requested kind from Notion first
"""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status

from .. import __version__
from ..cache.record_cache import RecordCache
from ..dependencies import get_cache, get_refresh_worker
from ..domain.entities import EntityKind
from ..domain.exceptions import FetchError, RecordNotFoundException
from ..workers.refresh_worker import RefreshWorker

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["records"])


def _resolve_kind(collection: str) -> EntityKind:
    kind = EntityKind.from_path(collection)
    if kind is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown collection: {collection}",
        )
    return kind


def wants_fresh_data(cache_control: Optional[str]) -> bool:
    """True when a Cache-Control header carries the ``no-cache`` directive."""
    if not cache_control:
        return False
    directives = (part.strip().lower() for part in cache_control.split(","))
    return "no-cache" in directives


async def _bust_cache(
    kind: EntityKind, cache_control: Optional[str], worker: RefreshWorker
) -> None:
    """Refresh a kind before serving it when the client asked for no caching."""
    if not wants_fresh_data(cache_control):
        return

    logger.debug("Received no-cache, refreshing partition", kind=kind.value)
    try:
        await worker.refresh_kind(kind)
    except FetchError as e:
        logger.warning(
            "Forced refresh failed, serving cached data", kind=kind.value, error=e.message
        )


@router.get("/version", summary="API version")
async def get_version():
    """Return the API version."""
    return {"version": __version__}


@router.get(
    "/{collection}",
    summary="List records",
    description="Get every cached record of one collection",
)
async def list_records(
    collection: str,
    cache_control: Optional[str] = Header(None),
    cache: RecordCache = Depends(get_cache),
    worker: RefreshWorker = Depends(get_refresh_worker),
) -> List[dict]:
    kind = _resolve_kind(collection)
    await _bust_cache(kind, cache_control, worker)

    return [record.to_dict() for record in cache.list_all(kind)]


@router.get(
    "/{collection}/{record_id}",
    summary="Get record",
    description="Get one cached record by id",
)
async def get_record(
    collection: str,
    record_id: str,
    cache_control: Optional[str] = Header(None),
    cache: RecordCache = Depends(get_cache),
    worker: RefreshWorker = Depends(get_refresh_worker),
) -> dict:
    kind = _resolve_kind(collection)
    await _bust_cache(kind, cache_control, worker)

    record = cache.lookup(kind, record_id)
    if record is None:
        raise RecordNotFoundException(kind.value, record_id)
    return record.to_dict()
