"""
Decoders from raw Notion pages to domain entities.

Each ``decode_<kind>`` function reads one page returned by the Notion
database query endpoint and raises ``DecodeError`` naming the first
required field it could not read. ``decode_record`` applies the
defaulting policy so one malformed page never fails a whole collection.

Relation fields are filled by looking up already-cached records, which
makes decode order across kinds significant: clubs and groups must be
cached before members are decoded, and members before events.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from app.domain.entities import (
    PLACEHOLDER,
    Article,
    Club,
    EntityKind,
    Event,
    EventPeriod,
    Group,
    Member,
    Record,
    Sponsor,
    default_record,
)
from app.domain.exceptions import DecodeError
from app.metrics import record_decode_fallback

logger = logging.getLogger(__name__)


class RecordResolver(Protocol):
    """Anything that can resolve an already-cached record by id."""

    def lookup(self, kind: EntityKind, record_id: str) -> Optional[Record]:
        ...


def _dig(value: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(value, list) or len(value) <= step:
                return None
        elif not isinstance(value, dict):
            return None
        value = value[step] if isinstance(step, int) else value.get(step)
    return value


def _require_str(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise DecodeError(field)
    return value


def _properties(page: Dict[str, Any]) -> Dict[str, Any]:
    properties = _dig(page, "properties")
    return properties if isinstance(properties, dict) else {}


def _page_id(page: Dict[str, Any]) -> str:
    return _require_str(_dig(page, "id"), "id")


def _title(properties: Dict[str, Any], field: str) -> str:
    return _require_str(_dig(properties, field, "title", 0, "plain_text"), field)


def _rich_text(properties: Dict[str, Any], field: str) -> str:
    return _require_str(_dig(properties, field, "rich_text", 0, "plain_text"), field)


def _file_url(properties: Dict[str, Any], field: str) -> str:
    first = _dig(properties, field, "files", 0)
    url = _dig(first, "external", "url")
    if url is None:
        # Files uploaded to Notion itself carry a signed url instead
        url = _dig(first, "file", "url")
    return _require_str(url, field)


def _select(properties: Dict[str, Any], field: str) -> str:
    return _require_str(_dig(properties, field, "select", "name"), field)


def _multi_select(properties: Dict[str, Any], field: str) -> List[str]:
    options = _dig(properties, field, "multi_select")
    if not isinstance(options, list):
        raise DecodeError(field)
    names = []
    for option in options:
        name = _dig(option, "name")
        names.append(name if isinstance(name, str) else PLACEHOLDER)
    return names


def _relation_ids(properties: Dict[str, Any], field: str) -> List[str]:
    relations = _dig(properties, field, "relation")
    if not isinstance(relations, list):
        raise DecodeError(field)
    ids = []
    for relation in relations:
        related_id = _dig(relation, "id")
        ids.append(related_id if isinstance(related_id, str) else "")
    return ids


def _resolve_many(
    resolver: RecordResolver, kind: EntityKind, ids: List[str]
) -> List[Record]:
    """
    Resolve relation ids against the cache.

    Ids that are not cached yet become placeholder records that keep the
    referenced id, so the relation stays visible.
    """
    resolved = []
    for related_id in ids:
        record = resolver.lookup(kind, related_id)
        if record is None:
            logger.debug(f"Unresolved {kind.value} relation: {related_id}")
            record = default_record(kind, related_id or PLACEHOLDER)
        resolved.append(record)
    return resolved


def decode_member(page: Dict[str, Any], resolver: RecordResolver) -> Member:
    properties = _properties(page)
    groups = _resolve_many(
        resolver, EntityKind.GROUP, _relation_ids(properties, "groups")
    )

    club = None
    club_id = _dig(properties, "club", "relation", 0, "id")
    if isinstance(club_id, str):
        club = resolver.lookup(EntityKind.CLUB, club_id)

    return Member(
        id=_page_id(page),
        avatar=_file_url(properties, "avatar"),
        name=_title(properties, "name"),
        nickname=_rich_text(properties, "nickname"),
        description=_rich_text(properties, "description"),
        groups=groups,
        club=club,
        club_positions=_multi_select(properties, "club_positions"),
    )


def decode_group(page: Dict[str, Any], resolver: RecordResolver) -> Group:
    properties = _properties(page)
    members = _resolve_many(
        resolver, EntityKind.MEMBER, _relation_ids(properties, "members")
    )

    return Group(
        id=_page_id(page),
        name=_title(properties, "name"),
        description=_rich_text(properties, "description"),
        members=members,
    )


def decode_club(page: Dict[str, Any], resolver: RecordResolver) -> Club:
    properties = _properties(page)

    return Club(
        id=_page_id(page),
        name=_title(properties, "name"),
        description=_rich_text(properties, "description"),
        school=_select(properties, "school"),
        instagram_id=_rich_text(properties, "instagram_id"),
        icon=_file_url(properties, "icon"),
    )


def decode_event_period(date: Any) -> EventPeriod:
    """Decode a Notion date value; a single-day date has no end."""
    start = _require_str(_dig(date, "start"), "start")
    end = _dig(date, "end")
    return EventPeriod(start=start, end=end if isinstance(end, str) else start)


def decode_event(page: Dict[str, Any], resolver: RecordResolver) -> Event:
    properties = _properties(page)
    principals = _resolve_many(
        resolver, EntityKind.MEMBER, _relation_ids(properties, "principal")
    )

    return Event(
        id=_page_id(page),
        date=decode_event_period(_dig(properties, "date", "date")),
        name=_title(properties, "name"),
        description=_rich_text(properties, "description"),
        thumbnail=_file_url(properties, "thumbnail"),
        principals=principals,
    )


def decode_article(page: Dict[str, Any], resolver: RecordResolver) -> Article:
    properties = _properties(page)

    return Article(
        id=_page_id(page),
        title=_title(properties, "title"),
        description=_rich_text(properties, "description"),
        tags=_multi_select(properties, "tags"),
        created_at=_require_str(
            _dig(properties, "created_at", "created_time"), "created_at"
        ),
        updated_at=_require_str(
            _dig(properties, "updated_at", "last_edited_time"), "updated_at"
        ),
    )


def decode_sponsor(page: Dict[str, Any], resolver: RecordResolver) -> Sponsor:
    properties = _properties(page)

    return Sponsor(
        id=_page_id(page),
        name=_title(properties, "name"),
        description=_rich_text(properties, "description"),
        url=_require_str(_dig(properties, "url", "url"), "url"),
        icon=_file_url(properties, "icon"),
    )


DECODERS: Dict[EntityKind, Callable[[Dict[str, Any], RecordResolver], Record]] = {
    EntityKind.MEMBER: decode_member,
    EntityKind.GROUP: decode_group,
    EntityKind.CLUB: decode_club,
    EntityKind.EVENT: decode_event,
    EntityKind.ARTICLE: decode_article,
    EntityKind.SPONSOR: decode_sponsor,
}


def decode_record(
    kind: EntityKind, page: Dict[str, Any], resolver: RecordResolver
) -> Record:
    """
    Decode one page, substituting a default record when it is malformed.

    Args:
        kind: Kind of the database the page came from
        page: Raw page object from the Notion query response
        resolver: Cache used to resolve relation fields

    Returns:
        Decoded record, or the kind's default record keeping the page id
    """
    try:
        return DECODERS[kind](page, resolver)
    except DecodeError as e:
        raw_id = _dig(page, "id")
        record_id = raw_id if isinstance(raw_id, str) else PLACEHOLDER
        logger.warning(
            f"Malformed {kind.value} page {record_id}: {e.message}, using defaults"
        )
        record_decode_fallback(kind, e.field)
        return default_record(kind, record_id)
