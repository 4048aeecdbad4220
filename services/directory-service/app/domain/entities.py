"""
Domain entities for directory records.

One frozen dataclass per entity kind plus the ``Record`` union that the
cache stores. Relation fields hold shallow, one-level-deep copies of the
related records rather than keys, so a record is ready to serialize.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple, Type, Union

PLACEHOLDER = "N/A"


class EntityKind(str, Enum):
    """
    Entity kinds, one cache partition each.

    Declaration order is the refresh dependency order: kinds without
    outgoing relations first, then relation-bearing kinds after the kinds
    they point to.
    """

    CLUB = "club"
    GROUP = "group"
    MEMBER = "member"
    EVENT = "event"
    ARTICLE = "article"
    SPONSOR = "sponsor"

    @property
    def path(self) -> str:
        """URL collection segment (``members``, ``groups``, ...)."""
        return f"{self.value}s"

    @classmethod
    def from_path(cls, path: str) -> Optional["EntityKind"]:
        """Resolve a URL collection segment, or None if unknown."""
        for kind in cls:
            if kind.path == path:
                return kind
        return None


REFRESH_ORDER: Tuple[EntityKind, ...] = tuple(EntityKind)


@dataclass(frozen=True)
class EventPeriod:
    """Start and end of an event as ISO date strings."""

    start: str = PLACEHOLDER
    end: Optional[str] = PLACEHOLDER

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Club:
    """A student club."""

    KIND: ClassVar[EntityKind] = EntityKind.CLUB

    id: str
    name: str = PLACEHOLDER
    description: str = PLACEHOLDER
    school: str = PLACEHOLDER
    instagram_id: str = PLACEHOLDER
    icon: str = PLACEHOLDER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "school": self.school,
            "instagram_id": self.instagram_id,
            "icon": self.icon,
        }


@dataclass(frozen=True)
class Member:
    """
    A person listed in the directory.

    ``groups`` embeds copies of the groups the member belongs to; once
    stored in the cache those copies carry no ``members`` of their own.
    """

    KIND: ClassVar[EntityKind] = EntityKind.MEMBER

    id: str
    avatar: str = PLACEHOLDER
    name: str = PLACEHOLDER
    nickname: str = PLACEHOLDER
    description: str = PLACEHOLDER
    groups: List["Group"] = field(default_factory=list)
    club: Optional[Club] = None
    club_positions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "avatar": self.avatar,
            "name": self.name,
            "nickname": self.nickname,
            "groups": [group.to_dict() for group in self.groups],
            "description": self.description,
            "club": self.club.to_dict() if self.club else None,
            "club_positions": list(self.club_positions),
        }


@dataclass(frozen=True)
class Group:
    """
    A working group inside a club.

    ``members`` embeds copies of the group's members; once stored in the
    cache those copies carry no ``groups`` of their own.
    """

    KIND: ClassVar[EntityKind] = EntityKind.GROUP

    id: str
    name: str = PLACEHOLDER
    description: str = PLACEHOLDER
    members: List[Member] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "members": [member.to_dict() for member in self.members],
        }


@dataclass(frozen=True)
class Event:
    """An event with the members responsible for it."""

    KIND: ClassVar[EntityKind] = EntityKind.EVENT

    id: str
    date: EventPeriod = field(default_factory=EventPeriod)
    name: str = PLACEHOLDER
    description: str = PLACEHOLDER
    thumbnail: str = PLACEHOLDER
    principals: List[Member] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.to_dict(),
            "name": self.name,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "principals": [member.to_dict() for member in self.principals],
        }


@dataclass(frozen=True)
class Article:
    """A published article."""

    KIND: ClassVar[EntityKind] = EntityKind.ARTICLE

    id: str
    title: str = PLACEHOLDER
    content: str = PLACEHOLDER
    description: str = PLACEHOLDER
    tags: List[str] = field(default_factory=list)
    created_at: str = PLACEHOLDER
    updated_at: str = PLACEHOLDER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "description": self.description,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class Sponsor:
    """A sponsor."""

    KIND: ClassVar[EntityKind] = EntityKind.SPONSOR

    id: str
    name: str = PLACEHOLDER
    icon: str = PLACEHOLDER
    url: str = PLACEHOLDER
    description: str = PLACEHOLDER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "url": self.url,
            "description": self.description,
        }


Record = Union[Member, Group, Club, Event, Article, Sponsor]

RECORD_TYPES: Dict[EntityKind, Type] = {
    EntityKind.MEMBER: Member,
    EntityKind.GROUP: Group,
    EntityKind.CLUB: Club,
    EntityKind.EVENT: Event,
    EntityKind.ARTICLE: Article,
    EntityKind.SPONSOR: Sponsor,
}


def record_kind(record: Record) -> EntityKind:
    """Return the kind tag of a record."""
    return type(record).KIND


def default_record(kind: EntityKind, record_id: str = PLACEHOLDER) -> Record:
    """
    Build the default-filled record substituted for a malformed page.

    Text fields hold the ``N/A`` placeholder, relation and tag lists are
    empty and the club reference is absent.

    Args:
        kind: Kind of record to build
        record_id: Identifier to keep, when the raw page had one

    Returns:
        Default record of the requested kind
    """
    return RECORD_TYPES[kind](id=record_id)


def _detach_member(member: Member) -> Member:
    return replace(
        member, groups=[replace(group, members=[]) for group in member.groups]
    )


def break_cycles(record: Record) -> Record:
    """
    Clear back-references one level below a record.

    Groups embedded in a member lose their ``members``; members embedded
    in a group lose their ``groups``; principals of an event are treated
    like members. Other kinds are returned unchanged.
    """
    if isinstance(record, Member):
        return _detach_member(record)
    if isinstance(record, Group):
        return replace(
            record, members=[replace(member, groups=[]) for member in record.members]
        )
    if isinstance(record, Event):
        return replace(
            record, principals=[_detach_member(member) for member in record.principals]
        )
    return record
