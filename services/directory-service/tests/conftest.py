"""
Test configuration and fixtures
"""

from typing import List, Optional

import pytest

from app.cache.record_cache import RecordCache
from app.config import get_settings
from app.domain.entities import Club, EntityKind, Group, Member

REQUIRED_ENV = {
    "INTEGRATION_SECRET": "secret_test_token",
    "MEMBER_DATABASE_ID": "db-member",
    "GROUP_DATABASE_ID": "db-group",
    "CLUB_DATABASE_ID": "db-club",
    "EVENT_DATABASE_ID": "db-event",
    "ARTICLE_DATABASE_ID": "db-article",
    "SPONSOR_DATABASE_ID": "db-sponsor",
}


def _title(text: str) -> dict:
    return {"type": "title", "title": [{"plain_text": text}]}


def _rich_text(text: str) -> dict:
    return {"type": "rich_text", "rich_text": [{"plain_text": text}]}


def _files(url: str) -> dict:
    return {"type": "files", "files": [{"type": "external", "external": {"url": url}}]}


def _relation(ids: List[str]) -> dict:
    return {"type": "relation", "relation": [{"id": related} for related in ids]}


def _multi_select(names: List[str]) -> dict:
    return {"type": "multi_select", "multi_select": [{"name": name} for name in names]}


class NotionPages:
    """Builders for raw page objects as returned by a Notion database query."""

    @staticmethod
    def club(
        page_id: str = "club-1",
        name: str = "Robotics Club",
        description: str = "We build robots",
        school: str = "Engineering",
        instagram_id: str = "robotics_club",
        icon: str = "https://cdn.example.com/club.png",
    ) -> dict:
        return {
            "object": "page",
            "id": page_id,
            "properties": {
                "name": _title(name),
                "description": _rich_text(description),
                "school": {"type": "select", "select": {"name": school}},
                "instagram_id": _rich_text(instagram_id),
                "icon": _files(icon),
            },
        }

    @staticmethod
    def group(
        page_id: str = "group-1",
        name: str = "Hardware",
        description: str = "Hardware team",
        member_ids: Optional[List[str]] = None,
    ) -> dict:
        return {
            "object": "page",
            "id": page_id,
            "properties": {
                "name": _title(name),
                "description": _rich_text(description),
                "members": _relation(member_ids or []),
            },
        }

    @staticmethod
    def member(
        page_id: str = "member-1",
        name: str = "Alex Kim",
        nickname: str = "alex",
        description: str = "Builds things",
        avatar: str = "https://cdn.example.com/alex.png",
        group_ids: Optional[List[str]] = None,
        club_ids: Optional[List[str]] = None,
        positions: Optional[List[str]] = None,
    ) -> dict:
        return {
            "object": "page",
            "id": page_id,
            "properties": {
                "avatar": _files(avatar),
                "name": _title(name),
                "nickname": _rich_text(nickname),
                "description": _rich_text(description),
                "groups": _relation(group_ids or []),
                "club": _relation(club_ids or []),
                "club_positions": _multi_select(positions or []),
            },
        }

    @staticmethod
    def event(
        page_id: str = "event-1",
        name: str = "Demo Day",
        start: str = "2024-05-01",
        end: Optional[str] = "2024-05-02",
        description: str = "Yearly showcase",
        thumbnail: str = "https://cdn.example.com/demo.png",
        principal_ids: Optional[List[str]] = None,
    ) -> dict:
        return {
            "object": "page",
            "id": page_id,
            "properties": {
                "date": {"type": "date", "date": {"start": start, "end": end}},
                "name": _title(name),
                "description": _rich_text(description),
                "thumbnail": _files(thumbnail),
                "principal": _relation(principal_ids or []),
            },
        }

    @staticmethod
    def article(
        page_id: str = "article-1",
        title: str = "Hello World",
        description: str = "First post",
        tags: Optional[List[str]] = None,
        created_at: str = "2024-01-01T00:00:00.000Z",
        updated_at: str = "2024-01-02T00:00:00.000Z",
    ) -> dict:
        return {
            "object": "page",
            "id": page_id,
            "properties": {
                "title": _title(title),
                "description": _rich_text(description),
                "tags": _multi_select(tags or []),
                "created_at": {"type": "created_time", "created_time": created_at},
                "updated_at": {"type": "last_edited_time", "last_edited_time": updated_at},
            },
        }

    @staticmethod
    def sponsor(
        page_id: str = "sponsor-1",
        name: str = "Acme",
        description: str = "Parts supplier",
        url: str = "https://acme.example.com",
        icon: str = "https://cdn.example.com/acme.png",
    ) -> dict:
        return {
            "object": "page",
            "id": page_id,
            "properties": {
                "name": _title(name),
                "description": _rich_text(description),
                "url": {"type": "url", "url": url},
                "icon": _files(icon),
            },
        }

    @staticmethod
    def query_response(
        results: List[dict], has_more: bool = False, next_cursor: Optional[str] = None
    ) -> dict:
        return {
            "object": "list",
            "results": results,
            "has_more": has_more,
            "next_cursor": next_cursor,
        }


@pytest.fixture
def pages():
    """Notion page builders."""
    return NotionPages


@pytest.fixture
def cache():
    """Create a fresh, empty record cache."""
    return RecordCache()


@pytest.fixture
def sample_club():
    """Create sample club."""
    return Club(
        id="club-1",
        name="Robotics Club",
        description="We build robots",
        school="Engineering",
        instagram_id="robotics_club",
        icon="https://cdn.example.com/club.png",
    )


@pytest.fixture
def sample_member(sample_club):
    """Create sample member belonging to one group."""
    return Member(
        id="member-1",
        name="Alex Kim",
        nickname="alex",
        groups=[Group(id="group-1", name="Hardware")],
        club=sample_club,
        club_positions=["President"],
    )


@pytest.fixture
def sample_group():
    """Create sample group with one member."""
    return Group(
        id="group-1",
        name="Hardware",
        description="Hardware team",
        members=[Member(id="member-1", name="Alex Kim")],
    )


@pytest.fixture
def populated_cache(cache, sample_club, sample_group, sample_member):
    """Cache holding one club, one group and one member."""
    cache.replace(EntityKind.CLUB, [sample_club])
    cache.replace(EntityKind.GROUP, [sample_group])
    cache.replace(EntityKind.MEMBER, [sample_member])
    return cache


@pytest.fixture
def notion_env(monkeypatch):
    """Set every required environment variable and reset cached settings."""
    for name, value in REQUIRED_ENV.items():
        monkeypatch.setenv(name, value)
    get_settings.cache_clear()
    yield REQUIRED_ENV
    get_settings.cache_clear()
