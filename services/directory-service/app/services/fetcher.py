"""
Record fetcher.

Reads the full current collection of one entity kind from Notion and
decodes it into domain records, resolving relations against the cache.
"""

import dataclasses
import logging
from typing import List, Mapping

from app.cache.record_cache import RecordCache
from app.domain.decoders import decode_record
from app.domain.entities import PLACEHOLDER, Article, EntityKind, Record
from app.domain.exceptions import ExternalServiceException, FetchError
from app.infrastructure.notion_client import NotionClient

logger = logging.getLogger(__name__)


class RecordFetcher:
    """
    Fetches and decodes whole collections, one kind at a time.

    A kind's records are returned only when every request for that kind
    succeeded; malformed pages are replaced by defaults during decoding
    and never fail the batch.
    """

    def __init__(
        self,
        client: NotionClient,
        cache: RecordCache,
        database_ids: Mapping[EntityKind, str],
        fetch_article_content: bool = True,
    ):
        """
        Initialize fetcher.

        Args:
            client: Notion API client
            cache: Cache consulted to resolve relation fields
            database_ids: Notion database id per kind
            fetch_article_content: Whether to read article bodies from page blocks
        """
        self.client = client
        self.cache = cache
        self.database_ids = dict(database_ids)
        self.fetch_article_content = fetch_article_content

    async def fetch(self, kind: EntityKind) -> List[Record]:
        """
        Fetch and decode every record of a kind.

        Args:
            kind: Entity kind to fetch

        Returns:
            Decoded records, in the order Notion returned them

        Raises:
            FetchError: If any request for this kind failed
        """
        try:
            pages = await self.client.query_database(self.database_ids[kind])
            records = [decode_record(kind, page, self.cache) for page in pages]

            if kind is EntityKind.ARTICLE and self.fetch_article_content:
                records = [await self._with_content(record) for record in records]

        except ExternalServiceException as e:
            logger.warning(f"Fetching {kind.value} failed: {e.message}")
            raise FetchError(kind.value, e.message) from e

        logger.info(f"Fetched {len(records)} {kind.value} records")
        return records

    async def _with_content(self, article: Article) -> Article:
        """Fill an article's content from its page blocks."""
        if article.id == PLACEHOLDER:
            # page had no id, there is nothing to read blocks from
            return article
        content = await self.client.get_page_text(article.id)
        return dataclasses.replace(article, content=content)
