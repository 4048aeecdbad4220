"""
Notion API client.

Reads whole databases and page contents from the Notion REST API:
- Database queries with cursor pagination
- Block children listing for page text
- Bearer authentication and pinned ``Notion-Version`` header
- Gzip response bodies (decoded by httpx)

API Documentation: https://developers.notion.com/reference
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..domain.exceptions import ExternalServiceException
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SERVICE_NAME = "notion"


def _is_retryable(exc: BaseException) -> bool:
    """Retry throttling, server errors and transport failures."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


def _plain_text(part: Any) -> str:
    """Plain text of one rich-text item, empty when absent or malformed."""
    text = part.get("plain_text") if isinstance(part, dict) else None
    return text if isinstance(text, str) else ""


class NotionClient:
    """
    Notion API client with rate limiting and retries.

    Features:
    - Client-side sliding window rate limiting
    - Automatic retry with exponential backoff on 429/5xx/transport errors
    - Explicit per-request timeout
    - Async HTTP requests with connection pooling
    """

    BASE_URL = "https://api.notion.com/v1"
    NOTION_VERSION = "2022-06-28"

    def __init__(
        self,
        integration_secret: str,
        base_url: str = BASE_URL,
        notion_version: str = NOTION_VERSION,
        timeout_seconds: float = 10.0,
        page_size: int = 100,
        rate_limit_requests: int = 3,
        rate_limit_window: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Notion API client.

        Args:
            integration_secret: Internal integration token
            base_url: API base URL
            notion_version: Value of the ``Notion-Version`` header
            timeout_seconds: Request timeout
            page_size: Page size for paginated endpoints (max 100)
            rate_limit_requests: Max requests per window
            rate_limit_window: Rate limit window in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.integration_secret = integration_secret
        self.base_url = base_url
        self.notion_version = notion_version
        self.timeout = timeout_seconds
        self.page_size = page_size
        self._transport = transport

        self.rate_limiter = RateLimiter(
            max_requests=rate_limit_requests,
            window_seconds=rate_limit_window,
            name="notion_api",
        )

        # HTTP client (lazy initialization)
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.integration_secret}",
                    "Notion-Version": self.notion_version,
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip",
                    "User-Agent": "Directory-Service/1.0",
                },
            )
        return self._client

    async def close(self):
        """Close HTTP client connections."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make authenticated API request with retry logic.

        Raises:
            httpx.HTTPStatusError: On API errors
            httpx.TransportError: On connection errors and timeouts
        """
        await self.rate_limiter.wait_and_acquire()

        client = await self._get_client()
        logger.debug(f"Sending Notion request: {method} {endpoint}")

        response = await client.request(method, endpoint, params=params, json=json)
        response.raise_for_status()

        return response.json()

    async def _call(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run a request and translate every failure to ExternalServiceException."""
        try:
            data = await self._request(method, endpoint, params=params, json=json)
        except httpx.HTTPStatusError as e:
            raise ExternalServiceException(
                SERVICE_NAME, f"HTTP {e.response.status_code} on {endpoint}"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceException(
                SERVICE_NAME, f"{type(e).__name__} on {endpoint}"
            ) from e
        except ValueError as e:
            raise ExternalServiceException(
                SERVICE_NAME, f"invalid JSON from {endpoint}"
            ) from e

        if not isinstance(data, dict):
            raise ExternalServiceException(
                SERVICE_NAME, f"unexpected payload from {endpoint}"
            )
        return data

    async def _collect_pages(
        self, method: str, endpoint: str, use_body: bool
    ) -> List[Dict[str, Any]]:
        """Follow ``has_more``/``next_cursor`` until every result is read."""
        results: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            arguments: Dict[str, Any] = {"page_size": self.page_size}
            if cursor:
                arguments["start_cursor"] = cursor

            if use_body:
                data = await self._call(method, endpoint, json=arguments)
            else:
                data = await self._call(method, endpoint, params=arguments)

            page = data.get("results")
            if not isinstance(page, list):
                raise ExternalServiceException(
                    SERVICE_NAME, f"no results array from {endpoint}"
                )
            results.extend(page)

            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                return results

    async def query_database(self, database_id: str) -> List[Dict[str, Any]]:
        """
        Read every page of a database.

        Uses POST /databases/{database_id}/query

        Args:
            database_id: Notion database id

        Returns:
            Raw page objects, in the order Notion returned them

        Raises:
            ExternalServiceException: On network, auth or parse failure
        """
        pages = await self._collect_pages(
            "POST", f"/databases/{database_id}/query", use_body=True
        )
        logger.info(f"Notion database {database_id} returned {len(pages)} pages")
        return pages

    async def get_block_children(self, block_id: str) -> List[Dict[str, Any]]:
        """
        List the child blocks of a page or block.

        Uses GET /blocks/{block_id}/children
        """
        return await self._collect_pages(
            "GET", f"/blocks/{block_id}/children", use_body=False
        )

    async def get_page_text(self, page_id: str) -> str:
        """
        Get the plain text of a page, one line per top-level block.

        Blocks without rich text (images, dividers, ...) are skipped.
        """
        lines = []
        for block in await self.get_block_children(page_id):
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")
            body = block.get(block_type) if isinstance(block_type, str) else None
            rich_text = body.get("rich_text") if isinstance(body, dict) else None
            if not isinstance(rich_text, list):
                continue
            pieces = [_plain_text(part) for part in rich_text]
            lines.append("".join(pieces))
        return "\n".join(lines)
