import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from app.exceptions import (
    ContentSourceError,
    InvalidCursorError,
    NotFoundError,
    TransientFetchError,
)
from app.schemas.blog import FullPost, PostContentBlock, PostPage, PostSummary
from app.services.rich_text import parse_document, to_plain_text
from app.settings import settings

logger = logging.getLogger(__name__)

PRISMIC_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
SUMMARY_FIELDS = ("title", "subtitle", "author")


class PrismicPostsRepo:
    """Reads posts from a Prismic repository over its REST API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_url: str = settings.PRISMIC_API_URL,
        access_token: str = settings.PRISMIC_ACCESS_TOKEN,
        document_type: str = settings.PRISMIC_DOCUMENT_TYPE,
    ):
        self.client = client
        self.api_url = api_url.rstrip("/")
        self.access_token = access_token
        self.document_type = document_type

    async def list_posts(
        self, page_size: int, cursor: Optional[str] = None
    ) -> PostPage:
        if cursor:
            # next_page is a complete search URL on our own API
            payload = await self._get(self._checked_cursor(cursor))
        else:
            payload = await self._search(
                f'[[at(document.type,"{self.document_type}")]]',
                fetch=",".join(f"{self.document_type}.{f}" for f in SUMMARY_FIELDS),
                pageSize=page_size,
            )

        results = []
        for doc in payload.get("results") or []:
            summary = _to_summary(doc)
            if summary:
                results.append(summary)
        return PostPage(results=results, nextCursor=payload.get("next_page"))

    async def get_post_by_slug(self, slug: str) -> FullPost:
        if not slug or '"' in slug or "\\" in slug:
            raise NotFoundError(slug)

        payload = await self._search(
            f'[[at(my.{self.document_type}.uid,"{slug}")]]', pageSize=1
        )
        results = payload.get("results") or []
        if not results:
            raise NotFoundError(slug)
        return _to_full_post(results[0])

    def _checked_cursor(self, cursor: str) -> str:
        try:
            url = httpx.URL(cursor)
        except httpx.InvalidURL as e:
            raise InvalidCursorError(f"Malformed cursor: {e}") from e

        api = httpx.URL(self.api_url)
        if (
            url.scheme != api.scheme
            or url.host != api.host
            or url.port != api.port
            or url.userinfo
            or not url.path.startswith(f"{api.path.rstrip('/')}/")
        ):
            raise InvalidCursorError("Cursor does not point at the content source")
        return cursor

    async def _master_ref(self) -> str:
        payload = await self._get(self.api_url)
        for ref in payload.get("refs") or []:
            if ref.get("isMasterRef"):
                return ref["ref"]
        raise ContentSourceError("Prismic API returned no master ref")

    async def _search(self, query: str, **params) -> Dict[str, Any]:
        ref = await self._master_ref()
        return await self._get(
            f"{self.api_url}/documents/search", {"ref": ref, "q": query, **params}
        )

    async def _get(self, url: str, params: Optional[dict] = None) -> Dict[str, Any]:
        params = dict(params or {})
        if self.access_token:
            params["access_token"] = self.access_token

        try:
            response = await self.client.get(url, params=params or None)
        except httpx.HTTPError as e:
            raise TransientFetchError(f"Request to {url} failed: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientFetchError(
                f"Prismic responded {response.status_code} for {url}"
            )
        if response.status_code >= 400:
            raise ContentSourceError(
                f"Prismic responded {response.status_code} for {url}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TransientFetchError(f"Invalid JSON from {url}") from e
        if not isinstance(payload, dict):
            raise TransientFetchError(f"Unexpected payload from {url}")
        return payload


def _to_summary(doc: dict) -> Optional[PostSummary]:
    uid = doc.get("uid")
    if not uid:
        logger.warning(f"Skipping document without uid: {doc.get('id')}")
        return None
    data = doc.get("data") or {}
    return PostSummary(
        uid=uid,
        firstPublicationDate=parse_timestamp(doc.get("first_publication_date")),
        title=_text(data.get("title")),
        subtitle=_text(data.get("subtitle")),
        author=_text(data.get("author")),
    )


def _to_full_post(doc: dict) -> FullPost:
    data = doc.get("data") or {}
    banner = data.get("banner") or {}
    return FullPost(
        uid=doc.get("uid") or "",
        firstPublicationDate=parse_timestamp(doc.get("first_publication_date")),
        title=_text(data.get("title")),
        subtitle=_text(data.get("subtitle")),
        author=_text(data.get("author")),
        bannerUrl=banner.get("url") if isinstance(banner, dict) else None,
        content=_to_blocks(data.get("content")),
    )


def _to_blocks(raw: Any) -> List[PostContentBlock]:
    if not isinstance(raw, list):
        return []
    blocks = []
    for item in raw:
        if not isinstance(item, dict):
            logger.warning(f"Skipping content block of type {type(item).__name__}")
            continue
        blocks.append(
            PostContentBlock(
                heading=_text(item.get("heading")),
                body=parse_document(item.get("body") or []),
            )
        )
    return blocks


def _text(value: Any) -> str:
    """Key-text fields are strings; title fields may arrive as rich text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return to_plain_text(parse_document(value))
    return str(value)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, PRISMIC_DATE_FORMAT)
    except ValueError:
        logger.warning(f"Unparseable publication date: {value!r}")
        return None
