"""
================================================================================
Kamilist Resolver - Katana Connector
================================================================================
JSON proxy in front of MangaKatana.

RESPONSE SHAPES:
  - Every endpoint wraps its payload in {success, data}
  - Search:  data.results[] with slugId/id, title, coverImage, genreNames
  - Series:  data.chapters[] with url/href/id, title, number, updated
  - Chapter: same /series/<chapter-id> route, pages under imageUrls

Chapter ids come back as full MangaKatana URLs; they are reduced to
"<series-slug>/c<number>" before being handed out.
================================================================================
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .base import (
    BaseConnector, Provider, SearchResult, Entry, ContentLocation,
    as_int, as_str_list, as_text, clean_chapter_title, extract_chapter_number,
    first_present, mark_latest
)
from .cancellation import CancellationToken
from .errors import MalformedResponseError


CHAPTER_URL_PREFIX = re.compile(r"^https?://[^/]+/(?:manga|series)/", re.IGNORECASE)
CHAPTER_PATH_PREFIX = re.compile(r"^/?(?:manga|series)/", re.IGNORECASE)


def sanitize_chapter_id(chapter_id: Any) -> str:
    """Strip scheme, host and a leading manga/ or series/ segment."""
    if not chapter_id:
        return ""
    cleaned = str(chapter_id).strip()
    cleaned = CHAPTER_URL_PREFIX.sub("", cleaned)
    cleaned = CHAPTER_PATH_PREFIX.sub("", cleaned)
    return cleaned.lstrip("/")


class KatanaConnector(BaseConnector):
    """MangaKatana via the Katana JSON proxy."""

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    provider = Provider.KATANA
    name = "Katana"
    base_url = "https://magaapinovel.xyz/katana"
    mirror_url = "https://akane-api-main-copy.vercel.app/katana"
    request_timeout = 15.0

    referer = "https://mangakatana.com/"

    # =========================================================================
    # PARSERS
    # =========================================================================

    def _parse_series(self, data: Dict[str, Any], content_id: Optional[str] = None) -> SearchResult:
        chapters = data.get("chapters")
        return SearchResult(
            id=str(content_id or first_present(data, "slugId", "id", default="")),
            title=as_text(data.get("title")) or "",
            provider=self.provider,
            cover_image=first_present(data, "coverImage", "cover"),
            status=as_text(data.get("status")),
            genres=as_str_list(first_present(data, "genreNames", "genres")),
            summary=as_text(first_present(data, "summary", "description")),
            chapter_count=len(chapters) if isinstance(chapters, list) else as_int(data.get("chapterCount")),
            last_updated=as_text(data.get("lastUpdated"))
        )

    def _parse_entry(self, content_id: str, raw: Dict[str, Any], position: int) -> Entry:
        raw_url = first_present(raw, "url", "href", "id", default="")
        entry_id = sanitize_chapter_id(raw_url) or f"{content_id}/c{position + 1}"
        title = as_text(raw.get("title"))
        number = extract_chapter_number(title, position, explicit=raw.get("number"), raw_id=entry_id)

        return Entry(
            id=entry_id,
            number=number,
            title=clean_chapter_title(title, number),
            content_ref=entry_id,
            provider=self.provider,
            volume=as_text(raw.get("volume")),
            pages=as_int(raw.get("pages")),
            language="en",
            updated_at=as_text(first_present(raw, "updated", "updatedAt", "dateUpload")),
            scanlation_group=as_text(raw.get("scanlator"))
        )

    def _page_url(self, item: Any):
        if isinstance(item, dict) and not first_present(item, "url", "img", "image", "src") and item.get("proxyUrl"):
            headers = item.get("headers")
            return self.absolute_url(str(item["proxyUrl"]).strip()), headers if isinstance(headers, dict) else None
        return super()._page_url(item)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def search(
        self,
        query: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[SearchResult]:
        """Search by book name."""
        payload = self.client.get_json(
            "/search",
            {"search": query, "search_by": "book_name"},
            cancel_token
        )
        try:
            items = self._find_list(self._unwrap(payload), ["results"])
        except MalformedResponseError as e:
            self._warn_malformed("search", e)
            return []

        return [self._parse_series(item) for item in items if isinstance(item, dict)]

    def get_details(
        self,
        content_id: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[SearchResult]:
        payload = self.client.get_json(f"/series/{quote(content_id, safe='/')}", None, cancel_token)
        try:
            data = self._unwrap(payload)
        except MalformedResponseError as e:
            self._warn_malformed("details", e)
            return None
        if not isinstance(data, dict):
            return None
        return self._parse_series(data, content_id)

    def list_entries(
        self,
        content_id: str,
        language: str = "en",
        cancel_token: Optional[CancellationToken] = None
    ) -> List[Entry]:
        """Chapters come embedded in the series payload; Katana is English-only."""
        payload = self.client.get_json(f"/series/{quote(content_id, safe='/')}", None, cancel_token)
        try:
            raw_chapters = self._find_list(self._unwrap(payload), ["chapters"])
        except MalformedResponseError as e:
            self._warn_malformed("chapters", e)
            return []

        entries = [
            self._parse_entry(content_id, raw, position)
            for position, raw in enumerate(raw_chapters)
            if isinstance(raw, dict)
        ]
        self.logger.info(f"📖 {self.name}: {len(entries)} chapters for {content_id}")
        return mark_latest(entries)

    def get_content_locations(
        self,
        entry_id: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[ContentLocation]:
        chapter_id = sanitize_chapter_id(entry_id)
        if not chapter_id:
            self.logger.warning(f"⚠️ {self.name}: empty chapter id")
            return []

        payload = self.client.get_json(f"/series/{quote(chapter_id, safe='/')}", None, cancel_token)
        try:
            raw_pages = self._find_list(self._unwrap(payload), ["imageUrls", "imageurls", "images", "pages"])
        except MalformedResponseError as e:
            self._warn_malformed("pages", e)
            return []

        return self._build_locations(raw_pages)
