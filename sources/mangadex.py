"""
================================================================================
Kamilist Resolver - MangaDex Connector
================================================================================
MangaDex through a Consumet-style catalog proxy (takiapi).

We never talk to api.mangadex.org directly: the proxy handles MangaDex's
rate limits and CDN node selection, and returns flat JSON.

PROXY QUIRKS:
  - Search is path-based (/manga/mangadex/<query>) and chokes on "?"
  - Some titles only match after a known rewrite ("Jirai Nan Desu ka?")
  - Chapter lists may arrive on the series object or as a bare array
  - Page lists may be strings, {img} objects, images[] or result.images[]
================================================================================
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .base import (
    BaseConnector, Provider, SearchResult, Entry, ContentLocation,
    SENTINEL_IMAGES, as_int, as_str_list, as_text, clean_chapter_title,
    extract_chapter_number, first_present, mark_latest
)
from .cancellation import CancellationToken
from .errors import MalformedResponseError


# Titles the proxy only finds under a different spelling
QUERY_REWRITES = {
    "Jirai Nan Desu ka?": "Jirai Nandesuka",
}

WHITESPACE = re.compile(r"\s+")


def format_search_query(query: str) -> str:
    """Apply known rewrites, drop "?" and collapse whitespace."""
    formatted = query
    for original, replacement in QUERY_REWRITES.items():
        if original in formatted:
            formatted = formatted.replace(original, replacement)
    formatted = formatted.replace("?", "")
    return WHITESPACE.sub(" ", formatted).strip()


class MangaDexConnector(BaseConnector):
    """MangaDex via the catalog proxy."""

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    provider = Provider.MANGADEX
    name = "MangaDex"
    base_url = "https://takiapi.xyz"
    request_timeout = 12.0

    referer = "https://takiapi.xyz/"
    sentinel_images = SENTINEL_IMAGES + ("chapmanganato.to",)

    # =========================================================================
    # PARSERS
    # =========================================================================

    def _parse_series(self, data: Dict[str, Any], content_id: Optional[str] = None) -> SearchResult:
        chapters = data.get("chapters")
        return SearchResult(
            id=str(content_id or data.get("id") or ""),
            title=as_text(data.get("title")) or "",
            provider=self.provider,
            cover_image=first_present(data, "image", "coverImage", "cover"),
            status=as_text(data.get("status")),
            genres=as_str_list(data.get("genres")),
            summary=as_text(first_present(data, "description", "summary")),
            chapter_count=len(chapters) if isinstance(chapters, list) else as_int(data.get("chapterCount")),
            last_updated=as_text(first_present(data, "lastUpdated", "updatedAt"))
        )

    def _parse_entry(self, raw: Dict[str, Any], position: int, cover: Optional[str]) -> Entry:
        entry_id = str(raw.get("id") or "")
        title = as_text(raw.get("title"))
        number = extract_chapter_number(
            title,
            position,
            explicit=first_present(raw, "chapterNumber", "number", "chapter"),
            raw_id=entry_id
        )

        return Entry(
            id=entry_id,
            number=number,
            title=clean_chapter_title(title, number),
            content_ref=entry_id,
            provider=self.provider,
            volume=as_text(first_present(raw, "volumeNumber", "volume")),
            pages=as_int(raw.get("pages")),
            language=as_text(first_present(raw, "translatedLanguage", "lang")) or "en",
            updated_at=as_text(first_present(raw, "releaseDate", "updatedAt")),
            scanlation_group=as_text(first_present(raw, "scanlationGroup", "scanlator")),
            thumbnail=first_present(raw, "thumbnail") or cover
        )

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def search(
        self,
        query: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[SearchResult]:
        formatted = format_search_query(query)
        if not formatted:
            return []
        if formatted != query:
            self.logger.debug(f"{self.name}: search query rewritten {query!r} -> {formatted!r}")

        payload = self.client.get_json(f"/manga/mangadex/{quote(formatted, safe='')}", None, cancel_token)
        try:
            items = self._find_list(self._unwrap(payload), ["results"])
        except MalformedResponseError as e:
            self._warn_malformed("search", e)
            return []

        return [self._parse_series(item) for item in items if isinstance(item, dict)]

    def _fetch_info(self, content_id: str, language: str, cancel_token: Optional[CancellationToken]) -> Any:
        return self._unwrap(self.client.get_json(
            f"/manga/mangadex/info/{quote(content_id, safe='')}",
            {"lang": language},
            cancel_token
        ))

    def get_details(
        self,
        content_id: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[SearchResult]:
        try:
            data = self._fetch_info(content_id, "en", cancel_token)
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
        try:
            data = self._fetch_info(content_id, language or "en", cancel_token)
            raw_chapters = self._find_list(data, ["chapters"])
        except MalformedResponseError as e:
            self._warn_malformed("chapters", e)
            return []

        cover = first_present(data, "image", "coverImage") if isinstance(data, dict) else None
        entries = [
            self._parse_entry(raw, position, cover)
            for position, raw in enumerate(raw_chapters)
            if isinstance(raw, dict) and raw.get("id")
        ]
        self.logger.info(f"📖 {self.name}: {len(entries)} chapters for {content_id} ({language})")
        return mark_latest(entries)

    def get_content_locations(
        self,
        entry_id: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[ContentLocation]:
        if not entry_id:
            self.logger.warning(f"⚠️ {self.name}: empty chapter id")
            return []

        payload = self.client.get_json(f"/manga/mangadex/read/{quote(entry_id, safe='')}", None, cancel_token)
        try:
            raw_pages = self._find_list(self._unwrap(payload), ["images", "pages"], nested=["result"])
        except MalformedResponseError as e:
            self._warn_malformed("pages", e)
            return []

        return self._build_locations(raw_pages)
