"""
================================================================================
Kamilist Resolver - MangaFire Connector
================================================================================
MangaFire through the magaapinovel JSON proxy.

RESPONSE SHAPES:
  - Search:  {list: [{id: "/manga/<slug>", name, imageUrl, type}]}
  - Series:  {name, imageUrl, description, chapters: [{id, name, dateUpload, scanlator}]}
  - Pages:   {pages: [{url, headers}]} or a bare array

Series ids are exposed without the "/manga/" prefix and re-prefixed on the
way back in. Page lookups only take the last path segment of a chapter id.
================================================================================
"""

import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .base import (
    BaseConnector, Provider, SearchResult, Entry, ContentLocation,
    SENTINEL_IMAGES, as_str_list, as_text, clean_chapter_title,
    extract_chapter_number, first_present, mark_latest
)
from .cancellation import CancellationToken
from .errors import MalformedResponseError


MANGA_PREFIX = "/manga/"
VOLUME_PATTERN = re.compile(r"Vol\s*(\d+)", re.IGNORECASE)


def strip_manga_prefix(raw_id: Any) -> str:
    text = str(raw_id or "").strip()
    if text.startswith(MANGA_PREFIX):
        return text[len(MANGA_PREFIX):]
    return text.lstrip("/")


def parse_volume(scanlator: Optional[str]) -> Optional[str]:
    """MangaFire folds the volume into the scanlator text ("Vol 3 Chapter 20")."""
    if not scanlator:
        return None
    match = VOLUME_PATTERN.search(scanlator)
    return match.group(1) if match else None


class MangaFireConnector(BaseConnector):
    """MangaFire via the JSON proxy."""

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    provider = Provider.MANGAFIRE
    name = "MangaFire"
    base_url = "https://magaapinovel.xyz/api"
    request_timeout = 10.0

    referer = "https://mangafire.to/"
    sentinel_images = SENTINEL_IMAGES + ("chapmanganato.to",)

    # =========================================================================
    # PARSERS
    # =========================================================================

    def _parse_series(self, data: Dict[str, Any], content_id: Optional[str] = None) -> SearchResult:
        chapters = data.get("chapters")
        return SearchResult(
            id=content_id or strip_manga_prefix(data.get("id")),
            title=as_text(first_present(data, "name", "title")) or "",
            provider=self.provider,
            cover_image=first_present(data, "imageUrl", "image"),
            status=as_text(data.get("status")),
            genres=as_str_list(first_present(data, "genre", "genres")),
            summary=as_text(data.get("description")),
            chapter_count=len(chapters) if isinstance(chapters, list) else None,
            last_updated=as_text(data.get("lastUpdated"))
        )

    def _parse_entry(self, raw: Dict[str, Any], position: int) -> Entry:
        entry_id = str(raw.get("id") or "")
        title = as_text(raw.get("name"))
        scanlator = as_text(raw.get("scanlator"))
        number = extract_chapter_number(title, position, explicit=raw.get("number"), raw_id=entry_id)

        return Entry(
            id=entry_id,
            number=number,
            title=clean_chapter_title(title, number),
            content_ref=entry_id,
            provider=self.provider,
            volume=parse_volume(scanlator),
            language="en",
            updated_at=as_text(raw.get("dateUpload")),
            scanlation_group=scanlator
        )

    def _series_path(self, content_id: str) -> str:
        return MANGA_PREFIX + quote(strip_manga_prefix(content_id), safe="/")

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def search(
        self,
        query: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[SearchResult]:
        payload = self.client.get_json(f"/search/{quote(query, safe='')}", None, cancel_token)
        try:
            items = self._find_list(self._unwrap(payload), ["list", "results"])
        except MalformedResponseError as e:
            self._warn_malformed("search", e)
            return []

        return [self._parse_series(item) for item in items if isinstance(item, dict)]

    def get_details(
        self,
        content_id: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[SearchResult]:
        payload = self.client.get_json(self._series_path(content_id), None, cancel_token)
        try:
            data = self._unwrap(payload)
        except MalformedResponseError as e:
            self._warn_malformed("details", e)
            return None
        if not isinstance(data, dict):
            return None
        return self._parse_series(data, strip_manga_prefix(content_id))

    def list_entries(
        self,
        content_id: str,
        language: str = "en",
        cancel_token: Optional[CancellationToken] = None
    ) -> List[Entry]:
        payload = self.client.get_json(self._series_path(content_id), None, cancel_token)
        try:
            raw_chapters = self._find_list(self._unwrap(payload), ["chapters"])
        except MalformedResponseError as e:
            self._warn_malformed("chapters", e)
            return []

        entries = [
            self._parse_entry(raw, position)
            for position, raw in enumerate(raw_chapters)
            if isinstance(raw, dict) and raw.get("id")
        ]
        self.logger.info(f"📖 {self.name}: {len(entries)} chapters for {content_id}")
        return mark_latest(entries)

    def get_content_locations(
        self,
        entry_id: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[ContentLocation]:
        page_id = str(entry_id or "").rstrip("/").split("/")[-1]
        if not page_id:
            self.logger.warning(f"⚠️ {self.name}: empty chapter id")
            return []

        payload = self.client.get_json("/manga/page", {"id": page_id}, cancel_token)
        try:
            raw_pages = self._find_list(self._unwrap(payload), ["pages"])
        except MalformedResponseError as e:
            self._warn_malformed("pages", e)
            return []

        return self._build_locations(raw_pages)
