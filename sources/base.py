"""
================================================================================
Kamilist Resolver - Base Connector
================================================================================
Abstract base class and canonical models for every content provider.

Each provider connector implements the same three operations:
  1. search(query) -> Find series by title
  2. list_entries(content_id) -> Get chapter list
  3. get_content_locations(entry_id) -> Get page image URLs

and converts its provider's response shape into SearchResult / Entry /
ContentLocation. Nothing provider-internal (success flags, data envelopes,
fallback markers) survives past the connector.

ENDPOINT FALLBACK:
  - Every connector talks through a MirroredClient
  - Primary endpoint failure is retried once on the mirror, if configured
  - Provider-level fallback is the orchestrator's job, not the connector's
================================================================================
"""

import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from .cancellation import CancellationToken
from .errors import MalformedResponseError
from .http_client import DEFAULT_USER_AGENT, Endpoint, MirroredClient


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class Provider(str, Enum):
    """Known content providers."""
    KATANA = "katana"
    MANGADEX = "mangadex"
    MANGAFIRE = "mangafire"

    @classmethod
    def parse(cls, value: Any) -> "Provider":
        """Accept a Provider or its string id (case-insensitive)."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


@dataclass
class SearchResult:
    """
    Standardized search result that works across ALL providers.

    Whether it came from Katana's envelope or MangaFire's ``list`` array,
    callers always receive this same structure.
    """
    id: str                            # Provider-specific series id
    title: str                         # Display title
    provider: Provider
    cover_image: Optional[str] = None
    status: Optional[str] = None       # "ongoing", "completed", ...
    genres: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    chapter_count: Optional[int] = None
    last_updated: Optional[str] = None

    @property
    def is_well_formed(self) -> bool:
        return bool(self.id) and bool(self.title)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary for API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "provider": self.provider.value,
            "coverImage": self.cover_image,
            "status": self.status,
            "genres": list(self.genres),
            "summary": self.summary,
            "chapterCount": self.chapter_count,
            "lastUpdated": self.last_updated
        }


@dataclass
class Entry:
    """Standardized chapter information."""
    id: str                            # Opaque outside its provider
    number: str                        # String for "10.5"
    title: str
    content_ref: str                   # What get_content_locations() expects
    provider: Provider
    volume: Optional[str] = None
    pages: Optional[int] = None
    language: Optional[str] = None
    updated_at: Optional[str] = None
    scanlation_group: Optional[str] = None
    is_latest: bool = False
    thumbnail: Optional[str] = None

    @property
    def sort_key(self) -> float:
        return chapter_sort_key(self.number)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "number": self.number,
            "title": self.title,
            "contentRef": self.content_ref,
            "provider": self.provider.value,
            "volume": self.volume,
            "pages": self.pages,
            "language": self.language,
            "updatedAt": self.updated_at,
            "scanlationGroup": self.scanlation_group,
            "isLatest": self.is_latest,
            "thumbnail": self.thumbnail
        }


@dataclass
class ContentLocation:
    """Standardized page/image information."""
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    index: int = 0                     # Page number (0-indexed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "url": self.url,
            "headers": dict(self.headers),
            "index": self.index
        }


# =============================================================================
# NORMALIZATION HELPERS
# =============================================================================

NUMBER_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")
ID_NUMBER_PATTERN = re.compile(r"(?:^|[/\-_.])c(?:hapter)?[-_]?(\d+(?:\.\d+)?)", re.IGNORECASE)
CHAPTER_PREFIX_PATTERN = re.compile(r"^\s*chap(?:ter)?\.?\s*", re.IGNORECASE)
EDGE_SEPARATORS_PATTERN = re.compile(r"^[:\-\s]+|[:\-\s]+$")
NUMERIC_ONLY_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")

# Placeholder banners some providers append to the page list
SENTINEL_IMAGES = ("logo-chap.png", "gohome.png", "no-more-chapter")


def chapter_sort_key(number: Any) -> float:
    """
    Numeric ordering key for a chapter number string.

    "10.5" sorts between "10" and "11"; anything non-numeric sorts last.
    """
    try:
        key = float(str(number).strip())
    except (TypeError, ValueError):
        key = None
    if key is None or not math.isfinite(key):
        match = NUMBER_PATTERN.search(str(number or ""))
        if match:
            return float(match.group(1))
        return float("inf")
    return key


def format_number(value: Any) -> Optional[str]:
    """Render an explicit chapter number field ("12", 12, 12.0, 12.5) as text."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    text = str(value).strip()
    if not text:
        return None
    match = NUMBER_PATTERN.search(text)
    return match.group(1) if match else None


def extract_chapter_number(
    title: Optional[str],
    position: int,
    explicit: Any = None,
    raw_id: Optional[str] = None
) -> str:
    """
    Resolve a chapter number.

    Order: explicit numeric field, first numeric token of the title,
    ``c<number>`` inside the id, then 1-based position in the listing.
    """
    number = format_number(explicit)
    if number:
        return number
    if title:
        match = NUMBER_PATTERN.search(title)
        if match:
            return match.group(1)
    if raw_id:
        match = ID_NUMBER_PATTERN.search(raw_id)
        if match:
            return match.group(1)
    return str(position + 1)


def clean_chapter_title(title: Optional[str], number: str) -> str:
    """Strip "Chapter" prefixes; bare numbers and blanks become "Chapter N"."""
    if not title:
        return f"Chapter {number}"
    stripped = CHAPTER_PREFIX_PATTERN.sub("", str(title))
    stripped = EDGE_SEPARATORS_PATTERN.sub("", stripped).strip()
    if not stripped or stripped == number or NUMERIC_ONLY_PATTERN.match(stripped):
        return f"Chapter {number}"
    return stripped


def mark_latest(entries: List[Entry]) -> List[Entry]:
    """Flag the entry with the highest chapter number (first one on ties)."""
    if not entries:
        return entries
    latest = None
    for entry in entries:
        entry.is_latest = False
        if latest is None or entry.sort_key > latest.sort_key:
            latest = entry
    latest.is_latest = True
    return entries


def first_present(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first value under ``keys`` that is not None/empty."""
    for key in keys:
        value = data.get(key)
        if value not in (None, "", [], {}):
            return value
    return default


def as_text(value: Any) -> Optional[str]:
    """Coerce scalar or localized-dict fields ({"en": ...}) to text."""
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("en") or next(iter(value.values()), None)
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def as_str_list(value: Any) -> List[str]:
    """Coerce genre-like fields (strings or {"name": ...} objects) to a list."""
    if not value:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    names = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("name") or item.get("title")
        if item:
            names.append(str(item).strip())
    return names


def as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


# =============================================================================
# BASE CONNECTOR CLASS
# =============================================================================

class BaseConnector(ABC):
    """
    Abstract base class for content provider connectors.

    INHERITANCE:
        Katana, MangaDex and MangaFire connectors inherit from this class
        and implement search(), list_entries() and get_content_locations().

    CONSTRUCTION:
        Connectors are built explicitly and handed to the orchestrator.
        The session, endpoint pair and logger are all injectable so tests
        can substitute fakes.

    Example:
        class ExampleConnector(BaseConnector):
            provider = Provider.KATANA
            name = "Example"
            base_url = "https://api.example.org"

            def search(self, query, cancel_token=None):
                payload = self.client.get_json("/search", {"q": query}, cancel_token)
                ...
    """

    # =========================================================================
    # SOURCE CONFIGURATION (Override in subclass)
    # =========================================================================

    provider: Provider
    name: str = "Base Provider"
    base_url: str = ""                 # Primary API root
    mirror_url: Optional[str] = None   # Secondary API root
    request_timeout: float = 12.0      # Seconds per HTTP call

    # Image-host headers attached to every ContentLocation
    referer: str = ""
    sentinel_images: Sequence[str] = SENTINEL_IMAGES

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        endpoint: Optional[Endpoint] = None,
        logger: Optional[logging.Logger] = None,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        self.endpoint = endpoint or Endpoint(
            primary=self.base_url,
            mirror=self.mirror_url,
            timeout=self.request_timeout
        )
        self.user_agent = user_agent
        self.logger = logger or logging.getLogger(self.__class__.__module__)
        self.client = MirroredClient(
            self.provider,
            self.endpoint,
            session=session,
            headers=self._headers(),
            logger=self.logger
        )

    # =========================================================================
    # REQUEST HELPERS
    # =========================================================================

    def _headers(self) -> Dict[str, str]:
        """API request headers."""
        return {
            "Accept": "application/json",
            "User-Agent": self.user_agent
        }

    def image_headers(self) -> Dict[str, str]:
        """Anti-hotlinking headers the eventual image fetch must carry."""
        headers = {"User-Agent": self.user_agent}
        if self.referer:
            headers["Referer"] = self.referer
        return headers

    # =========================================================================
    # ABSTRACT METHODS (Must implement in subclass)
    # =========================================================================

    @abstractmethod
    def search(
        self,
        query: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[SearchResult]:
        """
        Search for series by title.

        Returns an empty list for no results or an unrecognized body.
        Raises TransportError only when every endpoint failed.
        """

    @abstractmethod
    def list_entries(
        self,
        content_id: str,
        language: str = "en",
        cancel_token: Optional[CancellationToken] = None
    ) -> List[Entry]:
        """Get all chapters for a series, in provider order."""

    @abstractmethod
    def get_content_locations(
        self,
        entry_id: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[ContentLocation]:
        """Get page image URLs for a chapter, sentinel images removed."""

    # =========================================================================
    # OPTIONAL METHODS (Override if provider supports)
    # =========================================================================

    def get_details(
        self,
        content_id: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[SearchResult]:
        """Get full details for a specific series."""
        return None

    # =========================================================================
    # RESPONSE NORMALIZATION
    # =========================================================================

    def _unwrap(self, payload: Any) -> Any:
        """
        Strip a ``{success, data}`` envelope.

        Raises MalformedResponseError when the envelope reports failure or
        the payload is an ``{error: ...}`` object.
        """
        if isinstance(payload, dict):
            if "success" in payload:
                if not payload.get("success"):
                    reason = payload.get("error") or payload.get("message") or "success=false"
                    raise MalformedResponseError(self.provider, f"error envelope: {reason}")
                data = payload.get("data")
                if data is not None:
                    return data
            elif payload.get("error") and len(payload) <= 3:
                raise MalformedResponseError(self.provider, f"error payload: {payload.get('error')}")
        return payload

    def _find_list(self, payload: Any, keys: Iterable[str], nested: Iterable[str] = ()) -> List[Any]:
        """
        Locate the first list in ``payload``.

        Checks a bare array, then each key, then each key under ``nested``
        containers (e.g. ``result.images``).
        """
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            raise MalformedResponseError(self.provider, f"expected object or array, got {type(payload).__name__}")

        keys = list(keys)
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
        for container in nested:
            inner = payload.get(container)
            if isinstance(inner, dict):
                for key in keys:
                    value = inner.get(key)
                    if isinstance(value, list):
                        return value
        raise MalformedResponseError(
            self.provider,
            f"no list under {', '.join(keys)} (keys present: {', '.join(sorted(payload)) or 'none'})"
        )

    def _warn_malformed(self, operation: str, error: MalformedResponseError) -> None:
        self.logger.warning(f"⚠️ {self.name} {operation}: {error.reason}")

    def _is_sentinel(self, url: str) -> bool:
        lowered = url.lower()
        return any(marker in lowered for marker in self.sentinel_images)

    def _build_locations(self, raw_pages: List[Any]) -> List[ContentLocation]:
        """Turn raw page items into ContentLocations, dropping sentinels."""
        locations = []
        for item in raw_pages:
            url, headers = self._page_url(item)
            if not url:
                continue
            if self._is_sentinel(url):
                self.logger.debug(f"{self.name}: dropped placeholder image {url}")
                continue
            merged = self.image_headers()
            merged.update(headers or {})
            locations.append(ContentLocation(url=url, headers=merged, index=len(locations)))
        return locations

    def _page_url(self, item: Any):
        """Extract (url, headers) from a raw page item."""
        if isinstance(item, str):
            return item.strip(), None
        if isinstance(item, dict):
            url = first_present(item, "url", "img", "image", "src", default="")
            headers = item.get("headers")
            return str(url).strip(), headers if isinstance(headers, dict) else None
        return "", None

    def absolute_url(self, url: str) -> str:
        """Convert a provider-relative URL to absolute using the endpoint origin."""
        if not url:
            return ""
        if url.startswith(("http://", "https://")):
            return url
        if url.startswith("//"):
            return "https:" + url
        if url.startswith("/"):
            return self.endpoint.origin + url
        return self.endpoint.origin + "/" + url

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} provider='{self.provider.value}' primary='{self.endpoint.primary}'>"
