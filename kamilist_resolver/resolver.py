"""
================================================================================
Kamilist Resolver - Resolution Orchestrator
================================================================================
Coordinates search across providers and dispatches follow-up calls.

HOW FALLBACK WORKS:
  1. Caller asks resolve(query, preferences)
  2. Candidates = configured order (auto-fallback on) or just the default
  3. For each candidate, try query variants: keyword, normalized, raw,
     then cross-script equivalents for Japanese queries
  4. First variant with well-formed results wins for that provider;
     results are ranked by relevance and returned with the provider
  5. Empty or transport-failed providers are recorded and the next one
     is tried, unless auto-fallback is off
  6. Nothing found anywhere -> AllProvidersExhaustedError

Two independent fallback layers exist: primary/mirror inside each
connector's HTTP client, and provider-to-provider here. Neither retries
the same endpoint, and there is no backoff.

list_entries() / get_content_locations() never fall back: the provider that
produced a SearchResult or Entry is the only one that can interpret its id.
================================================================================
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sources.base import BaseConnector, ContentLocation, Entry, Provider, SearchResult
from sources.cancellation import CancellationToken
from sources.errors import (
    AllProvidersExhaustedError, EmptyResultError, MalformedResponseError,
    ProviderUnavailableError, ResolutionError, TransportError
)

from .log import log_event
from .messages import describe_failure
from .search import cross_script_variants, extract_keyword, normalize, score


DEFAULT_PROVIDER_ORDER = (Provider.KATANA, Provider.MANGAFIRE, Provider.MANGADEX)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ResolutionPreferences:
    """Caller-supplied, read-only resolve() settings."""
    default_provider: Provider = Provider.KATANA
    auto_fallback_enabled: bool = True
    preferred_language: str = "en"

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], base: Optional["ResolutionPreferences"] = None) -> "ResolutionPreferences":
        """
        Build from an API payload (camelCase keys), filling gaps from ``base``.

        Raises ValueError for an unknown provider.
        """
        base = base or cls()
        data = data or {}
        provider = data.get("defaultProvider")
        auto = data.get("autoFallbackEnabled")
        language = data.get("preferredLanguage")
        if isinstance(auto, str):
            auto = auto.strip().lower() in ("1", "true", "yes", "on")
        return cls(
            default_provider=Provider.parse(provider) if provider else base.default_provider,
            auto_fallback_enabled=bool(auto) if auto is not None else base.auto_fallback_enabled,
            preferred_language=str(language) if language else base.preferred_language
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "defaultProvider": self.default_provider.value,
            "autoFallbackEnabled": self.auto_fallback_enabled,
            "preferredLanguage": self.preferred_language
        }


class AttemptStatus(str, Enum):
    """How one provider's attempt inside resolve() ended."""
    SUCCESS = "success"
    EMPTY = "empty"                    # Answered, nothing usable (or malformed)
    TRANSPORT_ERROR = "transport_error"
    UNAVAILABLE = "unavailable"        # No connector registered


@dataclass
class ProviderAttempt:
    provider: Provider
    status: AttemptStatus
    queries: List[str] = field(default_factory=list)
    result_count: int = 0
    error: Optional[ResolutionError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "status": self.status.value,
            "queries": list(self.queries),
            "resultCount": self.result_count,
            "error": str(self.error) if self.error else None
        }


@dataclass
class FallbackOutcome:
    """Successful resolve(): ranked results plus the provider that produced them."""
    results: List[SearchResult]
    provider: Provider
    attempts: List[ProviderAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "provider": self.provider.value
        }


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class ResolutionOrchestrator:
    """
    Provider-level fallback chain over a set of connectors.

    Usage:
        orchestrator = ResolutionOrchestrator(build_connectors())
        outcome = orchestrator.resolve("Oshi no Ko", ResolutionPreferences())
        entries = orchestrator.list_entries(outcome.results[0].id, outcome.provider)

    Holds no per-call state; concurrent resolve() calls are independent.
    """

    def __init__(
        self,
        connectors: Mapping[Provider, BaseConnector],
        provider_order: Optional[Sequence[Provider]] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.connectors: Dict[Provider, BaseConnector] = {
            Provider.parse(provider): connector for provider, connector in connectors.items()
        }
        order = [Provider.parse(p) for p in (provider_order or DEFAULT_PROVIDER_ORDER)]
        self.provider_order: List[Provider] = []
        for provider in order:
            if provider in self.connectors and provider not in self.provider_order:
                self.provider_order.append(provider)
        self.logger = logger or logging.getLogger(__name__)

    # =========================================================================
    # PLANNING
    # =========================================================================

    def candidate_providers(self, preferences: ResolutionPreferences) -> List[Provider]:
        if preferences.auto_fallback_enabled:
            return list(self.provider_order)
        return [preferences.default_provider]

    @staticmethod
    def query_variants(query: str) -> List[str]:
        """Keyword, normalized, raw, then cross-script equivalents. No blanks, no repeats."""
        variants: List[str] = []
        for variant in [extract_keyword(query), normalize(query), query] + cross_script_variants(query):
            if variant and variant.strip() and variant not in variants:
                variants.append(variant)
        return variants

    @staticmethod
    def rank(query: str, results: List[SearchResult]) -> List[SearchResult]:
        """Sort by relevance to the raw query; ties keep provider order."""
        return sorted(results, key=lambda result: score(query, result.title), reverse=True)

    # =========================================================================
    # RESOLVE
    # =========================================================================

    def resolve(
        self,
        query: str,
        preferences: Optional[ResolutionPreferences] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> FallbackOutcome:
        """
        Search providers until one returns well-formed results.

        Raises:
            ValueError: blank query
            AllProvidersExhaustedError: every candidate failed or was empty
            ResolutionCancelled: the token was cancelled
        """
        preferences = preferences or ResolutionPreferences()
        variants = self.query_variants(query or "")
        if not variants:
            raise ValueError("Search query must not be empty")

        candidates = self.candidate_providers(preferences)
        self.logger.info(
            f"🔍 Resolving {query!r} (auto-fallback {'on' if preferences.auto_fallback_enabled else 'off'}): "
            f"{', '.join(p.value for p in candidates)}"
        )

        attempts: List[ProviderAttempt] = []
        last_error: Optional[ResolutionError] = None

        for provider in candidates:
            if cancel_token:
                cancel_token.raise_if_cancelled()

            attempt, results = self._attempt_provider(provider, variants, cancel_token)
            attempts.append(attempt)
            log_event(self.logger, "resolve.attempt", query=query, **attempt.to_dict())

            if attempt.status is AttemptStatus.SUCCESS:
                ranked = self.rank(query, results)
                self.logger.info(f"✅ {provider.value}: {len(ranked)} results for {query!r}")
                return FallbackOutcome(results=ranked, provider=provider, attempts=attempts)

            last_error = attempt.error
            if not preferences.auto_fallback_enabled:
                break

        failed_provider = attempts[-1].provider if attempts else preferences.default_provider
        message = str(last_error) if last_error else "All providers failed"
        self.logger.warning(f"❌ No provider could resolve {query!r}: {message}")
        raise AllProvidersExhaustedError(
            message,
            last_error=last_error,
            attempts=attempts,
            provider=failed_provider,
            auto_fallback=preferences.auto_fallback_enabled,
            user_message=describe_failure(preferences.default_provider, preferences.auto_fallback_enabled)
        )

    def _attempt_provider(
        self,
        provider: Provider,
        variants: List[str],
        cancel_token: Optional[CancellationToken]
    ) -> Tuple[ProviderAttempt, List[SearchResult]]:
        connector = self.connectors.get(provider)
        if connector is None:
            error = ProviderUnavailableError(provider)
            self.logger.warning(f"⚠️ {error}")
            return ProviderAttempt(provider, AttemptStatus.UNAVAILABLE, error=error), []

        tried: List[str] = []
        for variant in variants:
            if cancel_token:
                cancel_token.raise_if_cancelled()
            tried.append(variant)

            try:
                raw_results = connector.search(variant, cancel_token=cancel_token)
            except TransportError as e:
                self.logger.warning(f"⚠️ {connector.name} failed: {e}")
                return ProviderAttempt(provider, AttemptStatus.TRANSPORT_ERROR, tried, error=e), []
            except MalformedResponseError as e:
                self.logger.warning(f"⚠️ {connector.name} returned an unrecognized body for {variant!r}: {e.reason}")
                continue

            results = [result for result in raw_results if result.is_well_formed]
            if len(results) < len(raw_results):
                self.logger.debug(f"{connector.name}: dropped {len(raw_results) - len(results)} results without id/title")
            if results:
                return ProviderAttempt(provider, AttemptStatus.SUCCESS, tried, len(results)), results

        return ProviderAttempt(provider, AttemptStatus.EMPTY, tried, error=EmptyResultError(provider, tried)), []

    # =========================================================================
    # DIRECT DISPATCH
    # =========================================================================

    def connector_for(self, provider: Any) -> BaseConnector:
        """Connector registered for ``provider``; ProviderUnavailableError otherwise."""
        try:
            key = Provider.parse(provider)
        except ValueError:
            raise ProviderUnavailableError(provider) from None
        connector = self.connectors.get(key)
        if connector is None:
            raise ProviderUnavailableError(key)
        return connector

    def list_entries(
        self,
        content_id: str,
        provider: Any,
        cover_image: Optional[str] = None,
        language: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[Entry]:
        """Chapters for ``content_id`` from the provider that produced it."""
        connector = self.connector_for(provider)
        if cancel_token:
            cancel_token.raise_if_cancelled()

        entries = connector.list_entries(content_id, language=language or "en", cancel_token=cancel_token)
        if cover_image:
            for entry in entries:
                entry.thumbnail = cover_image
        log_event(self.logger, "entries", provider=connector.provider.value, content_id=content_id, count=len(entries))
        return entries

    def get_content_locations(
        self,
        entry_id: str,
        provider: Any,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[ContentLocation]:
        """Page URLs for ``entry_id`` from the provider that produced it."""
        connector = self.connector_for(provider)
        if cancel_token:
            cancel_token.raise_if_cancelled()

        locations = connector.get_content_locations(entry_id, cancel_token=cancel_token)
        log_event(self.logger, "locations", provider=connector.provider.value, entry_id=entry_id, count=len(locations))
        return locations

    def get_details(
        self,
        content_id: str,
        provider: Any,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[SearchResult]:
        connector = self.connector_for(provider)
        if cancel_token:
            cancel_token.raise_if_cancelled()
        return connector.get_details(content_id, cancel_token=cancel_token)

    def get_thumbnail_location(
        self,
        entry_id: str,
        provider: Any,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[ContentLocation]:
        """First page of a chapter, for previews."""
        locations = self.get_content_locations(entry_id, provider, cancel_token=cancel_token)
        return locations[0] if locations else None
