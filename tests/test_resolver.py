import pytest

from sources.base import ContentLocation, Entry, Provider, SearchResult
from sources.cancellation import CancellationToken
from sources.errors import (
    AllProvidersExhaustedError, EmptyResultError, MalformedResponseError,
    ProviderUnavailableError, ResolutionCancelled, TransportError
)
from kamilist_resolver.resolver import (
    AttemptStatus, ResolutionOrchestrator, ResolutionPreferences
)

from conftest import FakeConnector, make_result, transport_error


A, B, C = Provider.KATANA, Provider.MANGAFIRE, Provider.MANGADEX


def make_orchestrator(**connectors):
    mapping = {connector.provider: connector for connector in connectors.values()}
    return ResolutionOrchestrator(mapping, provider_order=[A, B, C])


# =============================================================================
# PROVIDER FALLBACK
# =============================================================================

def test_auto_fallback_off_never_touches_other_providers():
    a = FakeConnector(A)
    b = FakeConnector(B, {"Berserk": transport_error(B)})
    c = FakeConnector(C)
    orchestrator = make_orchestrator(a=a, b=b, c=c)
    preferences = ResolutionPreferences(default_provider=B, auto_fallback_enabled=False)

    with pytest.raises(AllProvidersExhaustedError) as excinfo:
        orchestrator.resolve("Berserk", preferences)

    error = excinfo.value
    assert isinstance(error.last_error, TransportError)
    assert error.provider is B
    assert error.auto_fallback is False
    assert error.user_message.startswith("MangaFire is currently unavailable.")
    assert a.calls == []
    assert c.calls == []
    assert [attempt.status for attempt in error.attempts] == [AttemptStatus.TRANSPORT_ERROR]


def test_auto_fallback_stops_at_first_provider_with_results():
    a = FakeConnector(A)
    b = FakeConnector(B, {"Berserk": [make_result(B, "Berserk")]})
    c = FakeConnector(C, {"Berserk": [make_result(C, "Berserk")]})
    orchestrator = make_orchestrator(a=a, b=b, c=c)

    outcome = orchestrator.resolve("Berserk", ResolutionPreferences(auto_fallback_enabled=True))

    assert outcome.provider is B
    assert [r.title for r in outcome.results] == ["Berserk"]
    assert a.search_queries == ["Berserk"]
    assert c.calls == []
    assert [attempt.status for attempt in outcome.attempts] == [AttemptStatus.EMPTY, AttemptStatus.SUCCESS]


def test_auto_fallback_uses_configured_order_not_default_provider():
    a = FakeConnector(A, {"Berserk": [make_result(A, "Berserk")]})
    c = FakeConnector(C, {"Berserk": [make_result(C, "Berserk")]})
    orchestrator = make_orchestrator(a=a, c=c)

    outcome = orchestrator.resolve("Berserk", ResolutionPreferences(default_provider=C, auto_fallback_enabled=True))

    assert outcome.provider is A
    assert c.calls == []


def test_transport_error_moves_to_next_provider():
    a = FakeConnector(A, {"Berserk": transport_error(A)})
    b = FakeConnector(B, {"Berserk": [make_result(B, "Berserk")]})
    orchestrator = make_orchestrator(a=a, b=b)

    outcome = orchestrator.resolve("Berserk", ResolutionPreferences())

    assert outcome.provider is B
    assert outcome.attempts[0].status is AttemptStatus.TRANSPORT_ERROR
    # a transport failure ends that provider's variant loop
    assert a.search_queries == ["Berserk"]


def test_all_empty_reports_last_empty_result():
    a, b, c = FakeConnector(A), FakeConnector(B), FakeConnector(C)
    orchestrator = make_orchestrator(a=a, b=b, c=c)

    with pytest.raises(AllProvidersExhaustedError) as excinfo:
        orchestrator.resolve("Nothing Here", ResolutionPreferences())

    error = excinfo.value
    assert isinstance(error.last_error, EmptyResultError)
    assert error.last_error.provider is C
    assert error.user_message == "All manga sources are currently unavailable. Please try again later."
    assert [attempt.provider for attempt in error.attempts] == [A, B, C]


def test_unregistered_default_provider_fails_without_searching():
    a = FakeConnector(A)
    orchestrator = ResolutionOrchestrator({A: a})

    with pytest.raises(AllProvidersExhaustedError) as excinfo:
        orchestrator.resolve("Berserk", ResolutionPreferences(default_provider=C, auto_fallback_enabled=False))

    assert isinstance(excinfo.value.last_error, ProviderUnavailableError)
    assert excinfo.value.attempts[0].status is AttemptStatus.UNAVAILABLE
    assert a.calls == []


def test_blank_query_is_rejected():
    orchestrator = make_orchestrator(a=FakeConnector(A))

    with pytest.raises(ValueError):
        orchestrator.resolve("   ", ResolutionPreferences())


# =============================================================================
# QUERY VARIANTS
# =============================================================================

def test_variants_keyword_first_then_full_title():
    a = FakeConnector(A, {"Some Title: Subtitle Extra": [make_result(A, "Some Title")]})
    orchestrator = make_orchestrator(a=a)

    outcome = orchestrator.resolve("Some Title: Subtitle Extra", ResolutionPreferences())

    assert a.search_queries == ["Some", "Some Title: Subtitle Extra"]
    assert outcome.attempts[0].queries == ["Some", "Some Title: Subtitle Extra"]


def test_first_variant_with_results_short_circuits():
    a = FakeConnector(A, {
        "Frieren": [make_result(A, "Frieren")],
        "★Frieren★ - Beyond Journey's End": [make_result(A, "Other")],
    })
    orchestrator = make_orchestrator(a=a)

    orchestrator.resolve("★Frieren★ - Beyond Journey's End", ResolutionPreferences())

    assert a.search_queries == ["Frieren"]


def test_query_variants_are_deduplicated():
    assert ResolutionOrchestrator.query_variants("Berserk") == ["Berserk"]
    assert ResolutionOrchestrator.query_variants("★Berserk★") == ["Berserk", "★Berserk★"]
    assert ResolutionOrchestrator.query_variants("") == []


def test_japanese_query_adds_cross_script_variants():
    variants = ResolutionOrchestrator.query_variants("地雷なんですか？地原さん")

    assert variants[:2] == ["地雷なんですか?地原さん", "地雷なんですか？地原さん"]
    assert variants[2:5] == ["jirai", "landmine", "dangerous"]
    assert "chihara" in variants


def test_malformed_variant_is_treated_as_empty():
    a = FakeConnector(A, {
        "Some": MalformedResponseError(A, "no list under results"),
        "Some Title: Subtitle Extra": [make_result(A, "Some Title")],
    })
    orchestrator = make_orchestrator(a=a)

    outcome = orchestrator.resolve("Some Title: Subtitle Extra", ResolutionPreferences())

    assert outcome.provider is A
    assert a.search_queries == ["Some", "Some Title: Subtitle Extra"]


# =============================================================================
# RESULT FILTERING & RANKING
# =============================================================================

def test_results_without_id_or_title_are_dropped():
    a = FakeConnector(A, {"Berserk": [
        SearchResult(id="", title="Berserk", provider=A),
        SearchResult(id="x", title="", provider=A),
    ]})
    b = FakeConnector(B, {"Berserk": [
        SearchResult(id="", title="Berserk", provider=B),
        make_result(B, "Berserk of Gluttony"),
    ]})
    orchestrator = make_orchestrator(a=a, b=b)

    outcome = orchestrator.resolve("Berserk", ResolutionPreferences())

    assert outcome.provider is B
    assert [r.title for r in outcome.results] == ["Berserk of Gluttony"]


def test_results_sorted_by_relevance_with_stable_ties():
    a = FakeConnector(A, {"One Piece": [
        make_result(A, "Piece of Cake", "1"),
        make_result(A, "One Piece Party", "2"),
        make_result(A, "One Piece", "3"),
        make_result(A, "One Piece Film", "4"),
    ]})
    orchestrator = make_orchestrator(a=a)

    outcome = orchestrator.resolve("One Piece", ResolutionPreferences())

    assert [r.id for r in outcome.results] == ["3", "2", "4", "1"]


def test_outcome_to_dict_has_only_canonical_fields():
    a = FakeConnector(A, {"Berserk": [make_result(A, "Berserk")]})
    payload = make_orchestrator(a=a).resolve("Berserk", ResolutionPreferences()).to_dict()

    assert set(payload) == {"results", "provider"}
    assert payload["provider"] == "katana"
    assert not {"success", "data", "fromFallback"} & set(payload["results"][0])


# =============================================================================
# CANCELLATION
# =============================================================================

def test_cancelled_token_stops_before_first_provider():
    a = FakeConnector(A, {"Berserk": [make_result(A, "Berserk")]})
    token = CancellationToken()
    token.cancel()

    with pytest.raises(ResolutionCancelled):
        make_orchestrator(a=a).resolve("Berserk", ResolutionPreferences(), cancel_token=token)
    assert a.calls == []


def test_cancellation_mid_resolve_is_not_a_provider_failure():
    token = CancellationToken()

    class CancellingConnector(FakeConnector):
        def search(self, query, cancel_token=None):
            self.calls.append(("search", query))
            token.cancel()
            cancel_token.raise_if_cancelled()

    a = CancellingConnector(A)
    b = FakeConnector(B, {"Berserk": [make_result(B, "Berserk")]})
    orchestrator = make_orchestrator(a=a, b=b)

    with pytest.raises(ResolutionCancelled):
        orchestrator.resolve("Berserk", ResolutionPreferences(), cancel_token=token)
    assert b.calls == []


def test_cancellation_between_variants():
    token = CancellationToken()

    class CancelAfterFirst(FakeConnector):
        def search(self, query, cancel_token=None):
            self.calls.append(("search", query))
            token.cancel()
            return []

    a = CancelAfterFirst(A)
    orchestrator = make_orchestrator(a=a)

    with pytest.raises(ResolutionCancelled):
        orchestrator.resolve("Some Title: Subtitle Extra", ResolutionPreferences(), cancel_token=token)
    assert a.search_queries == ["Some"]


# =============================================================================
# DIRECT DISPATCH
# =============================================================================

def test_entries_and_locations_dispatch_to_recorded_provider():
    entry = Entry(id="slug/c1", number="1", title="Chapter 1", content_ref="slug/c1", provider=B)
    a = FakeConnector(A)
    b = FakeConnector(B, entries=[entry], locations=[ContentLocation(url="https://img.test/1.jpg")])
    c = FakeConnector(C)
    orchestrator = make_orchestrator(a=a, b=b, c=c)

    entries = orchestrator.list_entries("slug", B, cover_image="https://cover.test/slug.jpg", language="ja")
    locations = orchestrator.get_content_locations(entries[0].id, entries[0].provider)

    assert b.calls == [("list_entries", "slug", "ja"), ("get_content_locations", "slug/c1")]
    assert a.calls == [] and c.calls == []
    assert entries[0].thumbnail == "https://cover.test/slug.jpg"
    assert [loc.url for loc in locations] == ["https://img.test/1.jpg"]


def test_dispatch_accepts_provider_strings():
    b = FakeConnector(B)
    orchestrator = make_orchestrator(b=b)

    orchestrator.list_entries("slug", "MangaFire")

    assert b.calls == [("list_entries", "slug", "en")]


def test_dispatch_transport_error_propagates_without_fallback():
    a = FakeConnector(A, locations=transport_error(A))
    b = FakeConnector(B, locations=[ContentLocation(url="https://img.test/1.jpg")])
    orchestrator = make_orchestrator(a=a, b=b)

    with pytest.raises(TransportError):
        orchestrator.get_content_locations("slug/c1", A)
    assert b.calls == []


@pytest.mark.parametrize("provider", ["nope", Provider.MANGADEX, None])
def test_dispatch_to_unknown_provider(provider):
    orchestrator = make_orchestrator(a=FakeConnector(A))

    with pytest.raises(ProviderUnavailableError):
        orchestrator.list_entries("slug", provider)


def test_thumbnail_location_is_first_page():
    a = FakeConnector(A, locations=[ContentLocation(url="https://img.test/1.jpg"), ContentLocation(url="https://img.test/2.jpg", index=1)])
    empty = FakeConnector(B)
    orchestrator = make_orchestrator(a=a, b=empty)

    assert orchestrator.get_thumbnail_location("slug/c1", A).url == "https://img.test/1.jpg"
    assert orchestrator.get_thumbnail_location("slug/c1", B) is None


def test_provider_order_skips_unregistered_providers():
    orchestrator = ResolutionOrchestrator({C: FakeConnector(C), A: FakeConnector(A)})

    assert orchestrator.provider_order == [A, C]


def test_preferences_from_dict():
    base = ResolutionPreferences(default_provider=C, auto_fallback_enabled=False, preferred_language="es")

    prefs = ResolutionPreferences.from_dict({"defaultProvider": "mangafire", "autoFallbackEnabled": "true"}, base=base)

    assert prefs.default_provider is B
    assert prefs.auto_fallback_enabled is True
    assert prefs.preferred_language == "es"
    assert ResolutionPreferences.from_dict(None, base=base) == base
    with pytest.raises(ValueError):
        ResolutionPreferences.from_dict({"defaultProvider": "nope"})
