import requests
import pytest

from sources.base import SearchResult
from sources.errors import TransportError
from sources.http_client import Endpoint


NO_JSON = object()


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if self._payload is NO_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """
    Stand-in for requests.Session keyed by full URL (query params excluded).

    A route may be a FakeResponse, an exception instance to raise, or a
    callable ``(url, params) -> FakeResponse``. Unknown URLs answer 404.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        handler = self.routes.get(url)
        if handler is None:
            return FakeResponse({"error": "not found"}, status_code=404)
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(url, params)
        return handler

    @property
    def urls(self):
        return [call["url"] for call in self.calls]


class FakeConnector:
    """
    Hand-written connector double.

    ``search_results`` maps a query to a list of SearchResults or an exception;
    unmapped queries return []. Every call is recorded.
    """

    def __init__(self, provider, search_results=None, entries=None, locations=None, name=None):
        self.provider = provider
        self.name = name or provider.value
        self.endpoint = Endpoint(f"https://{provider.value}.test")
        self.search_results = dict(search_results or {})
        self.entries = entries or []
        self.locations = locations or []
        self.calls = []

    def search(self, query, cancel_token=None):
        self.calls.append(("search", query))
        outcome = self.search_results.get(query, [])
        if isinstance(outcome, BaseException):
            raise outcome
        return list(outcome)

    def list_entries(self, content_id, language="en", cancel_token=None):
        self.calls.append(("list_entries", content_id, language))
        if isinstance(self.entries, BaseException):
            raise self.entries
        return list(self.entries)

    def get_content_locations(self, entry_id, cancel_token=None):
        self.calls.append(("get_content_locations", entry_id))
        if isinstance(self.locations, BaseException):
            raise self.locations
        return list(self.locations)

    def get_details(self, content_id, cancel_token=None):
        self.calls.append(("get_details", content_id))
        return None

    @property
    def search_queries(self):
        return [call[1] for call in self.calls if call[0] == "search"]


def make_result(provider, title, result_id=None):
    return SearchResult(id=result_id or title.lower().replace(" ", "-"), title=title, provider=provider)


def transport_error(provider, url="https://example.invalid/search"):
    return TransportError(provider, url, "HTTP 503", status_code=503)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def timeout_error():
    return requests.Timeout("read timed out")
