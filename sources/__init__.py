"""
================================================================================
Kamilist Resolver - Source Connectors
================================================================================
Provider connectors and the shared plumbing they sit on.

Connectors are plain objects: build them with build_connectors() (or one at
a time) and hand the mapping to the ResolutionOrchestrator. There is no
auto-discovery and no global registry instance.
================================================================================
"""

import logging
from typing import Dict, Mapping, Optional

import requests

from .base import (
    BaseConnector, Provider, SearchResult, Entry, ContentLocation, chapter_sort_key
)
from .cancellation import CancellationToken
from .errors import (
    ResolutionError, TransportError, MalformedResponseError, EmptyResultError,
    ProviderUnavailableError, ResolutionCancelled, AllProvidersExhaustedError
)
from .http_client import DEFAULT_USER_AGENT, Endpoint, MirroredClient, create_session
from .katana import KatanaConnector
from .mangadex import MangaDexConnector
from .mangafire import MangaFireConnector


CONNECTORS = {
    Provider.KATANA: KatanaConnector,
    Provider.MANGADEX: MangaDexConnector,
    Provider.MANGAFIRE: MangaFireConnector,
}


def build_connectors(
    session: Optional[requests.Session] = None,
    endpoints: Optional[Mapping[Provider, Endpoint]] = None,
    logger: Optional[logging.Logger] = None,
    user_agent: str = DEFAULT_USER_AGENT
) -> Dict[Provider, BaseConnector]:
    """
    Instantiate every known connector around one shared session.

    ``endpoints`` overrides the built-in primary/mirror URLs per provider.
    """
    session = session or create_session(user_agent)
    endpoints = endpoints or {}
    connectors = {}
    for provider, connector_cls in CONNECTORS.items():
        connectors[provider] = connector_cls(
            session=session,
            endpoint=endpoints.get(provider),
            logger=logger,
            user_agent=user_agent
        )
    return connectors


__all__ = [
    "BaseConnector", "Provider", "SearchResult", "Entry", "ContentLocation",
    "chapter_sort_key", "CancellationToken", "ResolutionError", "TransportError",
    "MalformedResponseError", "EmptyResultError", "ProviderUnavailableError",
    "ResolutionCancelled", "AllProvidersExhaustedError", "DEFAULT_USER_AGENT",
    "Endpoint", "MirroredClient", "create_session", "KatanaConnector",
    "MangaDexConnector", "MangaFireConnector", "CONNECTORS", "build_connectors",
]
