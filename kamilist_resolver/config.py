"""
Resolver configuration.

Everything has a working default; environment variables override per
deployment (load a .env first, create_app() does this with python-dotenv):

    KATANA_API_URL / KATANA_MIRROR_URL / KATANA_TIMEOUT
    MANGADEX_API_URL / MANGADEX_MIRROR_URL / MANGADEX_TIMEOUT
    MANGAFIRE_API_URL / MANGAFIRE_MIRROR_URL / MANGAFIRE_TIMEOUT
    PROVIDER_ORDER            comma separated, e.g. "mangafire,katana"
    DEFAULT_PROVIDER          provider used when auto-fallback is off
    AUTO_FALLBACK_ENABLED     true/false
    PREFERRED_LANGUAGE        chapter language, default "en"
    RESOLVER_USER_AGENT
    RESOLVER_LOG_LEVEL / RESOLVER_LOG_FILE
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import requests

from sources import CONNECTORS, build_connectors, create_session
from sources.base import Provider
from sources.http_client import DEFAULT_USER_AGENT, Endpoint

from .resolver import DEFAULT_PROVIDER_ORDER, ResolutionOrchestrator, ResolutionPreferences


TRUTHY = ('1', 'true', 'yes', 'on')


def default_endpoints() -> Dict[Provider, Endpoint]:
    """Built-in primary/mirror pairs and timeouts, one per connector class."""
    return {
        provider: Endpoint(
            primary=connector_cls.base_url,
            mirror=connector_cls.mirror_url,
            timeout=connector_cls.request_timeout
        )
        for provider, connector_cls in CONNECTORS.items()
    }


@dataclass
class ResolverConfig:
    endpoints: Dict[Provider, Endpoint] = field(default_factory=default_endpoints)
    provider_order: List[Provider] = field(default_factory=lambda: list(DEFAULT_PROVIDER_ORDER))
    user_agent: str = DEFAULT_USER_AGENT
    default_preferences: ResolutionPreferences = field(default_factory=ResolutionPreferences)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ResolverConfig":
        """
        Read overrides from the environment.

        Raises ValueError for an unknown provider name or a non-numeric timeout.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        endpoints = {}
        for provider, endpoint in defaults.endpoints.items():
            prefix = provider.value.upper()
            timeout = env.get(f"{prefix}_TIMEOUT")
            try:
                timeout_value = float(timeout) if timeout else endpoint.timeout
            except ValueError:
                raise ValueError(f"{prefix}_TIMEOUT must be a number of seconds, got {timeout!r}") from None
            endpoints[provider] = Endpoint(
                primary=env.get(f"{prefix}_API_URL") or endpoint.primary,
                mirror=env.get(f"{prefix}_MIRROR_URL") or endpoint.mirror,
                timeout=timeout_value
            )

        order = defaults.provider_order
        raw_order = env.get("PROVIDER_ORDER")
        if raw_order:
            order = [Provider.parse(name) for name in raw_order.split(",") if name.strip()]

        base_prefs = defaults.default_preferences
        auto = env.get("AUTO_FALLBACK_ENABLED")
        preferences = ResolutionPreferences(
            default_provider=Provider.parse(env["DEFAULT_PROVIDER"]) if env.get("DEFAULT_PROVIDER") else base_prefs.default_provider,
            auto_fallback_enabled=auto.lower() in TRUTHY if auto else base_prefs.auto_fallback_enabled,
            preferred_language=env.get("PREFERRED_LANGUAGE") or base_prefs.preferred_language
        )

        return cls(
            endpoints=endpoints,
            provider_order=order,
            user_agent=env.get("RESOLVER_USER_AGENT") or defaults.user_agent,
            default_preferences=preferences,
            log_level=env.get("RESOLVER_LOG_LEVEL") or defaults.log_level,
            log_file=env.get("RESOLVER_LOG_FILE") or None
        )


def build_orchestrator(
    config: Optional[ResolverConfig] = None,
    session: Optional[requests.Session] = None,
    logger: Optional[logging.Logger] = None
) -> ResolutionOrchestrator:
    """Wire connectors and orchestrator from ``config``."""
    config = config or ResolverConfig()
    session = session or create_session(config.user_agent)
    connectors = build_connectors(
        session=session,
        endpoints=config.endpoints,
        logger=logger.getChild("sources") if logger else None,
        user_agent=config.user_agent
    )
    return ResolutionOrchestrator(connectors, provider_order=config.provider_order, logger=logger)
