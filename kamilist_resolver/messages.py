"""User-facing failure messages keyed by (provider, auto-fallback)."""

from typing import Any, Optional

from sources.base import Provider


AUTO_SELECT_HINT = "Please try enabling 'Auto-Select Best Source' or choose a different provider."

PROVIDER_UNAVAILABLE = {
    Provider.KATANA: "Katana is currently unavailable.",
    Provider.MANGADEX: "MangaDex is currently unavailable due to DMCA restrictions.",
    Provider.MANGAFIRE: "MangaFire is currently unavailable.",
}

GENERIC_UNAVAILABLE = "The selected provider is currently unavailable."
ALL_UNAVAILABLE = "All manga sources are currently unavailable. Please try again later."


def describe_failure(provider: Optional[Any], auto_fallback_enabled: bool) -> str:
    """
    Message to show when resolve() failed.

    With auto-fallback on every source was tried, so the message is the same
    whatever the default provider was.
    """
    if auto_fallback_enabled:
        return ALL_UNAVAILABLE

    try:
        known = Provider.parse(provider) if provider is not None else None
    except ValueError:
        known = None
    return f"{PROVIDER_UNAVAILABLE.get(known, GENERIC_UNAVAILABLE)} {AUTO_SELECT_HINT}"
