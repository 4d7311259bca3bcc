"""Cooperative cancellation for resolve calls."""

import threading

from .errors import ResolutionCancelled


class CancellationToken:
    """
    Cooperative cancellation token.

    Create one per caller interaction, pass it to ``resolve()`` /
    ``list_entries()`` / ``get_content_locations()`` and call ``cancel()``
    from any thread once the result is no longer wanted. The orchestrator
    checks it before every provider and query variant, and the HTTP client
    checks it before each request and again when the response arrives.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise ``ResolutionCancelled`` if cancellation was requested."""
        if self._event.is_set():
            raise ResolutionCancelled()
