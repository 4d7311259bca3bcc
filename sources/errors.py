"""
Typed errors raised by source connectors and the resolution orchestrator.

The orchestrator branches on these classes instead of inspecting exception
messages:

  TransportError             -> endpoint unreachable, timed out, non-2xx or
                                non-JSON body (after the mirror was tried)
  MalformedResponseError     -> JSON arrived but matches no known shape
  EmptyResultError           -> well-formed response with nothing in it
  AllProvidersExhaustedError -> every candidate provider failed
"""

from typing import List, Optional, Sequence, Any


class ResolutionError(Exception):
    """Base class for everything the resolution core raises on purpose."""

    def __init__(self, message: str, provider: Optional[Any] = None):
        self.provider = provider
        super().__init__(message)


class TransportError(ResolutionError):
    """Network failure, timeout, non-2xx status or unparseable body."""

    def __init__(
        self,
        provider: Any,
        url: str,
        reason: str,
        status_code: Optional[int] = None
    ):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{_label(provider)} request to {url} failed: {reason}", provider)


class MalformedResponseError(ResolutionError):
    """Response body does not match any recognized shape."""

    def __init__(self, provider: Any, reason: str):
        self.reason = reason
        super().__init__(f"{_label(provider)} returned an unrecognized response: {reason}", provider)


class EmptyResultError(ResolutionError):
    """Provider answered properly but had nothing for any query variant."""

    def __init__(self, provider: Any, queries: Sequence[str]):
        self.queries = list(queries)
        super().__init__(
            f"No results found on {_label(provider)} for {', '.join(repr(q) for q in self.queries)}",
            provider
        )


class ProviderUnavailableError(ResolutionError):
    """No connector is registered for the requested provider."""

    def __init__(self, provider: Any):
        super().__init__(f"Provider '{_label(provider)}' is not configured", provider)


class ResolutionCancelled(ResolutionError):
    """Caller abandoned the operation through its CancellationToken."""

    def __init__(self, message: str = "Resolution was cancelled"):
        super().__init__(message)


class AllProvidersExhaustedError(ResolutionError):
    """Every candidate provider failed or returned nothing."""

    def __init__(
        self,
        message: str,
        last_error: Optional[ResolutionError] = None,
        attempts: Optional[List[Any]] = None,
        provider: Optional[Any] = None,
        auto_fallback: bool = True,
        user_message: str = ""
    ):
        self.last_error = last_error
        self.attempts = attempts or []
        self.auto_fallback = auto_fallback
        self.user_message = user_message or message
        super().__init__(message, provider)


def _label(provider: Any) -> str:
    return getattr(provider, "value", None) or str(provider)
