"""
HTTP plumbing shared by all connectors.

Every provider has a primary base URL and optionally a mirror. A request that
times out, fails to connect, returns a non-2xx status or a body that is not
JSON is retried exactly once against the mirror before a TransportError is
raised. There is no backoff and no retry of the same endpoint.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter

from .cancellation import CancellationToken
from .errors import TransportError


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class Endpoint:
    """Primary/mirror base URL pair plus the per-request timeout (seconds)."""
    primary: str
    mirror: Optional[str] = None
    timeout: float = 12.0

    def bases(self) -> List[Tuple[str, str]]:
        pairs = [("primary", self.primary)]
        if self.mirror and self.mirror != self.primary:
            pairs.append(("mirror", self.mirror))
        return pairs

    @property
    def origin(self) -> str:
        """Scheme and host of the primary URL."""
        parsed = urlparse(self.primary)
        return f"{parsed.scheme}://{parsed.netloc}"


def create_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    """Create a pooled requests session shared by all connectors."""
    session = requests.Session()
    session.headers.update({
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
        "User-Agent": user_agent
    })

    # Retries are handled by the mirror/provider fallback layers
    adapter = HTTPAdapter(pool_connections=10, pool_maxsize=20, max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class MirroredClient:
    """
    JSON GET client bound to one provider's primary/mirror endpoint pair.

    Usage:
        client = MirroredClient(Provider.KATANA, Endpoint(primary, mirror, 15))
        payload = client.get_json("/series/one-piece")
    """

    def __init__(
        self,
        provider: Any,
        endpoint: Endpoint,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.provider = provider
        self.endpoint = endpoint
        self.session = session or create_session()
        self.headers = dict(headers or {})
        self.logger = logger or logging.getLogger(__name__)

    def get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> Any:
        """
        GET ``path`` from the primary, falling back to the mirror.

        Raises:
            TransportError: both endpoints failed (or the only one did)
            ResolutionCancelled: the token was cancelled before or during the call
        """
        last_error: Optional[TransportError] = None

        for label, base in self.endpoint.bases():
            if cancel_token:
                cancel_token.raise_if_cancelled()
            try:
                payload = self._fetch(base, path, params)
            except TransportError as exc:
                last_error = exc
                self.logger.warning(f"⚠️ {self._name} {label} endpoint failed: {exc.reason}")
                continue

            if cancel_token:
                cancel_token.raise_if_cancelled()
            if label == "mirror":
                self.logger.info(f"🔁 {self._name} served by mirror for {path}")
            return payload

        raise last_error

    def _fetch(self, base: str, path: str, params: Optional[Dict[str, Any]]) -> Any:
        url = base.rstrip("/") + path
        try:
            response = self.session.get(
                url,
                params=params,
                headers=self.headers,
                timeout=self.endpoint.timeout
            )
        except requests.Timeout as exc:
            raise TransportError(self.provider, url, f"timed out after {self.endpoint.timeout}s") from exc
        except requests.RequestException as exc:
            raise TransportError(self.provider, url, str(exc) or exc.__class__.__name__) from exc

        status = response.status_code
        if not 200 <= status < 300:
            raise TransportError(self.provider, url, f"HTTP {status}", status_code=status)

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(self.provider, url, "response body is not JSON", status_code=status) from exc

    @property
    def _name(self) -> str:
        return getattr(self.provider, "value", None) or str(self.provider)
