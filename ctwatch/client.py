"""HTTP client for the match feed backend API."""

import logging
from typing import Any

import requests

from .config import BackendConfig
from .models import (
    Match,
    MetricsSnapshot,
    PayloadError,
    PerformanceSnapshot,
    parse_matches,
    parse_metrics,
    parse_performance,
)

logger = logging.getLogger(__name__)

METRICS_PATH = "/api/metrics"
PERFORMANCE_PATH = "/api/metrics/performance"
RECENT_MATCHES_PATH = "/api/matches/recent"


class PollError(Exception):
    """Base class for recoverable poll failures."""

    pass


class TransportFailure(PollError):
    """Raised when the backend cannot be reached or the request times out."""

    pass


class HttpFailure(PollError):
    """Raised when the backend answers with a non-success status."""

    def __init__(self, status_code: int, reason: str | None = None) -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}")


class ParseFailure(PollError):
    """Raised when a response body is not valid JSON or has the wrong shape."""

    pass


class BackendClient:
    """Read-only client for the three polled endpoints.

    Example:
        client = BackendClient(BackendConfig(base_url="http://localhost:8080"))
        metrics = client.get_metrics()
    """

    def __init__(self, config: BackendConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": config.user_agent, "Accept": "application/json"})

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a path and decode its JSON body.

        Raises:
            TransportFailure: On connection errors and timeouts.
            HttpFailure: On a non-2xx status.
            ParseFailure: If the body is not JSON.
        """
        url = f"{self._base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self._config.timeout)
        except requests.Timeout as e:
            raise TransportFailure(f"Request to {path} timed out after {self._config.timeout}s") from e
        except requests.RequestException as e:
            raise TransportFailure(f"Request to {path} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise HttpFailure(response.status_code, response.reason)

        try:
            return response.json()
        except ValueError as e:
            raise ParseFailure(f"Invalid JSON from {path}: {e}") from e

    def get_metrics(self) -> MetricsSnapshot:
        """Fetch summary counters."""
        payload = self._get_json(METRICS_PATH)
        try:
            return parse_metrics(payload)
        except PayloadError as e:
            raise ParseFailure(f"Malformed metrics payload: {e}") from e

    def get_performance(self, minutes: int) -> PerformanceSnapshot | None:
        """Fetch the current performance sample, or None if there is none."""
        payload = self._get_json(PERFORMANCE_PATH, params={"minutes": minutes})
        try:
            return parse_performance(payload)
        except PayloadError as e:
            raise ParseFailure(f"Malformed performance payload: {e}") from e

    def get_recent_matches(self, minutes: int) -> list[Match]:
        """Fetch matches detected within the trailing ``minutes``, in response order."""
        payload = self._get_json(RECENT_MATCHES_PATH, params={"minutes": minutes})
        try:
            matches = parse_matches(payload)
        except PayloadError as e:
            raise ParseFailure(f"Malformed matches payload: {e}") from e
        logger.debug("Fetched %d matches for %d minute window", len(matches), minutes)
        return matches
