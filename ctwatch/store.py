"""Client-side caches fed by the poller.

Each cache owns one polled endpoint. Metrics caches keep their last good
value when a poll fails; the match feed store empties instead, so the
operator is never shown stale matches indefinitely.
"""

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from .client import BackendClient, PollError
from .liveness import LivenessTracker
from .models import MetricsSnapshot, PerformanceSnapshot
from .view import MatchView

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SequenceGate:
    """Orders responses of one endpoint by issue sequence.

    ``issue()`` stamps a request when it is sent. ``apply()`` runs the update
    for that request only if no newer request of the same endpoint has been
    applied already. The check and the update happen under one lock.

    With ``discard_stale=False`` every response is applied in arrival order.
    """

    def __init__(self, name: str, discard_stale: bool = True) -> None:
        self._name = name
        self._discard_stale = discard_stale
        self._issued = 0
        self._applied = 0
        self._lock = threading.Lock()

    def issue(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def apply(self, seq: int | None, update: Callable[[], T]) -> tuple[bool, T | None]:
        """Run ``update`` unless ``seq`` is older than the last applied response.

        Returns:
            Tuple of (applied, update result).
        """
        with self._lock:
            if seq is not None and self._discard_stale and seq < self._applied:
                logger.debug(
                    "Discarding stale %s response #%d (already applied #%d)", self._name, seq, self._applied
                )
                return False, None
            if seq is not None:
                self._applied = max(self._applied, seq)
            return True, update()


class MetricsCache:
    """Latest summary counters and performance sample."""

    def __init__(
        self,
        client: BackendClient,
        liveness: LivenessTracker,
        performance_minutes: int = 60,
        discard_stale: bool = True,
    ) -> None:
        self._client = client
        self._liveness = liveness
        self._performance_minutes = performance_minutes
        self._metrics: MetricsSnapshot | None = None
        self._performance: PerformanceSnapshot | None = None
        self.metrics_gate = SequenceGate("metrics", discard_stale)
        self.performance_gate = SequenceGate("performance", discard_stale)

    @property
    def metrics(self) -> MetricsSnapshot | None:
        return self._metrics

    @property
    def performance(self) -> PerformanceSnapshot | None:
        return self._performance

    def refresh_metrics(self, seq: int | None = None) -> MetricsSnapshot | None:
        """Poll /api/metrics and replace the cached snapshot.

        On failure the previous snapshot is kept and liveness goes Offline.

        Raises:
            PollError: If the poll failed.
        """
        try:
            metrics = self._client.get_metrics()
        except PollError:
            self.metrics_gate.apply(seq, self._liveness.record_failure)
            raise

        def _apply() -> None:
            self._metrics = metrics
            self._liveness.record_success()

        self.metrics_gate.apply(seq, _apply)
        return self._metrics

    def refresh_performance(self, seq: int | None = None) -> PerformanceSnapshot | None:
        """Poll /api/metrics/performance.

        A response without a current sample leaves the previous sample in place,
        and so does a failure. Performance polls never change liveness.

        Raises:
            PollError: If the poll failed.
        """
        sample = self._client.get_performance(self._performance_minutes)
        if sample is None:
            logger.debug("No current performance sample")
            return self._performance

        def _apply() -> None:
            self._performance = sample

        self.performance_gate.apply(seq, _apply)
        return self._performance


class MatchFeedStore:
    """Fetches recent matches into the shared match view."""

    def __init__(
        self,
        client: BackendClient,
        view: MatchView,
        liveness: LivenessTracker,
        discard_stale: bool = True,
    ) -> None:
        self._client = client
        self._view = view
        self._liveness = liveness
        self.gate = SequenceGate("matches", discard_stale)

    def refresh(self, window_minutes: int | None = None, seq: int | None = None) -> int:
        """Replace the canonical matches with those detected in the trailing window.

        Args:
            window_minutes: Trailing window to query; defaults to the view's current window.
            seq: Sequence number from ``gate.issue()``; None applies unconditionally.

        Returns:
            Number of matches in the response.

        Raises:
            PollError: If the poll failed. The canonical list is cleared and
                liveness goes Offline before the error propagates.
        """
        minutes = window_minutes if window_minutes is not None else self._view.time_window_minutes
        try:
            matches = self._client.get_recent_matches(minutes)
        except PollError:

            def _fail() -> None:
                self._view.clear_matches()
                self._liveness.record_failure()

            self.gate.apply(seq, _fail)
            raise

        def _apply() -> None:
            self._view.replace_matches(matches)
            self._liveness.record_success()

        self.gate.apply(seq, _apply)
        return len(matches)
