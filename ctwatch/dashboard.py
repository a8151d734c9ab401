"""Live view of the match feed: state, triggers and liveness signal."""

import logging
from concurrent.futures import Future
from dataclasses import dataclass

from .client import BackendClient
from .config import Config
from .liveness import LivenessListener, LivenessTracker
from .models import Liveness, MetricsSnapshot, PerformanceSnapshot
from .poller import Poller
from .projection import MatchRow, project_match
from .store import MatchFeedStore, MetricsCache
from .view import MatchView, MatchViewSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardState:
    """Everything the display layer needs for one render."""

    matches: MatchViewSnapshot
    metrics: MetricsSnapshot | None
    performance: PerformanceSnapshot | None
    liveness: Liveness | None


class Dashboard:
    """Owns the client view state and wires the caches to the poller.

    Example:
        dashboard = Dashboard(config)
        dashboard.on_liveness_change(lambda state: print(state.value))
        dashboard.start()
        dashboard.set_query("example")
        rows = dashboard.rows()
    """

    def __init__(self, config: Config, client: BackendClient | None = None) -> None:
        self._config = config
        self._client = client or BackendClient(config.backend)
        self.liveness = LivenessTracker()
        self.view = MatchView(
            page_size=config.view.page_size,
            time_window_minutes=config.view.time_window_minutes,
        )
        self.metrics = MetricsCache(
            self._client,
            self.liveness,
            performance_minutes=config.poller.performance_minutes,
            discard_stale=config.poller.discard_stale,
        )
        self.feed = MatchFeedStore(
            self._client,
            self.view,
            self.liveness,
            discard_stale=config.poller.discard_stale,
        )
        self.poller = Poller(config.poller, self.metrics, self.feed)

    def start(self) -> None:
        self.poller.start()

    def stop(self) -> None:
        self.poller.stop()

    def close(self) -> None:
        """Stop polling and release the HTTP session."""
        self.stop()
        self._client.close()

    def state(self) -> DashboardState:
        return DashboardState(
            matches=self.view.snapshot(),
            metrics=self.metrics.metrics,
            performance=self.metrics.performance,
            liveness=self.liveness.state,
        )

    def rows(self, state: DashboardState | None = None) -> list[MatchRow]:
        """Project the current page into display rows."""
        state = state or self.state()
        template = self._config.view.lookup_url_template
        return [project_match(match, template) for match in state.matches.page.items]

    @property
    def show_clear_control(self) -> bool:
        """Whether the clear-matches form should be offered."""
        metrics = self.metrics.metrics
        return metrics is not None and metrics.recent_matches > 0

    def refresh_now(self) -> Future:
        """Re-poll the match feed outside the regular schedule."""
        return self.poller.poll_matches()

    def refresh_once(self) -> DashboardState:
        """Poll all endpoints once, wait for them and return the resulting state."""
        self.poller.run_once()
        return self.state()

    def set_query(self, query: str) -> None:
        self.view.set_query(query)

    def set_priority(self, priority: str | None) -> None:
        self.view.set_priority(priority)

    def set_time_window(self, minutes: int) -> Future:
        """Change the trailing window and re-poll the match feed for it."""
        self.view.set_time_window(minutes)
        logger.debug("Time window set to %d minutes", minutes)
        return self.refresh_now()

    def next_page(self) -> bool:
        return self.view.next_page()

    def prev_page(self) -> bool:
        return self.view.prev_page()

    def on_liveness_change(self, listener: LivenessListener) -> None:
        self.liveness.subscribe(listener)
