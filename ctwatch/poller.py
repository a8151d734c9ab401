"""Periodic polling of the backend endpoints."""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Event, Thread

from .client import PollError
from .config import PollerConfig
from .store import MatchFeedStore, MetricsCache, SequenceGate

logger = logging.getLogger(__name__)


class Poller:
    """Background scheduler that polls metrics, performance and matches.

    Every round submits the three polls, each to its endpoint's own worker
    pool, and returns without waiting for them. A slow request never delays
    the next round or another endpoint, and overlapping requests are neither
    cancelled nor coalesced. Which of two overlapping responses wins is
    decided by each endpoint's SequenceGate.

    Example:
        poller = Poller(config.poller, metrics_cache, feed_store)
        poller.start()
        # ... later ...
        poller.stop()
    """

    def __init__(self, config: PollerConfig, metrics: MetricsCache, feed: MatchFeedStore) -> None:
        self._config = config
        self._metrics = metrics
        self._feed = feed
        self._stop_event = Event()
        self._thread: Thread | None = None
        self._executors: dict[str, ThreadPoolExecutor] = {}
        self._lock = threading.Lock()
        self._round_count = 0

    @property
    def round_count(self) -> int:
        return self._round_count

    def start(self) -> None:
        """Start polling in a background thread. The first round runs immediately."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Poller already running")
            return

        self._stop_event.clear()
        self._thread = Thread(target=self._run_loop, daemon=True, name="poll-loop")
        self._thread.start()
        logger.info("Poller started (interval: %dms)", self._config.interval_ms)

    def stop(self, timeout: float = 10.0) -> None:
        """Stop scheduling new rounds and abandon requests still in flight.

        Args:
            timeout: Maximum seconds to wait for the loop to stop.
        """
        if self._thread is not None and self._thread.is_alive():
            logger.info("Stopping poller...")
            self._stop_event.set()
            self._thread.join(timeout=timeout)

            if self._thread.is_alive():
                logger.warning("Poller thread did not stop within timeout")
            else:
                logger.info("Poller stopped")

        with self._lock:
            executors = list(self._executors.values())
            self._executors.clear()
        for executor in executors:
            executor.shutdown(wait=False, cancel_futures=True)

    def is_running(self) -> bool:
        """Check if the poll loop is currently running."""
        return self._thread is not None and self._thread.is_alive()

    def poll_round(self) -> list[Future]:
        """Submit one poll of each endpoint without waiting for the results."""
        with self._lock:
            self._round_count += 1
        return [
            self.poll_metrics(),
            self.poll_matches(),
            self.poll_performance(),
        ]

    def poll_metrics(self) -> Future:
        return self._submit("metrics", self._metrics.metrics_gate, self._metrics.refresh_metrics)

    def poll_performance(self) -> Future:
        return self._submit("performance", self._metrics.performance_gate, self._metrics.refresh_performance)

    def poll_matches(self) -> Future:
        return self._submit("matches", self._feed.gate, lambda seq: self._feed.refresh(seq=seq))

    def run_once(self) -> None:
        """Poll every endpoint and block until all three have finished."""
        for future in self.poll_round():
            future.result()

    def _get_executor(self, name: str) -> ThreadPoolExecutor:
        # One pool per endpoint: a hung endpoint only queues its own polls.
        with self._lock:
            executor = self._executors.get(name)
            if executor is None:
                executor = ThreadPoolExecutor(
                    max_workers=self._config.max_workers,
                    thread_name_prefix=f"poll-{name}",
                )
                self._executors[name] = executor
            return executor

    def _submit(self, name: str, gate: SequenceGate, poll: Callable[[int], object]) -> Future:
        # Stamp at submission so the sequence reflects issue order, not start order.
        seq = gate.issue()
        return self._get_executor(name).submit(self._run_poll, name, seq, poll)

    def _run_poll(self, name: str, seq: int, poll: Callable[[int], object]) -> None:
        """Run one poll, logging failures instead of raising them."""
        try:
            poll(seq)
            logger.debug("%s poll #%d applied", name, seq)
        except PollError as e:
            logger.warning("%s poll #%d failed: %s", name, seq, e)
        except Exception as e:
            logger.error("%s poll #%d raised unexpected error: %s", name, seq, e)

    def _run_loop(self) -> None:
        """Main poll loop - runs in background thread."""
        logger.debug("Poll loop started")

        while not self._stop_event.is_set():
            try:
                self.poll_round()
            except RuntimeError as e:
                # Executor was shut down by stop() between the check and the submit.
                logger.debug("Poll round not submitted: %s", e)
                break

            # Use wait() so we can be interrupted by stop_event
            self._stop_event.wait(timeout=self._config.interval_seconds)

        logger.debug("Poll loop exited")
