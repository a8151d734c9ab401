"""Online/offline tracking derived from poll outcomes."""

import logging
import threading
from collections.abc import Callable

from .models import Liveness

logger = logging.getLogger(__name__)

LivenessListener = Callable[[Liveness], None]


class LivenessTracker:
    """Two-state liveness flag flipped by the latest metrics or match poll.

    There is no debounce: every recorded outcome wins immediately. Before the
    first outcome the state is None and no badge should be shown.
    """

    def __init__(self) -> None:
        self._state: Liveness | None = None
        self._listeners: list[LivenessListener] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> Liveness | None:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state is Liveness.ONLINE

    def subscribe(self, listener: LivenessListener) -> None:
        """Register a callback invoked whenever the state changes."""
        with self._lock:
            self._listeners.append(listener)

    def record_success(self) -> None:
        self._record(Liveness.ONLINE)

    def record_failure(self) -> None:
        self._record(Liveness.OFFLINE)

    def _record(self, new_state: Liveness) -> None:
        with self._lock:
            previous = self._state
            self._state = new_state
            listeners = list(self._listeners) if previous is not new_state else []

        if previous is not new_state:
            logger.info("Backend is %s", new_state.value.upper())

        for listener in listeners:
            try:
                listener(new_state)
            except Exception as e:
                logger.error("Liveness listener failed: %s", e)
