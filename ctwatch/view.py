"""Filtering, pagination and the client-held match view.

The canonical match list is only ever replaced as a whole. Everything the
table shows (the filtered list and the current page) is recomputed from it on
demand, so a derived view can never drift from the data it came from.
"""

import threading
from collections.abc import Sequence
from dataclasses import dataclass

from .models import Match

DEFAULT_PAGE_SIZE = 20


def sort_newest_first(matches: Sequence[Match]) -> list[Match]:
    """Sort matches by detection time, newest first.

    Python's sort is stable, so matches with equal timestamps keep the order
    the backend returned them in.
    """
    return sorted(matches, key=lambda m: m.detected_at, reverse=True)


def filter_matches(matches: Sequence[Match], query: str = "", priority: str | None = None) -> list[Match]:
    """Return the matches that satisfy both the text query and the priority selector.

    Args:
        matches: Canonical matches, already in display order.
        query: Case-insensitive substring searched in every DNS name. Empty matches all.
        priority: Exact, case-sensitive priority to keep. None or empty matches all.

    Returns:
        A new list holding the same Match objects, in their original relative order.
    """
    needle = query.casefold()
    return [
        match
        for match in matches
        if (not needle or any(needle in name.casefold() for name in match.dns_names))
        and (not priority or match.priority == priority)
    ]


@dataclass(frozen=True)
class Page:
    """One window of the filtered matches.

    Attributes:
        items: Matches on this page.
        index: Zero-based page index.
        size: Page size used for slicing.
        total: Number of filtered matches across all pages.
        has_prev: Whether a previous page exists.
        has_next: Whether a following page exists.
    """

    items: tuple[Match, ...]
    index: int
    size: int
    total: int
    has_prev: bool
    has_next: bool

    @property
    def page_count(self) -> int:
        return max(1, -(-self.total // self.size))


def paginate(matches: Sequence[Match], page_index: int, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    """Slice ``matches`` into the page at ``page_index``."""
    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")
    if page_index < 0:
        raise ValueError(f"page_index must be non-negative, got {page_index}")

    start = page_index * page_size
    return Page(
        items=tuple(matches[start : start + page_size]),
        index=page_index,
        size=page_size,
        total=len(matches),
        has_prev=page_index > 0,
        has_next=(page_index + 1) * page_size < len(matches),
    )


@dataclass(frozen=True)
class MatchViewSnapshot:
    """Consistent, immutable read of the match view."""

    canonical_matches: tuple[Match, ...]
    filtered_matches: tuple[Match, ...]
    query: str
    priority: str | None
    time_window_minutes: int
    page: Page


class MatchView:
    """Single-writer container for the canonical matches and the table inputs.

    Every mutation and every snapshot takes the same lock, so readers never
    see a filtered list or page computed against a half-applied update.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE, time_window_minutes: int = 60) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self._page_size = page_size
        self._time_window_minutes = time_window_minutes
        self._canonical: tuple[Match, ...] = ()
        self._query = ""
        self._priority: str | None = None
        self._page_index = 0
        self._lock = threading.Lock()

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def time_window_minutes(self) -> int:
        with self._lock:
            return self._time_window_minutes

    def _filtered(self) -> list[Match]:
        return filter_matches(self._canonical, self._query, self._priority)

    def replace_matches(self, matches: Sequence[Match]) -> None:
        """Replace the canonical list with ``matches`` sorted newest-first."""
        ordered = tuple(sort_newest_first(matches))
        with self._lock:
            self._canonical = ordered
            self._page_index = 0

    def clear_matches(self) -> None:
        with self._lock:
            self._canonical = ()
            self._page_index = 0

    def set_query(self, query: str) -> None:
        with self._lock:
            self._query = query or ""
            self._page_index = 0

    def set_priority(self, priority: str | None) -> None:
        with self._lock:
            self._priority = priority or None
            self._page_index = 0

    def set_time_window(self, minutes: int) -> None:
        if minutes < 1:
            raise ValueError(f"Time window must be at least 1 minute, got {minutes}")
        with self._lock:
            self._time_window_minutes = minutes

    def next_page(self) -> bool:
        """Advance one page. Returns False (and changes nothing) on the last page."""
        with self._lock:
            if (self._page_index + 1) * self._page_size >= len(self._filtered()):
                return False
            self._page_index += 1
            return True

    def prev_page(self) -> bool:
        """Go back one page. Returns False (and changes nothing) on the first page."""
        with self._lock:
            if self._page_index == 0:
                return False
            self._page_index -= 1
            return True

    def snapshot(self) -> MatchViewSnapshot:
        with self._lock:
            filtered = self._filtered()
            return MatchViewSnapshot(
                canonical_matches=self._canonical,
                filtered_matches=tuple(filtered),
                query=self._query,
                priority=self._priority,
                time_window_minutes=self._time_window_minutes,
                page=paginate(filtered, self._page_index, self._page_size),
            )
