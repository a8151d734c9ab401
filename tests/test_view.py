"""Tests for filtering, pagination and the match view container."""

from datetime import UTC, datetime, timedelta

import pytest

from ctwatch.models import Match
from ctwatch.view import MatchView, filter_matches, paginate, sort_newest_first

BASE_TIME = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)


def _match(
    name: str = "a.example.com",
    priority: str = "high",
    minutes: int = 0,
    tbs: str = "00",
    dns_names: tuple[str, ...] | None = None,
) -> Match:
    return Match(
        detected_at=BASE_TIME + timedelta(minutes=minutes),
        dns_names=dns_names or (name,),
        matched_rule="rule",
        priority=priority,
        matched_domains=("example",),
        tbs_sha256=tbs,
    )


def _matches(count: int) -> list[Match]:
    return [_match(name=f"host{i}.example.com", minutes=-i, tbs=str(i)) for i in range(count)]


def _is_subsequence(sub: list, full: list) -> bool:
    it = iter(full)
    return all(any(item is candidate for candidate in it) for item in sub)


class TestSortNewestFirst:
    """Tests for sort_newest_first."""

    def test_newest_first(self) -> None:
        """Later detections come first."""
        old, new = _match(minutes=0, tbs="old"), _match(minutes=5, tbs="new")
        assert [m.tbs_sha256 for m in sort_newest_first([old, new])] == ["new", "old"]

    def test_ties_keep_response_order(self) -> None:
        """Equal timestamps stay in arrival order, ahead of earlier ones."""
        t1 = _match(minutes=0, tbs="T1")
        t2 = _match(minutes=5, tbs="T2")
        t3 = _match(minutes=5, tbs="T3")

        ordered = sort_newest_first([t1, t2, t3])

        assert [m.tbs_sha256 for m in ordered] == ["T2", "T3", "T1"]

    def test_does_not_mutate_input(self) -> None:
        """The input list is left as it was."""
        raw = [_match(minutes=0, tbs="a"), _match(minutes=1, tbs="b")]
        sort_newest_first(raw)
        assert [m.tbs_sha256 for m in raw] == ["a", "b"]


class TestFilterMatches:
    """Tests for filter_matches."""

    def test_empty_filters_keep_everything(self) -> None:
        """No query and no priority returns every match."""
        matches = _matches(5)
        assert filter_matches(matches, "", None) == matches

    def test_query_is_case_insensitive_substring(self) -> None:
        """The query matches any DNS name, ignoring case."""
        hit = _match(dns_names=("www.other.net", "Mail.EXAMPLE.org"))
        miss = _match(dns_names=("www.other.net",))

        assert filter_matches([hit, miss], "example", None) == [hit]
        assert filter_matches([hit, miss], "EXAMPLE", None) == [hit]

    def test_priority_is_exact_and_case_sensitive(self) -> None:
        """Priority must equal the match priority exactly."""
        high = _match(priority="high")
        upper = _match(priority="HIGH")
        assert filter_matches([high, upper], "", "high") == [high]

    def test_empty_priority_means_unset(self) -> None:
        """An empty selector does not filter."""
        matches = [_match(priority="low"), _match(priority="weird")]
        assert filter_matches(matches, "", "") == matches

    def test_query_and_priority_combined(self) -> None:
        """Both predicates must hold."""
        low = _match(dns_names=("example.com",), priority="low")
        high = _match(dns_names=("sub.example.org",), priority="high")

        assert filter_matches([low, high], "example", "high") == [high]

    def test_result_is_ordered_subsequence_by_identity(self) -> None:
        """Filtered matches are the same objects, in the same relative order."""
        matches = [_match(name=f"h{i}.{'example' if i % 2 else 'other'}.com", tbs=str(i)) for i in range(10)]

        filtered = filter_matches(matches, "example", None)

        assert len(filtered) == 5
        assert _is_subsequence(filtered, matches)

    def test_idempotent(self) -> None:
        """Re-filtering unchanged inputs yields the same result."""
        matches = _matches(7)
        assert filter_matches(matches, "host1", "high") == filter_matches(matches, "host1", "high")


class TestPaginate:
    """Tests for paginate."""

    def test_first_page(self) -> None:
        """The first page holds page_size items and has a next page."""
        page = paginate(_matches(45), 0, 20)

        assert len(page.items) == 20
        assert page.has_prev is False
        assert page.has_next is True
        assert page.total == 45
        assert page.page_count == 3

    def test_last_page_is_clamped(self) -> None:
        """The last page holds the remainder."""
        matches = _matches(45)
        page = paginate(matches, 2, 20)

        assert page.items == tuple(matches[40:])
        assert page.has_prev is True
        assert page.has_next is False

    def test_exact_multiple_has_no_next(self) -> None:
        """When the count is a multiple of the page size the last full page has no next."""
        page = paginate(_matches(40), 1, 20)
        assert page.has_next is False

    def test_empty(self) -> None:
        """An empty list paginates to one empty page."""
        page = paginate([], 0, 20)

        assert page.items == ()
        assert page.has_prev is False
        assert page.has_next is False
        assert page.page_count == 1

    def test_rejects_negative_index(self) -> None:
        """Page indexes cannot be negative."""
        with pytest.raises(ValueError):
            paginate(_matches(3), -1, 20)


class TestMatchView:
    """Tests for the MatchView container."""

    def test_replace_sorts_newest_first(self) -> None:
        """Canonical matches are kept newest-first."""
        view = MatchView()
        view.replace_matches([_match(minutes=0, tbs="old"), _match(minutes=10, tbs="new")])

        snapshot = view.snapshot()

        assert [m.tbs_sha256 for m in snapshot.canonical_matches] == ["new", "old"]

    def test_replace_is_not_a_merge(self) -> None:
        """A new poll replaces the previous matches entirely."""
        view = MatchView()
        view.replace_matches(_matches(3))
        view.replace_matches([_match(tbs="only")])

        assert [m.tbs_sha256 for m in view.snapshot().canonical_matches] == ["only"]

    def test_next_and_prev_page(self) -> None:
        """Navigation moves one page at a time."""
        view = MatchView(page_size=20)
        view.replace_matches(_matches(45))

        assert view.next_page() is True
        assert view.snapshot().page.index == 1
        assert view.prev_page() is True
        assert view.snapshot().page.index == 0

    def test_prev_on_first_page_is_noop(self) -> None:
        """prev_page at index 0 changes nothing."""
        view = MatchView(page_size=20)
        view.replace_matches(_matches(45))

        assert view.prev_page() is False
        assert view.snapshot().page.index == 0

    def test_next_on_last_page_is_noop(self) -> None:
        """next_page on the last page changes nothing."""
        view = MatchView(page_size=20)
        view.replace_matches(_matches(45))
        view.next_page()
        view.next_page()

        assert view.next_page() is False
        assert view.snapshot().page.index == 2

    def test_next_on_empty_is_noop(self) -> None:
        """With nothing to show the index stays at 0."""
        view = MatchView(page_size=20)
        assert view.next_page() is False
        assert view.snapshot().page.index == 0

    @pytest.mark.parametrize("count", [0, 1, 19, 20, 21, 40, 59])
    def test_navigation_stays_in_bounds(self, count: int) -> None:
        """Any sequence of navigation keeps the page start inside the filtered list."""
        view = MatchView(page_size=20)
        view.replace_matches(_matches(count))

        for step in ["next"] * 5 + ["prev"] * 7 + ["next"] * 3:
            view.next_page() if step == "next" else view.prev_page()
            page = view.snapshot().page
            assert 0 <= page.index * page.size < max(1, count)

    def test_query_change_resets_page(self) -> None:
        """Changing the query goes back to the first page."""
        view = MatchView(page_size=20)
        view.replace_matches(_matches(45))
        view.next_page()

        view.set_query("host")

        assert view.snapshot().page.index == 0

    def test_priority_change_resets_page(self) -> None:
        """Changing the priority goes back to the first page."""
        view = MatchView(page_size=20)
        view.replace_matches(_matches(45))
        view.next_page()

        view.set_priority("high")

        assert view.snapshot().page.index == 0

    def test_new_data_resets_page(self) -> None:
        """Fresh matches go back to the first page."""
        view = MatchView(page_size=20)
        view.replace_matches(_matches(45))
        view.next_page()

        view.replace_matches(_matches(45))

        assert view.snapshot().page.index == 0

    def test_filter_does_not_touch_canonical(self) -> None:
        """Filtering never changes the canonical list."""
        view = MatchView()
        matches = _matches(5)
        view.replace_matches(matches)

        view.set_query("host3")
        snapshot = view.snapshot()

        assert len(snapshot.canonical_matches) == 5
        assert [m.tbs_sha256 for m in snapshot.filtered_matches] == ["3"]
        assert snapshot.filtered_matches[0] is snapshot.canonical_matches[3]

    def test_clear_empties_filtered(self) -> None:
        """Clearing the canonical list empties every derived view."""
        view = MatchView()
        view.replace_matches(_matches(5))

        view.clear_matches()
        snapshot = view.snapshot()

        assert snapshot.canonical_matches == ()
        assert snapshot.filtered_matches == ()
        assert snapshot.page.items == ()

    def test_rejects_bad_time_window(self) -> None:
        """Time windows must be at least a minute."""
        with pytest.raises(ValueError):
            MatchView().set_time_window(0)
