from __future__ import annotations

import threading
from datetime import date

import pytest

from content_decay_agent.comparison import fetch_and_compare, merge_periods, run_comparison
from content_decay_agent.errors import GSCFetchError
from content_decay_agent.models import DateWindow, FilterSettings, MetricRow


PERIOD_A = DateWindow("Last 28 days", date(2026, 9, 19), date(2026, 10, 16))
PERIOD_B = DateWindow("Previous 28 days", date(2026, 8, 22), date(2026, 9, 18))


def _row(key: str, clicks: float, impressions: float, ctr: float = 0.05, position: float = 5.0) -> MetricRow:
    return MetricRow(key=key, clicks=clicks, impressions=impressions, ctr=ctr, position=position)


class FakeFetcher:
    def __init__(self, rows_by_start: dict[date, list[MetricRow]], fail_on: date | None = None) -> None:
        self.rows_by_start = rows_by_start
        self.fail_on = fail_on
        self.thread_names: set[str] = set()

    def fetch_rows(self, window: DateWindow, dimensions=("page",)) -> list[MetricRow]:
        self.thread_names.add(threading.current_thread().name)
        if window.start == self.fail_on:
            raise GSCFetchError("quota exceeded")
        return list(self.rows_by_start.get(window.start, []))


def test_merge_computes_percentage_and_absolute_deltas() -> None:
    candidates = merge_periods(
        [_row("https://example.com/blog/a", clicks=60, impressions=900, ctr=0.04, position=7.5)],
        [_row("https://example.com/blog/a", clicks=100, impressions=1000, ctr=0.1, position=4.0)],
    )

    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.clicks_diff_percent == pytest.approx(-40.0)
    assert candidate.impressions_diff == pytest.approx(-10.0)
    assert candidate.position_diff == pytest.approx(3.5)
    assert candidate.ctr_diff == pytest.approx(-0.06)
    assert candidate.is_important is False
    assert candidate.topic_match is None
    assert candidate.has_cannibalization is False


def test_merge_keeps_union_and_zero_fills_missing_side() -> None:
    candidates = merge_periods(
        [_row("https://example.com/new", clicks=50, impressions=500)],
        [_row("https://example.com/gone", clicks=80, impressions=800)],
    )
    by_url = {candidate.url: candidate for candidate in candidates}

    assert set(by_url) == {"https://example.com/new", "https://example.com/gone"}

    new = by_url["https://example.com/new"]
    assert (new.clicks_b, new.impressions_b, new.ctr_b, new.position_b) == (0.0, 0.0, 0.0, 0.0)
    assert new.clicks_diff_percent == 0.0
    assert new.impressions_diff == 0.0

    gone = by_url["https://example.com/gone"]
    assert (gone.clicks_a, gone.impressions_a, gone.ctr_a, gone.position_a) == (0.0, 0.0, 0.0, 0.0)
    assert gone.clicks_diff_percent == pytest.approx(-100.0)


def test_merge_urls_are_unique() -> None:
    candidates = merge_periods(
        [_row("https://example.com/a", 1, 10), _row("https://example.com/b", 2, 20)],
        [_row("https://example.com/a", 3, 30), _row("https://example.com/b", 4, 40)],
    )

    urls = [candidate.url for candidate in candidates]
    assert len(urls) == len(set(urls)) == 2


def test_fetch_and_compare_runs_both_periods_on_worker_threads() -> None:
    fetcher = FakeFetcher(
        {
            PERIOD_A.start: [_row("https://example.com/blog/a", 10, 100)],
            PERIOD_B.start: [_row("https://example.com/blog/a", 40, 400)],
        }
    )

    candidates = fetch_and_compare(fetcher, PERIOD_A, PERIOD_B)

    assert candidates[0].clicks_a == 10
    assert candidates[0].clicks_b == 40
    assert threading.current_thread().name not in fetcher.thread_names


def test_failed_period_aborts_comparison() -> None:
    fetcher = FakeFetcher({PERIOD_A.start: [_row("https://example.com/a", 1, 1)]}, fail_on=PERIOD_B.start)

    with pytest.raises(GSCFetchError):
        fetch_and_compare(fetcher, PERIOD_A, PERIOD_B)


def test_run_comparison_reports_raw_and_filtered_counts() -> None:
    fetcher = FakeFetcher(
        {
            PERIOD_A.start: [
                _row("https://example.com/blog/decline", 20, 900),
                _row("https://example.com/blog/decline#faq", 5, 100),
                _row("https://example.com/pricing", 10, 900),
            ],
            PERIOD_B.start: [
                _row("https://example.com/blog/decline", 100, 1000),
                _row("https://example.com/blog/decline#faq", 50, 500),
                _row("https://example.com/pricing", 100, 1000),
            ],
        }
    )

    result = run_comparison(
        fetcher,
        {"period_a": PERIOD_A, "period_b": PERIOD_B},
        FilterSettings(blog_url_pattern="/blog/", impression_threshold=100, clicks_drop_threshold=20),
    )

    assert result.total_raw_pages == 3
    assert result.filtered_pages == 1
    assert result.candidates[0].url == "https://example.com/blog/decline"
    assert (result.period_a_rows, result.period_b_rows) == (3, 3)
    assert result.to_dict()["period_a"] == {"start": "2026-09-19", "end": "2026-10-16"}


class StalledFetcher:
    def __init__(self) -> None:
        self.release = threading.Event()

    def fetch_rows(self, window: DateWindow, dimensions=("page",)) -> list[MetricRow]:
        self.release.wait(timeout=5)
        return []


def test_stalled_period_fetch_times_out() -> None:
    fetcher = StalledFetcher()
    try:
        with pytest.raises(GSCFetchError, match="exceeded"):
            fetch_and_compare(fetcher, PERIOD_A, PERIOD_B, timeout_sec=0.05)
    finally:
        fetcher.release.set()
