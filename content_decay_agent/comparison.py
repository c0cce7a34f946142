from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Protocol, Sequence

from content_decay_agent.candidate_filter import apply_all_filters
from content_decay_agent.errors import GSCFetchError
from content_decay_agent.models import (
    Candidate,
    ComparisonResult,
    DateWindow,
    FilterSettings,
    MetricRow,
)


# Seconds to wait for each window to finish paging.
PERIOD_FETCH_TIMEOUT_SEC = 600


class PeriodFetcher(Protocol):
    def fetch_rows(self, window: DateWindow, dimensions: Sequence[str] = ...) -> list[MetricRow]:
        ...


def _empty_row(key: str) -> MetricRow:
    return MetricRow(key=key, clicks=0.0, impressions=0.0, ctr=0.0, position=0.0)


def _pct_change(recent: float, baseline: float) -> float:
    if baseline <= 0:
        return 0.0
    return (recent - baseline) / baseline * 100


def merge_periods(recent_rows: list[MetricRow], baseline_rows: list[MetricRow]) -> list[Candidate]:
    """Join both periods by URL; a side missing a URL counts as all zeros."""
    recent_map = {row.key: row for row in recent_rows}
    baseline_map = {row.key: row for row in baseline_rows}

    keys = list(recent_map) + [key for key in baseline_map if key not in recent_map]
    candidates: list[Candidate] = []
    for key in keys:
        recent = recent_map.get(key) or _empty_row(key)
        baseline = baseline_map.get(key) or _empty_row(key)
        candidates.append(
            Candidate(
                url=key,
                impressions_a=recent.impressions,
                impressions_b=baseline.impressions,
                impressions_diff=_pct_change(recent.impressions, baseline.impressions),
                clicks_a=recent.clicks,
                clicks_b=baseline.clicks,
                clicks_diff_percent=_pct_change(recent.clicks, baseline.clicks),
                position_a=recent.position,
                position_b=baseline.position,
                position_diff=recent.position - baseline.position,
                ctr_a=recent.ctr,
                ctr_b=baseline.ctr,
                ctr_diff=recent.ctr - baseline.ctr,
            )
        )
    return candidates


def _fetch_periods(
    fetcher: PeriodFetcher,
    period_a: DateWindow,
    period_b: DateWindow,
    timeout_sec: float,
) -> tuple[list[MetricRow], list[MetricRow]]:
    # Both windows are independent; a failure in either aborts the comparison.
    executor = ThreadPoolExecutor(max_workers=2)
    try:
        future_a = executor.submit(fetcher.fetch_rows, period_a, ["page"])
        future_b = executor.submit(fetcher.fetch_rows, period_b, ["page"])
        try:
            rows_a = future_a.result(timeout=timeout_sec)
            rows_b = future_b.result(timeout=timeout_sec)
        except FutureTimeoutError as exc:
            future_a.cancel()
            future_b.cancel()
            raise GSCFetchError(
                f"GSC fetch for {period_b.start}..{period_a.end} exceeded {timeout_sec}s."
            ) from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return rows_a, rows_b


def fetch_and_compare(
    fetcher: PeriodFetcher,
    period_a: DateWindow,
    period_b: DateWindow,
    timeout_sec: float = PERIOD_FETCH_TIMEOUT_SEC,
) -> list[Candidate]:
    rows_a, rows_b = _fetch_periods(fetcher, period_a, period_b, timeout_sec)
    return merge_periods(rows_a, rows_b)


def run_comparison(
    fetcher: PeriodFetcher,
    windows: dict[str, DateWindow],
    settings: FilterSettings,
    timeout_sec: float = PERIOD_FETCH_TIMEOUT_SEC,
) -> ComparisonResult:
    period_a = windows["period_a"]
    period_b = windows["period_b"]
    rows_a, rows_b = _fetch_periods(fetcher, period_a, period_b, timeout_sec)
    raw_candidates = merge_periods(rows_a, rows_b)
    candidates = apply_all_filters(raw_candidates, settings)
    return ComparisonResult(
        period_a=period_a,
        period_b=period_b,
        total_raw_pages=len(raw_candidates),
        filtered_pages=len(candidates),
        candidates=candidates,
        period_a_rows=len(rows_a),
        period_b_rows=len(rows_b),
    )
