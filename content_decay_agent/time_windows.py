from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

from content_decay_agent.errors import InvalidConfiguration
from content_decay_agent.models import DateWindow


COMPARISON_MODES = ("28d", "90d", "yoy")
# Search Console data for the last few days is still incomplete.
DATA_LAG_DAYS = 3
_ROLLING_DAYS = {"28d": 28, "90d": 90}
_YOY_DAYS = 90


def _shift_year_back(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        # Feb 29 rolls forward to Mar 1 in a non-leap year.
        return date(day.year - 1, 3, 1)


def compute_windows(mode: str, today: date | None = None) -> dict[str, DateWindow]:
    """Build the recent (``period_a``) and baseline (``period_b``) windows.

    Both windows end-inclusive. Period A always closes on ``today - 3 days``.
    Rolling modes use the immediately preceding window of the same length;
    ``yoy`` shifts the 90-day window back one calendar year.
    """
    today = today or date.today()
    end = today - timedelta(days=DATA_LAG_DAYS)

    if mode in _ROLLING_DAYS:
        length = _ROLLING_DAYS[mode]
        period_a_start = end - timedelta(days=length - 1)
        period_b_end = period_a_start - timedelta(days=1)
        period_b_start = period_b_end - timedelta(days=length - 1)
        return {
            "period_a": DateWindow(f"Last {length} days", period_a_start, end),
            "period_b": DateWindow(f"Previous {length} days", period_b_start, period_b_end),
        }

    if mode == "yoy":
        period_a_start = end - timedelta(days=_YOY_DAYS - 1)
        return {
            "period_a": DateWindow(f"Last {_YOY_DAYS} days", period_a_start, end),
            "period_b": DateWindow(
                f"Same {_YOY_DAYS} days last year",
                _shift_year_back(period_a_start),
                _shift_year_back(end),
            ),
        }

    raise InvalidConfiguration(
        f"Unknown comparison mode: {mode!r}. Expected one of: {', '.join(COMPARISON_MODES)}."
    )


def _parse_override(name: str, raw: str) -> date | None:
    value = (raw or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidConfiguration(f"{name} must be YYYY-MM-DD, got {value!r}.") from exc


def resolve_windows(
    mode: str,
    today: date | None = None,
    overrides: dict[str, str] | None = None,
) -> dict[str, DateWindow]:
    """Mode-derived windows with explicit boundaries applied one by one.

    Recognised override keys: ``period_a_start``, ``period_a_end``,
    ``period_b_start``, ``period_b_end``.
    """
    windows = compute_windows(mode, today)
    overrides = overrides or {}

    for period in ("period_a", "period_b"):
        window = windows[period]
        start = _parse_override(f"{period}_start", overrides.get(f"{period}_start", ""))
        end = _parse_override(f"{period}_end", overrides.get(f"{period}_end", ""))
        if start is None and end is None:
            continue
        window = replace(
            window,
            name=f"{window.name} (custom)",
            start=start or window.start,
            end=end or window.end,
        )
        if window.start > window.end:
            raise InvalidConfiguration(
                f"{period} starts after it ends: {window.start} > {window.end}."
            )
        windows[period] = window

    return windows
