from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date


UNASSIGNED_LABEL = "unassigned"


@dataclass(frozen=True)
class DateWindow:
    name: str
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def overlaps(self, other: "DateWindow") -> bool:
        return self.start <= other.end and other.start <= self.end

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass
class MetricRow:
    key: str
    clicks: float
    impressions: float
    ctr: float
    position: float


@dataclass(frozen=True)
class Candidate:
    """One page with both periods merged.

    Period A is the recent window, period B the baseline. Percentage diffs are
    baseline -> recent; a positive ``position_diff`` means the page ranks worse.
    """

    url: str
    impressions_a: float
    impressions_b: float
    impressions_diff: float
    clicks_a: float
    clicks_b: float
    clicks_diff_percent: float
    position_a: float
    position_b: float
    position_diff: float
    ctr_a: float
    ctr_b: float
    ctr_diff: float
    is_important: bool = False
    topic_match: str | None = None
    # Populated only by a cannibalization rule, which does not exist yet.
    has_cannibalization: bool = False
    cannibalizing_url: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class LostKeyword:
    keyword: str
    volume: float
    position: float
    position_before: float
    traffic: float
    traffic_change: float
    kd: float | None
    value_score: float
    is_junk: bool
    junk_reason: str | None
    is_selected: bool
    candidate_url: str | None = None

    @property
    def is_assigned(self) -> bool:
        return self.candidate_url is not None

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["candidate_url"] = self.candidate_url or UNASSIGNED_LABEL
        return payload


@dataclass(frozen=True)
class ParsedBacklink:
    referring_url: str
    referring_title: str
    domain_rating: float
    target_url: str
    lost_status: str
    drop_reason: str
    first_seen: str
    last_seen: str
    lost_date: str

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class KeywordMatchStats:
    total: int
    matched: int
    unmatched: int


@dataclass(frozen=True)
class BacklinkStats:
    total: int
    target_pages: int


@dataclass(frozen=True)
class FilterSettings:
    blog_url_pattern: str = ""
    impression_threshold: int = 0
    clicks_drop_threshold: int = 0
    topic_patterns: str = ""


@dataclass
class ComparisonResult:
    period_a: DateWindow
    period_b: DateWindow
    total_raw_pages: int
    filtered_pages: int
    candidates: list[Candidate] = field(default_factory=list)
    period_a_rows: int = 0
    period_b_rows: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "period_a": self.period_a.to_dict(),
            "period_b": self.period_b.to_dict(),
            "period_a_rows": self.period_a_rows,
            "period_b_rows": self.period_b_rows,
            "total_raw_pages": self.total_raw_pages,
            "filtered_pages": self.filtered_pages,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
        }


@dataclass(frozen=True)
class UpdateAction:
    section: str
    action: str
    details: str
    why: str


@dataclass(frozen=True)
class PageVerdict:
    candidate_url: str
    priority: int
    should_update: str
    recovery_likelihood: str
    estimated_effort: str
    worse_points: tuple[str, ...] = ()
    strengths: tuple[str, ...] = ()
    what_to_add_or_update: tuple[UpdateAction, ...] = ()
    suggested_title: str = ""
    suggested_meta: str = ""
    update_plan_summary: str = ""
    intent_shifted: bool = False
    consolidate_with: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)
