from __future__ import annotations

import re
from dataclasses import replace
from urllib.parse import urlparse

from content_decay_agent.models import Candidate, FilterSettings


def filter_fragment_urls(candidates: list[Candidate]) -> list[Candidate]:
    # "#section" URLs are in-page anchors of a page that is already listed.
    return [candidate for candidate in candidates if "#" not in candidate.url]


def filter_by_blog_pattern(candidates: list[Candidate], pattern: str) -> list[Candidate]:
    if not pattern.strip():
        return candidates
    lowered = pattern.lower()
    return [candidate for candidate in candidates if lowered in candidate.url.lower()]


def filter_by_thresholds(
    candidates: list[Candidate],
    impression_threshold: float,
    clicks_drop_threshold: float,
) -> list[Candidate]:
    kept: list[Candidate] = []
    for candidate in candidates:
        if candidate.impressions_b < impression_threshold:
            continue
        if candidate.clicks_diff_percent > -clicks_drop_threshold:
            continue
        kept.append(candidate)
    return kept


def parse_topic_patterns(raw: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def _url_path(url: str) -> str:
    try:
        parsed = urlparse(url)
    except ValueError:
        return url.lower()
    if not parsed.scheme or not parsed.netloc:
        return url.lower()
    return (parsed.path or "/").lower()


def match_topic(url: str, patterns: tuple[str, ...]) -> str | None:
    path = _url_path(url)
    for pattern in patterns:
        hyphenated = re.sub(r"\s+", "-", pattern)
        squashed = re.sub(r"\s+", "", pattern)
        if hyphenated in path or squashed in path:
            return pattern
    return None


def apply_topic_filter(candidates: list[Candidate], patterns_raw: str) -> list[Candidate]:
    """Flag candidates whose path contains a topic; first listed pattern wins."""
    patterns = parse_topic_patterns(patterns_raw)
    if not patterns:
        return candidates

    annotated: list[Candidate] = []
    for candidate in candidates:
        topic = match_topic(candidate.url, patterns)
        if topic is None:
            annotated.append(candidate)
            continue
        annotated.append(replace(candidate, is_important=True, topic_match=topic))
    return annotated


def sort_candidates(candidates: list[Candidate]) -> list[Candidate]:
    return sorted(
        candidates,
        key=lambda candidate: (not candidate.is_important, candidate.clicks_diff_percent),
    )


def apply_all_filters(candidates: list[Candidate], settings: FilterSettings) -> list[Candidate]:
    result = filter_fragment_urls(candidates)
    result = filter_by_blog_pattern(result, settings.blog_url_pattern)
    result = filter_by_thresholds(
        result,
        impression_threshold=settings.impression_threshold,
        clicks_drop_threshold=settings.clicks_drop_threshold,
    )
    result = apply_topic_filter(result, settings.topic_patterns)
    return sort_candidates(result)
