from __future__ import annotations

from dataclasses import replace

from content_decay_agent.ahrefs.csv_import import clean_cell, parse_number
from content_decay_agent.ahrefs.match_urls import match_keyword_to_page
from content_decay_agent.ahrefs.scoring import compute_value_score, detect_junk
from content_decay_agent.models import KeywordMatchStats, LostKeyword


# Organic keywords export columns.
COL_KEYWORD = "Keyword"
COL_VOLUME = "Volume"
COL_TRAFFIC = "Current organic traffic"
COL_TRAFFIC_CHANGE = "Organic traffic change"
COL_POSITION_BEFORE = "Previous average position"
COL_POSITION = "Current average position"
KD_COLUMNS = ("Keyword Difficulty", "KD")


def _read_kd(row: dict[str, str]) -> float | None:
    for column in KD_COLUMNS:
        raw = row.get(column)
        if raw and raw.strip():
            return parse_number(raw)
    return None


def build_lost_keyword(row: dict[str, str], candidate_urls: list[str]) -> LostKeyword | None:
    keyword = clean_cell(row.get(COL_KEYWORD))
    if not keyword:
        return None

    volume = parse_number(row.get(COL_VOLUME))
    traffic_change = parse_number(row.get(COL_TRAFFIC_CHANGE))
    position_before = parse_number(row.get(COL_POSITION_BEFORE))
    kd = _read_kd(row)
    is_junk, junk_reason = detect_junk(volume, kd)

    return LostKeyword(
        keyword=keyword,
        volume=volume,
        position=parse_number(row.get(COL_POSITION)),
        position_before=position_before,
        traffic=parse_number(row.get(COL_TRAFFIC)),
        traffic_change=traffic_change,
        kd=kd,
        value_score=compute_value_score(volume, traffic_change, position_before, kd),
        is_junk=is_junk,
        junk_reason=junk_reason,
        is_selected=not is_junk,
        candidate_url=match_keyword_to_page(keyword, candidate_urls),
    )


def transform_to_keywords(rows: list[dict[str, str]], candidate_urls: list[str]) -> list[LostKeyword]:
    """Score, classify and attribute every export row; highest value first."""
    keywords: list[LostKeyword] = []
    for row in rows:
        keyword = build_lost_keyword(row, candidate_urls)
        if keyword is not None:
            keywords.append(keyword)
    keywords.sort(key=lambda item: item.value_score, reverse=True)
    return keywords


def get_match_stats(keywords: list[LostKeyword]) -> KeywordMatchStats:
    matched = sum(1 for keyword in keywords if keyword.is_assigned)
    return KeywordMatchStats(
        total=len(keywords),
        matched=matched,
        unmatched=len(keywords) - matched,
    )


def with_selection(keywords: list[LostKeyword], keyword: str, selected: bool) -> list[LostKeyword]:
    """Operator override; score and junk status stay as imported."""
    return [
        replace(item, is_selected=selected) if item.keyword == keyword else item
        for item in keywords
    ]


def selected_keywords_by_page(keywords: list[LostKeyword]) -> dict[str, list[LostKeyword]]:
    grouped: dict[str, list[LostKeyword]] = {}
    for item in keywords:
        if not item.is_selected or item.candidate_url is None:
            continue
        grouped.setdefault(item.candidate_url, []).append(item)
    return grouped
