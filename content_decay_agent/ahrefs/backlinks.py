from __future__ import annotations

from content_decay_agent.ahrefs.csv_import import clean_cell, parse_number
from content_decay_agent.ahrefs.match_urls import normalize_url
from content_decay_agent.models import BacklinkStats, ParsedBacklink


def _targets_candidate(target_url: str, normalized_candidates: list[str]) -> bool:
    normalized_target = normalize_url(target_url)
    return any(
        normalized_target == candidate or normalized_target.startswith(candidate)
        for candidate in normalized_candidates
    )


def transform_to_backlinks(
    rows: list[dict[str, str]],
    candidate_urls: list[str],
) -> list[ParsedBacklink]:
    """Lost backlinks pointing at candidate pages, highest domain rating first."""
    normalized_candidates = [normalize_url(url) for url in candidate_urls]

    backlinks: list[ParsedBacklink] = []
    for row in rows:
        target_url = clean_cell(row.get("Target URL"))
        if not target_url:
            continue
        if not _targets_candidate(target_url, normalized_candidates):
            continue
        lost_status = clean_cell(row.get("Lost status"))
        # Live links carry no lost status.
        if not lost_status:
            continue

        backlinks.append(
            ParsedBacklink(
                referring_url=clean_cell(row.get("Referring page URL")),
                referring_title=clean_cell(row.get("Referring page title")),
                domain_rating=parse_number(row.get("Domain rating")),
                target_url=target_url,
                lost_status=lost_status,
                drop_reason=clean_cell(row.get("Drop reason")),
                first_seen=clean_cell(row.get("First seen")),
                last_seen=clean_cell(row.get("Last seen")),
                lost_date=clean_cell(row.get("Lost")),
            )
        )

    backlinks.sort(key=lambda link: link.domain_rating, reverse=True)
    return backlinks


def get_backlink_stats(backlinks: list[ParsedBacklink]) -> BacklinkStats:
    target_pages = {normalize_url(link.target_url) for link in backlinks}
    return BacklinkStats(total=len(backlinks), target_pages=len(target_pages))
