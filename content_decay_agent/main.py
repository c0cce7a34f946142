from __future__ import annotations

import argparse
import json
from dataclasses import asdict, replace
from datetime import date
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from content_decay_agent.ahrefs.backlinks import get_backlink_stats, transform_to_backlinks
from content_decay_agent.ahrefs.csv_import import (
    BACKLINKS,
    ORGANIC_KEYWORDS,
    ensure_importable,
    read_ahrefs_csv,
)
from content_decay_agent.ahrefs.keywords import (
    get_match_stats,
    selected_keywords_by_page,
    transform_to_keywords,
    with_selection,
)
from content_decay_agent.clients.gsc_client import GSCClient
from content_decay_agent.comparison import run_comparison
from content_decay_agent.config import AgentConfig
from content_decay_agent.errors import ImportRejected, InvalidConfiguration
from content_decay_agent.models import ComparisonResult, LostKeyword, ParsedBacklink
from content_decay_agent.page_analysis import PageAnalyzer, build_analysis_llm
from content_decay_agent.time_windows import COMPARISON_MODES, resolve_windows


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Content decay recovery audit")
    parser.add_argument(
        "--run-date",
        dest="run_date",
        help="Execution date in YYYY-MM-DD format (default: today)",
    )
    parser.add_argument(
        "--mode",
        choices=COMPARISON_MODES,
        help="Comparison mode (default: COMPARISON_MODE from environment).",
    )
    parser.add_argument("--site-url", dest="site_url", help="Search Console property.")
    parser.add_argument(
        "--keywords-csv",
        action="append",
        default=[],
        help="Organic keywords export (can be repeated).",
    )
    parser.add_argument(
        "--backlinks-csv",
        action="append",
        default=[],
        help="Backlinks export (can be repeated).",
    )
    parser.add_argument(
        "--select-url",
        action="append",
        default=[],
        help="Candidate page to audit (default: every filtered candidate).",
    )
    parser.add_argument(
        "--select-keyword",
        action="append",
        default=[],
        help="Force a keyword into the analysis, even if flagged as junk.",
    )
    parser.add_argument(
        "--deselect-keyword",
        action="append",
        default=[],
        help="Drop a keyword from the analysis.",
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Ask the LLM for a verdict on every page with selected keywords.",
    )
    return parser.parse_args(argv)


def _parse_run_date(raw: str | None) -> date:
    if not raw:
        return date.today()
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidConfiguration(f"--run-date must be YYYY-MM-DD, got {raw!r}.") from exc


def _apply_cli_overrides(config: AgentConfig, args: argparse.Namespace) -> AgentConfig:
    updates: dict[str, object] = {}
    if args.mode:
        updates["comparison_mode"] = args.mode
    if args.site_url:
        updates["gsc_site_url"] = args.site_url.strip()
    if args.analyze:
        updates["use_llm_analysis"] = True
    return replace(config, **updates) if updates else config


def _select_urls(comparison: ComparisonResult, requested: list[str]) -> list[str]:
    available = [candidate.url for candidate in comparison.candidates]
    if not requested:
        return available
    known = set(available)
    selected: list[str] = []
    for url in requested:
        if url in known:
            selected.append(url)
        else:
            print(f"Selected URL is not a filtered candidate, skipped: {url}")
    return selected


def _import_keywords(paths: list[str], candidate_urls: list[str]) -> list[LostKeyword]:
    keywords: list[LostKeyword] = []
    for path_value in paths:
        path = Path(path_value)
        try:
            parsed = ensure_importable(
                read_ahrefs_csv(path.read_bytes(), file_name=path.name),
                expected_type=ORGANIC_KEYWORDS,
            )
        except (ImportRejected, OSError) as exc:
            print(f"Keyword import rejected: {path.name} | {exc}")
            continue
        imported = transform_to_keywords(parsed.rows, candidate_urls)
        stats = get_match_stats(imported)
        print(
            f"Keywords imported: {path.name} | rows={parsed.row_count} | "
            f"matched={stats.matched} | unassigned={stats.unmatched}"
        )
        keywords.extend(imported)
    keywords.sort(key=lambda item: item.value_score, reverse=True)
    return keywords


def _import_backlinks(paths: list[str], candidate_urls: list[str]) -> list[ParsedBacklink]:
    backlinks: list[ParsedBacklink] = []
    for path_value in paths:
        path = Path(path_value)
        try:
            parsed = ensure_importable(
                read_ahrefs_csv(path.read_bytes(), file_name=path.name),
                expected_type=BACKLINKS,
            )
        except (ImportRejected, OSError) as exc:
            print(f"Backlink import rejected: {path.name} | {exc}")
            continue
        imported = transform_to_backlinks(parsed.rows, candidate_urls)
        stats = get_backlink_stats(imported)
        print(
            f"Lost backlinks imported: {path.name} | rows={parsed.row_count} | "
            f"kept={stats.total} | target_pages={stats.target_pages}"
        )
        backlinks.extend(imported)
    backlinks.sort(key=lambda link: link.domain_rating, reverse=True)
    return backlinks


def _apply_keyword_overrides(
    keywords: list[LostKeyword],
    select: list[str],
    deselect: list[str],
) -> list[LostKeyword]:
    for keyword in select:
        keywords = with_selection(keywords, keyword, True)
    for keyword in deselect:
        keywords = with_selection(keywords, keyword, False)
    return keywords


def run_audit(config: AgentConfig, args: argparse.Namespace, run_date: date) -> dict[str, object]:
    windows = resolve_windows(config.comparison_mode, run_date, config.period_overrides)
    print(
        f"Comparing {config.gsc_site_url} | mode={config.comparison_mode} | "
        f"period A={windows['period_a'].start}..{windows['period_a'].end} | "
        f"period B={windows['period_b'].start}..{windows['period_b'].end}"
    )

    analyzer = PageAnalyzer(build_analysis_llm(config)) if config.use_llm_analysis else None

    client = GSCClient(
        site_url=config.gsc_site_url,
        credentials_path=config.gsc_credentials_path,
        oauth_client_secret_path=config.gsc_oauth_client_secret_path,
        oauth_refresh_token=config.gsc_oauth_refresh_token,
        oauth_token_uri=config.gsc_oauth_token_uri,
        page_size=config.gsc_page_size,
        data_state=config.gsc_data_state,
    )
    comparison = run_comparison(client, windows, config.filter_settings)
    print(
        f"Period A: {comparison.period_a.start}..{comparison.period_a.end} | "
        f"rows={comparison.period_a_rows}"
    )
    print(
        f"Period B: {comparison.period_b.start}..{comparison.period_b.end} | "
        f"rows={comparison.period_b_rows}"
    )
    important = sum(1 for candidate in comparison.candidates if candidate.is_important)
    print(
        f"Candidates: raw_pages={comparison.total_raw_pages} | "
        f"filtered={comparison.filtered_pages} | important={important}"
    )

    selected_urls = _select_urls(comparison, list(args.select_url or []))
    keywords = _import_keywords(list(args.keywords_csv or []), selected_urls)
    keywords = _apply_keyword_overrides(
        keywords,
        select=list(args.select_keyword or []),
        deselect=list(args.deselect_keyword or []),
    )
    backlinks = _import_backlinks(list(args.backlinks_csv or []), selected_urls)

    verdicts = []
    failures: dict[str, str] = {}
    if analyzer is not None:
        keywords_by_page = selected_keywords_by_page(keywords)
        if keywords_by_page:
            verdicts, failures = analyzer.analyze_pages(
                keywords_by_page, comparison.candidates, backlinks
            )
            for page_url, reason in failures.items():
                print(f"Page analysis failed: {page_url} | {reason}")
            print(f"Pages analyzed: {len(verdicts)} | failed={len(failures)}")
        else:
            print("LLM analysis skipped: no selected keyword is assigned to a page.")

    return {
        "run_date": run_date.isoformat(),
        "site_url": config.gsc_site_url,
        "comparison_mode": config.comparison_mode,
        "comparison": comparison.to_dict(),
        "selected_urls": selected_urls,
        "keywords": [item.to_dict() for item in keywords],
        "keyword_match_stats": asdict(get_match_stats(keywords)),
        "backlinks": [link.to_dict() for link in backlinks],
        "backlink_stats": asdict(get_backlink_stats(backlinks)),
        "verdicts": [verdict.to_dict() for verdict in verdicts],
        "analysis_failures": failures,
    }


def main(argv: list[str] | None = None) -> None:
    try:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    except OSError:
        pass

    args = _parse_args(argv)
    try:
        run_date = _parse_run_date(args.run_date)
        config = _apply_cli_overrides(AgentConfig.from_env(), args)
    except InvalidConfiguration as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    if not config.gsc_enabled:
        raise SystemExit(
            "GSC is not configured. Provide GSC_SITE_URL and either "
            "GSC_CREDENTIALS_PATH or GSC_OAUTH_CLIENT_SECRET_PATH + GSC_OAUTH_REFRESH_TOKEN."
        )
    if config.use_llm_analysis and not config.gaia_llm_enabled:
        raise SystemExit(
            "LLM analysis requested but GAIA is not configured. Provide GAIA_ENDPOINT, "
            "GAIA_API_KEY (or OPENAI_API_KEY), GAIA_API_VERSION and GAIA_MODEL."
        )

    try:
        summary = run_audit(config, args, run_date)
    except InvalidConfiguration as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    summary_path = output_dir / f"{run_date.strftime('%Y_%m_%d')}_content_decay_audit.json"
    summary_path.write_text(
        json.dumps(summary, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    print(f"Run summary written: {summary_path}")


if __name__ == "__main__":
    main()
