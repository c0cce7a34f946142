from __future__ import annotations

import json
from datetime import date

import pytest
from langchain_core.language_models import FakeListChatModel

from content_decay_agent import main as main_module
from content_decay_agent.models import MetricRow


GUIDE = "https://example.com/blog/headless-cms-migration-guide"
PRICING = "https://example.com/blog/cms-pricing"

KEYWORDS_CSV = (
    "Keyword,Volume,Current organic traffic,Organic traffic change,"
    "Previous average position,Current average position\n"
    "headless cms migration,1000,40,-200,15,22\n"
    "unrelated topic,300,5,-10,8,30\n"
    "cms,50,1,-3,9,40\n"
)
BACKLINKS_CSV = (
    "Referring page URL,Referring page title,Domain rating,Target URL,Lost status\n"
    "https://ref.com/a,A,61,https://example.com/blog/cms-pricing/,removed\n"
    "https://ref.com/b,B,12,https://example.com/blog/cms-pricing,\n"
)


class FakeGSCClient:
    def __init__(self, **kwargs) -> None:
        self.site_url = kwargs["site_url"]

    def fetch_rows(self, window, dimensions=("page",)):
        recent = window.end == date(2026, 10, 16)
        clicks = {GUIDE: 30, PRICING: 10} if recent else {GUIDE: 100, PRICING: 100}
        return [
            MetricRow(key=url, clicks=value, impressions=1000, ctr=0.05, position=6.0)
            for url, value in clicks.items()
        ]


@pytest.fixture
def audit_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(main_module, "GSCClient", FakeGSCClient)
    monkeypatch.setenv("GSC_SITE_URL", "sc-domain:example.com")
    monkeypatch.setenv("GSC_CREDENTIALS_PATH", "service-account.json")
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("TOPIC_PATTERNS", "headless cms")
    monkeypatch.setenv("COMPARISON_MODE", "28d")
    monkeypatch.setenv("USE_LLM_ANALYSIS", "false")
    for name in (
        "PERIOD_A_START",
        "PERIOD_A_END",
        "PERIOD_B_START",
        "PERIOD_B_END",
        "GAIA_ENDPOINT",
        "GAIA_API_KEY",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    (tmp_path / "keywords.csv").write_text(KEYWORDS_CSV, encoding="utf-8")
    (tmp_path / "backlinks.csv").write_text(BACKLINKS_CSV, encoding="utf-8")
    (tmp_path / "other.csv").write_text("a,b\n1,2\n", encoding="utf-8")
    return tmp_path


def test_main_writes_run_summary(audit_env, capsys) -> None:
    main_module.main(
        [
            "--run-date",
            "2026-10-19",
            "--keywords-csv",
            "keywords.csv",
            "--keywords-csv",
            "other.csv",
            "--backlinks-csv",
            "backlinks.csv",
            "--deselect-keyword",
            "unrelated topic",
        ]
    )

    summary_path = audit_env / "out" / "2026_10_19_content_decay_audit.json"
    summary = json.loads(summary_path.read_text(encoding="utf-8"))

    candidates = summary["comparison"]["candidates"]
    assert [item["url"] for item in candidates] == [GUIDE, PRICING]
    assert candidates[0]["topic_match"] == "headless cms"

    keywords = {item["keyword"]: item for item in summary["keywords"]}
    assert keywords["headless cms migration"]["candidate_url"] == GUIDE
    assert keywords["unrelated topic"]["candidate_url"] == "unassigned"
    assert keywords["unrelated topic"]["is_selected"] is False
    assert keywords["cms"]["is_junk"] is True
    assert keywords["cms"]["candidate_url"] == GUIDE
    assert summary["keyword_match_stats"] == {"total": 3, "matched": 2, "unmatched": 1}

    assert summary["backlink_stats"] == {"total": 1, "target_pages": 1}
    assert summary["verdicts"] == []
    assert summary["analysis_failures"] == {}
    assert summary["comparison"]["period_a_rows"] == 2

    output = capsys.readouterr().out
    assert "Keyword import rejected: other.csv" in output
    assert "Period A: 2026-09-19..2026-10-16 | rows=2" in output


def test_unknown_mode_exits_with_configuration_error(audit_env, monkeypatch) -> None:
    monkeypatch.setenv("COMPARISON_MODE", "weekly")

    with pytest.raises(SystemExit, match="Invalid configuration"):
        main_module.main(["--run-date", "2026-10-19"])


def test_missing_gsc_configuration_exits(audit_env, monkeypatch) -> None:
    monkeypatch.delenv("GSC_CREDENTIALS_PATH")

    with pytest.raises(SystemExit, match="GSC is not configured"):
        main_module.main(["--run-date", "2026-10-19"])


def test_unparseable_verdict_still_writes_summary(audit_env, monkeypatch, capsys) -> None:
    monkeypatch.setenv("GAIA_ENDPOINT", "https://gaia.example.com")
    monkeypatch.setenv("GAIA_API_KEY", "secret")
    monkeypatch.setenv("GAIA_API_VERSION", "2024-06-01")
    monkeypatch.setenv("GAIA_MODEL", "gpt-4o")
    monkeypatch.setattr(
        main_module,
        "build_analysis_llm",
        lambda config: FakeListChatModel(responses=["sorry, no json"]),
    )

    main_module.main(["--run-date", "2026-10-19", "--keywords-csv", "keywords.csv", "--analyze"])

    summary_path = audit_env / "out" / "2026_10_19_content_decay_audit.json"
    summary = json.loads(summary_path.read_text(encoding="utf-8"))
    assert summary["verdicts"] == []
    assert list(summary["analysis_failures"]) == [GUIDE]
    assert f"Page analysis failed: {GUIDE}" in capsys.readouterr().out


def test_analyze_without_llm_configuration_exits_before_fetching(audit_env, monkeypatch) -> None:
    class UnreachableGSCClient:
        def __init__(self, **kwargs) -> None:
            raise AssertionError("Search Console must not be queried")

    monkeypatch.setattr(main_module, "GSCClient", UnreachableGSCClient)

    with pytest.raises(SystemExit, match="GAIA is not configured"):
        main_module.main(["--run-date", "2026-10-19", "--analyze"])
