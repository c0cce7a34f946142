from __future__ import annotations

import os
from dataclasses import dataclass

from content_decay_agent.errors import InvalidConfiguration
from content_decay_agent.models import FilterSettings


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return value if value else default.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidConfiguration(f"{name} must be an integer, got {raw!r}.") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_non_negative_int(name: str, default: int) -> int:
    value = _env_int(name, default)
    if value < 0:
        raise InvalidConfiguration(f"{name} must be >= 0, got {value}.")
    return value


@dataclass(frozen=True)
class AgentConfig:
    output_dir: str

    gsc_site_url: str
    gsc_credentials_path: str
    gsc_oauth_client_secret_path: str
    gsc_oauth_refresh_token: str
    gsc_oauth_token_uri: str
    gsc_page_size: int
    gsc_data_state: str

    comparison_mode: str
    period_a_start: str
    period_a_end: str
    period_b_start: str
    period_b_end: str
    impression_threshold: int
    clicks_drop_threshold: int
    blog_url_pattern: str
    topic_patterns: str

    use_llm_analysis: bool
    gaia_endpoint: str
    gaia_api_key: str
    gaia_api_version: str
    gaia_model: str
    gaia_temperature: float
    gaia_timeout_sec: int
    gaia_max_retries: int
    gaia_max_output_tokens: int

    @classmethod
    def from_env(cls) -> "AgentConfig":
        return cls(
            output_dir=_env("OUTPUT_DIR", "Content Decay Audits"),
            gsc_site_url=_env("GSC_SITE_URL"),
            gsc_credentials_path=_env("GSC_CREDENTIALS_PATH"),
            gsc_oauth_client_secret_path=_env("GSC_OAUTH_CLIENT_SECRET_PATH"),
            gsc_oauth_refresh_token=_env("GSC_OAUTH_REFRESH_TOKEN"),
            gsc_oauth_token_uri=_env(
                "GSC_OAUTH_TOKEN_URI", "https://oauth2.googleapis.com/token"
            ),
            gsc_page_size=max(1, _env_int("GSC_PAGE_SIZE", 25000)),
            gsc_data_state=_env("GSC_DATA_STATE", "final"),
            comparison_mode=_env("COMPARISON_MODE", "28d").lower(),
            period_a_start=_env("PERIOD_A_START"),
            period_a_end=_env("PERIOD_A_END"),
            period_b_start=_env("PERIOD_B_START"),
            period_b_end=_env("PERIOD_B_END"),
            impression_threshold=_env_non_negative_int("IMPRESSION_THRESHOLD", 100),
            clicks_drop_threshold=_env_non_negative_int("CLICKS_DROP_THRESHOLD", 20),
            blog_url_pattern=_env("BLOG_URL_PATTERN", "/blog/"),
            topic_patterns=_env("TOPIC_PATTERNS"),
            use_llm_analysis=_env_bool("USE_LLM_ANALYSIS", False),
            gaia_endpoint=_env("GAIA_ENDPOINT"),
            gaia_api_key=_env("GAIA_API_KEY") or _env("OPENAI_API_KEY"),
            gaia_api_version=_env("GAIA_API_VERSION"),
            gaia_model=_env("GAIA_MODEL"),
            gaia_temperature=_env_float("GAIA_TEMPERATURE", 0.2),
            gaia_timeout_sec=_env_int("GAIA_TIMEOUT_SEC", 120),
            gaia_max_retries=_env_int("GAIA_MAX_RETRIES", 2),
            gaia_max_output_tokens=_env_int("GAIA_MAX_OUTPUT_TOKENS", 1800),
        )

    @property
    def gsc_enabled(self) -> bool:
        if not self.gsc_site_url:
            return False
        has_service_account = bool(self.gsc_credentials_path)
        has_oauth = bool(
            self.gsc_oauth_client_secret_path and self.gsc_oauth_refresh_token
        )
        return has_service_account or has_oauth

    @property
    def gaia_llm_enabled(self) -> bool:
        return bool(
            self.gaia_endpoint
            and self.gaia_api_key
            and self.gaia_api_version
            and self.gaia_model
        )

    @property
    def period_overrides(self) -> dict[str, str]:
        return {
            "period_a_start": self.period_a_start,
            "period_a_end": self.period_a_end,
            "period_b_start": self.period_b_start,
            "period_b_end": self.period_b_end,
        }

    @property
    def filter_settings(self) -> FilterSettings:
        return FilterSettings(
            blog_url_pattern=self.blog_url_pattern,
            impression_threshold=self.impression_threshold,
            clicks_drop_threshold=self.clicks_drop_threshold,
            topic_patterns=self.topic_patterns,
        )
