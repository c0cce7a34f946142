"""Keyword -> page matching by URL slug.

The organic keywords export is domain-level and has no URL column, so a
keyword is attributed to the candidate page whose last path segment covers
the largest share of the keyword's tokens.
"""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urlparse


MIN_TOKEN_OVERLAP = 0.4


def normalize_url(url: str) -> str:
    try:
        parsed = urlparse(url)
    except ValueError:
        parsed = None
    if parsed is not None and parsed.scheme and parsed.netloc:
        path = parsed.path or "/"
    else:
        path = url
    if path.endswith("/"):
        path = path[:-1]
    return path.lower()


def tokenize(text: str) -> list[str]:
    cleaned = re.sub(r"[^a-z0-9\s-]", "", text.lower())
    return [token for token in re.split(r"[\s-]+", cleaned) if len(token) > 1]


def slug_tokens(url: str) -> list[str]:
    return tokenize(normalize_url(url).split("/")[-1])


def token_overlap(keyword_tokens: list[str], tokens: list[str]) -> float:
    if not keyword_tokens:
        return 0.0
    available = set(tokens)
    matches = sum(1 for token in keyword_tokens if token in available)
    return matches / len(keyword_tokens)


def match_keyword_to_page(keyword: str, candidate_urls: Iterable[str]) -> str | None:
    keyword_tokens = tokenize(keyword)
    if not keyword_tokens:
        return None

    best_url: str | None = None
    best_score = 0.0
    for url in candidate_urls:
        tokens = slug_tokens(url)
        if not tokens:
            continue
        score = token_overlap(keyword_tokens, tokens)
        if score > best_score:
            best_score = score
            best_url = url

    return best_url if best_score >= MIN_TOKEN_OVERLAP else None
