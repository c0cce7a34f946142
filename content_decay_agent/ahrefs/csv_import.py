from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from typing import BinaryIO

import pandas as pd

from content_decay_agent.errors import EmptyImportError, ImportRejected, UnknownSchemaError


ORGANIC_KEYWORDS = "organic-keywords"
BACKLINKS = "backlinks"
UNKNOWN = "unknown"

ORGANIC_KEYWORDS_MARKERS = ("Keyword", "Volume", "Current organic traffic")
BACKLINKS_MARKERS = ("Referring page URL", "Domain rating", "Target URL")

# Exports saved from spreadsheets are not always UTF-8.
_ENCODING_TRIALS = ("utf-8-sig", "utf-16", "cp1252")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass
class ParsedCSV:
    file_type: str
    file_name: str
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def clean_cell(value: object) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text.strip()


def parse_number(value: object) -> float:
    """Lenient numeric cell: thousands separators and quotes are ignored, junk is 0."""
    if value is None:
        return 0.0
    cleaned = str(value).replace('"', "").replace(",", "").strip()
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return 0.0
    return float(match.group(0))


def detect_file_type(headers: list[str]) -> str:
    normalized = {clean_cell(header) for header in headers}
    if all(marker in normalized for marker in ORGANIC_KEYWORDS_MARKERS):
        return ORGANIC_KEYWORDS
    if all(marker in normalized for marker in BACKLINKS_MARKERS):
        return BACKLINKS
    return UNKNOWN


def _marker_list(file_type: str) -> str:
    markers = ORGANIC_KEYWORDS_MARKERS if file_type == ORGANIC_KEYWORDS else BACKLINKS_MARKERS
    return ", ".join(markers)


def _read_frame(raw: bytes, file_name: str) -> pd.DataFrame:
    last_error: Exception | None = None
    for encoding in _ENCODING_TRIALS:
        try:
            # Without an index column, extra trailing fields are dropped and short rows padded.
            return pd.read_csv(
                io.BytesIO(raw),
                encoding=encoding,
                sep=",",
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                index_col=False,
                engine="python",
            )
        except pd.errors.EmptyDataError as exc:
            raise ImportRejected(file_name, "file has no header row") from exc
        except (UnicodeError, pd.errors.ParserError) as exc:
            last_error = exc
    raise ImportRejected(file_name, f"could not parse CSV: {last_error}") from last_error


def read_ahrefs_csv(source: bytes | BinaryIO, file_name: str = "upload.csv") -> ParsedCSV:
    """Parse an uploaded export and classify it by its header row."""
    raw = source if isinstance(source, bytes) else source.read()
    if not raw.strip():
        raise ImportRejected(file_name, "file is empty")

    frame = _read_frame(raw, file_name)
    headers = [clean_cell(column) for column in frame.columns]
    frame.columns = headers
    rows = [
        {str(key): "" if pd.isna(value) else str(value) for key, value in record.items()}
        for record in frame.to_dict(orient="records")
    ]
    return ParsedCSV(
        file_type=detect_file_type(headers),
        file_name=file_name,
        headers=headers,
        rows=rows,
    )


def ensure_importable(parsed: ParsedCSV, expected_type: str | None = None) -> ParsedCSV:
    if parsed.file_type == UNKNOWN:
        raise UnknownSchemaError(
            parsed.file_name,
            "unrecognised export. Expected columns "
            f"{', '.join(ORGANIC_KEYWORDS_MARKERS)} (organic keywords) or "
            f"{', '.join(BACKLINKS_MARKERS)} (backlinks).",
        )
    if expected_type and parsed.file_type != expected_type:
        raise ImportRejected(
            parsed.file_name,
            f"expected a {expected_type} export, got {parsed.file_type}. "
            f"Expected columns {_marker_list(expected_type)}.",
        )
    if parsed.row_count == 0:
        raise EmptyImportError(
            parsed.file_name,
            f"{parsed.file_type} export has 0 data rows. "
            f"Expected columns {_marker_list(parsed.file_type)} followed by data.",
        )
    return parsed
