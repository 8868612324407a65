"""Parsing utilities shared by the source connectors and the extraction engine."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Sequence, Union

from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from dateutil import tz

AI_TERMS: Sequence[str] = (
    "artificial intelligence",
    "AI",
    "machine learning",
    "ML",
    "algorithmic",
    "algorithm",
    "neural network",
    "deep learning",
    "automated decision",
    "AI system",
    "AI model",
    "generative AI",
    "large language model",
    "LLM",
    "foundation model",
)

_WHITESPACE_RE = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def html_to_text(html: Optional[str]) -> str:
    """Strip markup from an HTML fragment and collapse whitespace."""
    if not html:
        return ""
    if "<" not in html and "&" not in html:
        return _collapse_whitespace(html)
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return _collapse_whitespace(soup.get_text(" "))


def _collapse_whitespace(text: str) -> str:
    lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in text.splitlines()]
    joined = "\n".join(line for line in lines if line)
    return _BLANK_LINES_RE.sub("\n", joined).strip()


def normalize_publish_date(
    value: Optional[Union[str, datetime]],
    *,
    default_timezone: Union[str, tz.tzfile, None] = "UTC",
) -> Optional[str]:
    """Normalize publish dates to ISO8601 UTC format with Z suffix."""
    if value is None:
        return None

    if isinstance(value, datetime):
        dt = value
    else:
        dt = date_parser.parse(value)

    if dt.tzinfo is None:
        tzinfo = tz.gettz(default_timezone) if isinstance(default_timezone, str) else default_timezone
        if tzinfo is None:
            tzinfo = timezone.utc
        dt = dt.replace(tzinfo=tzinfo)

    dt_utc = dt.astimezone(timezone.utc)
    dt_utc = dt_utc.replace(microsecond=0)
    iso = dt_utc.isoformat()
    if iso.endswith("+00:00"):
        iso = iso[:-6] + "Z"
    return iso


def normalize_calendar_date(value: Optional[Union[str, date]]) -> Optional[str]:
    """Reduce a date-ish value to ``YYYY-MM-DD``; anything unparseable becomes None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not text or text.lower() in {"null", "none", "n/a", "unknown"}:
        return None
    try:
        return date_parser.parse(text).date().isoformat()
    except (ValueError, OverflowError):
        return None


def utc_now_iso() -> str:
    return normalize_publish_date(datetime.now(timezone.utc))


def contains_ai_terms(*texts: Optional[str], terms: Iterable[str] = AI_TERMS) -> bool:
    """True if any single text contains an AI term (case-insensitive).

    Texts are checked one at a time, so a multi-word term never matches across
    the boundary between a title and its description.
    """
    lowered_terms = [term.lower() for term in terms]
    return any(
        term in text.lower()
        for text in texts
        if text
        for term in lowered_terms
    )


def truncate_text(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars]
