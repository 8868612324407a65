"""Rendering of semi-structured record fields as readable text.

The model often answers list-like fields with a JSON array or object encoded as
a string. Those are rewritten as bullet lines or ``key: value`` lines; anything
else is only trimmed. The output never parses as JSON again, so running the
normalizer twice changes nothing.
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Optional

from .models import PolicyRecord

NORMALIZED_FIELDS = (
    "key_provisions",
    "company_obligations",
    "affected_stakeholders",
    "penalties_fines",
    "implementation_notes",
    "notes_commentary",
)

BULLET = "• "


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return json.dumps(value, ensure_ascii=False)


def normalize_text(value: Optional[str]) -> Optional[str]:
    """Normalize one field value."""
    if value is None:
        return None
    text = value.strip()
    if not text or text[0] not in "[{":
        return text

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return text

    if isinstance(parsed, list):
        items = [item.strip() for item in parsed if isinstance(item, str)]
        return "\n".join(f"{BULLET}{item}" for item in items if item).strip()
    if isinstance(parsed, dict):
        lines = (f"{str(key).strip()}: {_format_value(val)}" for key, val in parsed.items())
        rendered = "\n".join(lines).strip()
        # A key that itself looks like JSON can render into valid JSON; keep the input then.
        return text if _parses_as_json(rendered) else rendered
    return text


def _parses_as_json(text: str) -> bool:
    if not text or text[0] not in "[{":
        return False
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


def normalize_record(record: PolicyRecord) -> PolicyRecord:
    """Return a copy of ``record`` with the free-text fields normalized."""
    return replace(
        record,
        **{name: normalize_text(getattr(record, name)) for name in NORMALIZED_FIELDS},
    )
