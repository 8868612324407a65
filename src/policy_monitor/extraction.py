"""Extraction engine: turns document text into a structured policy record.

The model is sent the document plus a fixed instruction set and is expected to
answer with one JSON object. Whatever comes back is cleaned, coerced into the
record's field shapes, given a risk level if it lacks a valid one and then
gated on confidence. Every failure mode ends in ``None`` for that document;
nothing raised here reaches the pipeline.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .errors import ExtractionError
from .llm_client import LLMClient
from .logging_config import get_logger
from .models import POLICY_STATUSES, RISK_LEVELS, PolicyRecord
from .parser_utils import normalize_calendar_date, truncate_text
from .risk import RiskClassifier

logger = get_logger("extraction")

TEMPLATE_DIR = Path(__file__).parent / "templates"
EXTRACTION_TEMPLATE = "extraction_prompt.j2"

EXTRACTION_SYSTEM_PROMPT = (
    "You are an expert AI policy analyst. Extract structured information from policy "
    "documents and news articles. Return valid JSON only."
)
SUMMARY_SYSTEM_PROMPT = (
    "You are an AI policy expert. Provide concise, accurate summaries of AI policies "
    "and regulations."
)
SUMMARY_UNAVAILABLE = "Summary not available"

DATE_FIELDS = ("date_introduced", "date_enacted", "latest_update", "next_review_date")
TEXT_FIELDS = (
    "policy_name",
    "jurisdiction",
    "issuing_body",
    "policy_type",
    "scope_coverage",
    "key_provisions",
    "company_obligations",
    "penalties_fines",
    "affected_stakeholders",
    "implementation_notes",
    "monitoring_org",
    "notes_commentary",
)

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")

_STATUS_LOOKUP = {status.lower(): status for status in POLICY_STATUSES}


def strip_code_fences(content: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN_RE.sub("", cleaned)
        cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def _coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False) if value else None
    text = str(value).strip()
    return text or None


def _coerce_confidence(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        score = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


class ExtractionEngine:
    """Language-model backed extraction of ``PolicyRecord`` values."""

    def __init__(
        self,
        llm: LLMClient,
        *,
        confidence_threshold: int = 40,
        max_document_chars: int = 12000,
        template_dir: Optional[Path] = None,
        risk_classifier: Optional[RiskClassifier] = None,
    ) -> None:
        self.llm = llm
        self.confidence_threshold = confidence_threshold
        self.max_document_chars = max_document_chars
        self.risk_classifier = risk_classifier or RiskClassifier()
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
            keep_trailing_newline=True,
        )

    def render_prompt(self, document_text: str, source_url: str) -> str:
        template = self.jinja_env.get_template(EXTRACTION_TEMPLATE)
        return template.render(
            document_text=truncate_text(document_text, self.max_document_chars),
            source_url=source_url,
            statuses=POLICY_STATUSES,
            risk_levels=RISK_LEVELS,
        )

    async def extract(self, document_text: str, source_url: str) -> Optional[PolicyRecord]:
        """Extract a policy record from ``document_text``.

        Returns None when the model call fails, the answer is not usable JSON,
        the confidence is below the threshold or no policy name came back.
        ``source_reference_link`` is always ``source_url``.
        """
        try:
            prompt = self.render_prompt(document_text, source_url)
            content = await self.llm.complete(EXTRACTION_SYSTEM_PROMPT, prompt)
        except Exception as exc:
            logger.error(f"Model extraction call failed for {source_url}: {exc}")
            return None

        try:
            data = self.parse_response(content)
            return self.build_record(data, source_url)
        except ExtractionError as exc:
            logger.error(f"Failed to parse model response for {source_url}: {exc}")
            logger.error(f"Raw content: {exc.raw_content}")
            return None
        except Exception as exc:
            logger.exception(f"Unexpected extraction failure for {source_url}: {exc}")
            return None

    def parse_response(self, content: Optional[str]) -> Dict[str, Any]:
        if not content or not content.strip():
            raise ExtractionError("empty model response", raw_content=content)
        cleaned = strip_code_fences(content)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ExtractionError(f"invalid JSON: {exc}", raw_content=content) from exc
        if not isinstance(data, dict):
            raise ExtractionError(
                f"expected a JSON object, got {type(data).__name__}", raw_content=content
            )
        return data

    def coerce_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Bring model output into the shapes ``PolicyRecord`` stores."""
        record: Dict[str, Any] = {}
        for name in TEXT_FIELDS:
            record[name] = _coerce_text(data.get(name))
        for name in DATE_FIELDS:
            record[name] = normalize_calendar_date(_coerce_text(data.get(name)))

        status = _coerce_text(data.get("status"))
        record["status"] = _STATUS_LOOKUP.get(status.lower()) if status else None

        risk = _coerce_text(data.get("risk_classification"))
        record["risk_classification"] = risk if risk in RISK_LEVELS else None

        record["confidence_score"] = _coerce_confidence(data.get("confidence_score"))
        return record

    def build_record(self, data: Dict[str, Any], source_url: str) -> Optional[PolicyRecord]:
        record = self.coerce_fields(data)
        self.risk_classifier.ensure(record)

        score = record["confidence_score"]
        if score < self.confidence_threshold:
            logger.info(f"Low confidence policy ({score}%): {record.get('policy_name') or 'Unknown'}")
            return None

        if not record.get("policy_name"):
            logger.warning(f"Discarding extraction without policy_name from {source_url}")
            return None

        record["source_reference_link"] = source_url
        logger.info(f"Found policy ({score}% confidence): {record['policy_name']}")
        return PolicyRecord.from_dict(record)

    async def summarize(self, policy_text: str) -> str:
        """Two or three sentence summary of a policy, or a placeholder on failure."""
        try:
            content = await self.llm.complete(
                SUMMARY_SYSTEM_PROMPT,
                "Summarize this AI policy in 2-3 sentences, focusing on key requirements "
                f"and impact:\n\n{truncate_text(policy_text, self.max_document_chars)}",
                temperature=0.3,
                max_tokens=200,
            )
        except Exception as exc:
            logger.error(f"Model summarization call failed: {exc}")
            return SUMMARY_UNAVAILABLE
        return content.strip() if content and content.strip() else SUMMARY_UNAVAILABLE
