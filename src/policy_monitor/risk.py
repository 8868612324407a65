"""Deterministic risk classification for extracted policy records.

The model is asked for a risk level, but it sometimes omits it or answers with
something outside the allowed set. A stored record must always carry one, so
``RiskClassifier`` assigns a level from the record's other fields.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .logging_config import get_logger
from .models import RISK_LEVELS

logger = get_logger("risk")


def _lower(value: Any) -> str:
    if value is None:
        return ""
    return str(value).lower()


class RiskClassifier:
    """Fallback rules, evaluated in order; the first match wins."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    DEFAULT = MEDIUM

    PENALTY_KEYWORDS = ("fine", "penalty")

    @staticmethod
    def is_valid(value: Any) -> bool:
        return isinstance(value, str) and value in RISK_LEVELS

    def classify(self, record: Mapping[str, Any]) -> str:
        penalties = _lower(record.get("penalties_fines"))
        if penalties and any(keyword in penalties for keyword in self.PENALTY_KEYWORDS):
            return self.HIGH

        status = record.get("status")
        if status == "Enacted" and record.get("company_obligations"):
            return self.MEDIUM

        if status == "Proposed" or "guideline" in _lower(record.get("policy_type")):
            return self.LOW

        return self.DEFAULT

    def ensure(self, record: dict) -> Optional[str]:
        """Fill in ``risk_classification`` when it is missing or invalid.

        Returns the level that was assigned, or None when the record already
        had a valid one.
        """
        if self.is_valid(record.get("risk_classification")):
            return None
        level = self.classify(record)
        record["risk_classification"] = level
        logger.info(
            f"Applied fallback risk classification: {level} "
            f"for policy: {record.get('policy_name') or 'Unknown'}"
        )
        return level
