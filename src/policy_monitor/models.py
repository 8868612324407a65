"""Data models for the policy monitor pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceType(str, Enum):
    """Source families a document can come from."""

    FEDERAL_REGISTER = "federal_register"
    WHITE_HOUSE = "white_house"
    CONGRESS = "congress"
    EU_COMMISSION = "eu_commission"
    AGENCY_RSS = "agency_rss"


POLICY_STATUSES = ("Proposed", "Under Review", "Enacted", "Amended", "Repealed", "Expired")
RISK_LEVELS = ("Low", "Medium", "High", "Critical")


@dataclass(frozen=True)
class SourceInfo:
    """Publisher of a raw document."""

    name: str
    type: SourceType


@dataclass
class RawDocument:
    """A fetched publication, consumed once by the extraction engine.

    Connectors drop anything without a title or URL before it gets here.
    """

    title: str
    description: str
    content: str
    url: str
    published_at: str
    source: SourceInfo
    document_type: Optional[str] = None
    agency: Optional[str] = None

    @property
    def dedupe_key(self) -> tuple[str, str]:
        return (self.title, self.url)


@dataclass
class PolicyRecord:
    """Canonical structured AI policy record."""

    policy_name: str
    jurisdiction: Optional[str] = None
    issuing_body: Optional[str] = None
    date_introduced: Optional[str] = None
    date_enacted: Optional[str] = None
    status: Optional[str] = None
    policy_type: Optional[str] = None
    scope_coverage: Optional[str] = None
    key_provisions: Optional[str] = None
    risk_classification: Optional[str] = None
    company_obligations: Optional[str] = None
    penalties_fines: Optional[str] = None
    affected_stakeholders: Optional[str] = None
    implementation_notes: Optional[str] = None
    latest_update: Optional[str] = None
    source_reference_link: str = ""
    monitoring_org: Optional[str] = None
    notes_commentary: Optional[str] = None
    next_review_date: Optional[str] = None
    confidence_score: int = 0
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    STORE_MANAGED = ("id", "created_at", "updated_at")

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyRecord":
        """Build a record from a dict, ignoring unknown keys."""
        known = set(cls.field_names())
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_db_params(self) -> Dict[str, Any]:
        """Column values for an insert, without store-managed fields."""
        return {
            key: value
            for key, value in self.to_dict().items()
            if key not in self.STORE_MANAGED
        }


@dataclass
class ProcessingResult:
    """Per-run ingestion counters returned to the caller."""

    processed: int = 0
    added: int = 0
    duplicates: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class RescanSummary:
    """Outcome of one update scan over stored records."""

    checked: int = 0
    matched_documents: int = 0
    updated: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class CollectorConfig:
    """Per-collector HTTP and identity settings."""

    name: str
    enabled: bool = True
    timeout_seconds: float = 30.0
    max_retries: int = 2
    retry_base_delay: float = 1.0
    retry_exponential_base: float = 2.0
    retry_max_delay: float = 30.0
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class CollectorError:
    """A single failure observed while collecting from a source."""

    collector_name: str
    error_type: str
    message: str
    url: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class CollectorStats:
    """Telemetry for one collector run."""

    collector_name: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    records_collected: int = 0
    records_failed: int = 0
    http_requests: int = 0
    retry_attempts: int = 0
    errors: List[CollectorError] = field(default_factory=list)

    def add_error(self, error: CollectorError) -> None:
        self.errors.append(error)
        self.records_failed += 1

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def success_rate(self) -> float:
        total = self.records_collected + self.records_failed
        if total == 0:
            return 100.0
        return self.records_collected / total * 100.0


@dataclass
class CollectionResult:
    """Documents and telemetry produced by one collector."""

    collector_name: str
    documents: List[RawDocument]
    stats: Optional[CollectorStats] = None
    success: bool = True
    error_message: Optional[str] = None

    @property
    def document_count(self) -> int:
        return len(self.documents)


@dataclass
class CollectorManagerResult:
    """Merged output of all collectors in one aggregation pass."""

    documents: List[RawDocument]
    errors: List[CollectorError]
    stats: Dict[str, CollectorStats]
    success: bool
    counts: Dict[str, int] = field(default_factory=dict)
