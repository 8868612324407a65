"""Fakes shared by the policy monitor tests."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Union

from src.policy_monitor.collector import BaseCollector
from src.policy_monitor.models import (
    CollectorConfig,
    CollectorStats,
    RawDocument,
    SourceInfo,
    SourceType,
)

FEEDS_DIR = Path(__file__).parent.parent / "data" / "feeds"


class FakeLLM:
    """Model client that answers by source URL.

    ``responses`` maps a URL to either the raw text to return or an exception
    to raise. Calls are recorded for assertions.
    """

    def __init__(self, responses: Optional[Dict[str, Union[str, Exception]]] = None, default: str = "") -> None:
        self.responses = responses or {}
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
        self.calls.append({"system": system_prompt, "user": user_prompt, **kwargs})
        for url, response in self.responses.items():
            if f"Source URL: {url}" in user_prompt:
                if isinstance(response, Exception):
                    raise response
                return response
        return self.default


def policy_json(**overrides: Any) -> str:
    data = {
        "policy_name": "Federal AI Risk Management Rule",
        "jurisdiction": "United States",
        "issuing_body": "NIST",
        "date_introduced": "2024-03-01",
        "date_enacted": None,
        "status": "Proposed",
        "policy_type": "Regulation",
        "scope_coverage": "Federal agencies using AI systems",
        "key_provisions": ["Risk assessments", "Incident reporting"],
        "risk_classification": "Medium",
        "company_obligations": "Vendors must document model testing",
        "penalties_fines": None,
        "affected_stakeholders": ["Agencies", "Vendors"],
        "implementation_notes": None,
        "latest_update": None,
        "source_reference_link": "https://model.invented/link",
        "monitoring_org": "OMB",
        "notes_commentary": None,
        "next_review_date": None,
        "confidence_score": 85,
    }
    data.update(overrides)
    return json.dumps(data)


def make_document(
    title: str = "Agency Releases AI Governance Framework",
    url: str = "https://www.federalregister.gov/documents/2024/05/01/ai-framework",
    content: str = "The framework sets risk management requirements for AI systems.",
    source_type: SourceType = SourceType.FEDERAL_REGISTER,
) -> RawDocument:
    return RawDocument(
        title=title,
        description=content[:80],
        content=content,
        url=url,
        published_at="2024-05-01T00:00:00Z",
        source=SourceInfo(name="Test Source", type=source_type),
    )


class StaticCollector(BaseCollector):
    """Collector returning a fixed list of documents."""

    source_type = SourceType.FEDERAL_REGISTER

    def __init__(self, documents: List[RawDocument], name: str = "static") -> None:
        super().__init__(CollectorConfig(name=name))
        self.documents = documents
        self.calls: List[Optional[int]] = []

    async def _collect_documents(self, stats: CollectorStats, days_back: Optional[int]) -> List[RawDocument]:
        self.calls.append(days_back)
        return list(self.documents)


class ExplodingCollector(BaseCollector):
    """Collector whose source always fails."""

    source_type = SourceType.AGENCY_RSS

    def __init__(self, name: str = "exploding") -> None:
        super().__init__(CollectorConfig(name=name))

    async def _collect_documents(self, stats: CollectorStats, days_back: Optional[int]) -> List[RawDocument]:
        raise RuntimeError("source unavailable")



class FakeHTTPClient:
    """HTTP client serving canned payloads by URL.

    Values may be text, JSON-like objects or exceptions. ``get_json`` payloads
    can also be a callable taking the query params.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None) -> None:
        self.routes = routes or {}
        self.requests: List[Dict[str, Any]] = []

    def _lookup(self, url: str, params: Optional[Dict[str, Any]]) -> Any:
        self.requests.append({"url": url, "params": params})
        if url not in self.routes:
            raise RuntimeError(f"no route for {url}")
        value = self.routes[url]
        if callable(value):
            value = value(params or {})
        if isinstance(value, Exception):
            raise value
        return value

    async def get_json(self, url: str, *, params=None, stats=None) -> Any:
        return self._lookup(url, params)

    async def get_async(self, url: str, *, stats=None, **kwargs: Any) -> Any:
        return SimpleNamespace(text=self._lookup(url, kwargs.get("params")))


class CountingRateLimiter:
    def __init__(self) -> None:
        self.waits = 0

    async def wait(self) -> None:
        self.waits += 1
