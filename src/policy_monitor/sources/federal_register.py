"""Federal Register search API connector."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from ..collector import BaseCollector
from ..config import SearchApiConfig
from ..http_client import HTTPClient
from ..models import CollectorConfig, CollectorError, CollectorStats, RawDocument, SourceType
from ..parser_utils import html_to_text, normalize_publish_date, utc_now_iso
from ..rate_limit import NoopRateLimiter, RateLimiter


class FederalRegisterCollector(BaseCollector):
    """Query the Federal Register once per AI search term.

    Terms are queried sequentially, newest first, with the injected rate limiter
    spacing the requests. A failing term is logged and skipped; the rest still
    contribute documents. Output is deduplicated by ``(title, url)``.
    """

    source_type = SourceType.FEDERAL_REGISTER

    def __init__(
        self,
        search: Optional[SearchApiConfig] = None,
        config: Optional[CollectorConfig] = None,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        http_client: Optional[HTTPClient] = None,
        today: Optional[date] = None,
    ) -> None:
        super().__init__(config or CollectorConfig(name="Federal Register"), http_client=http_client)
        self.search = search or SearchApiConfig()
        self.rate_limiter = rate_limiter or NoopRateLimiter()
        self._today = today

    def build_params(self, term: str, days_back: Optional[int]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "conditions[term]": term,
            "per_page": min(self.search.page_size, 20),
            "order": self.search.order,
        }
        if days_back is not None:
            start = (self._today or date.today()) - timedelta(days=days_back)
            params["conditions[publication_date][gte]"] = start.isoformat()
        return params

    async def _collect_documents(
        self, stats: CollectorStats, days_back: Optional[int]
    ) -> List[RawDocument]:
        seen = set()
        documents: List[RawDocument] = []

        for term in self.search.terms:
            await self.rate_limiter.wait()
            try:
                payload = await self.http_client.get_json(
                    self.search.endpoint,
                    params=self.build_params(term, days_back),
                    stats=stats,
                )
            except Exception as exc:
                stats.add_error(
                    CollectorError(
                        collector_name=self.name,
                        error_type=type(exc).__name__,
                        message=f"term {term!r}: {exc}",
                        url=self.search.endpoint,
                    )
                )
                self.logger.error(f"Federal Register search for {term!r} failed: {exc}")
                continue

            results = (payload.get("results") or []) if isinstance(payload, dict) else []
            self.logger.debug(f"Federal Register term {term!r}: {len(results)} results")

            for article in results:
                document = self._to_document(article)
                if document is None or document.dedupe_key in seen:
                    continue
                seen.add(document.dedupe_key)
                documents.append(document)

        return documents

    def _to_document(self, article: Dict[str, Any]) -> Optional[RawDocument]:
        title = (article.get("title") or "").strip()
        url = (article.get("html_url") or "").strip()
        if not title or not url:
            return None

        abstract = html_to_text(article.get("abstract"))
        summary = html_to_text(article.get("summary"))
        content = "\n\n".join(part for part in (abstract, summary) if part)

        published_at = None
        if article.get("publication_date"):
            try:
                published_at = normalize_publish_date(article["publication_date"])
            except (ValueError, OverflowError):
                self.logger.warning(f"Bad publication_date on {url}: {article['publication_date']!r}")

        agencies = article.get("agencies") or []
        agency = None
        if agencies and isinstance(agencies[0], dict):
            agency = agencies[0].get("name") or agencies[0].get("raw_name")

        return RawDocument(
            title=title,
            description=abstract or summary,
            content=content,
            url=url,
            published_at=published_at or utc_now_iso(),
            source=self.source_info,
            document_type=article.get("type"),
            agency=agency,
        )
