"""Tests for the ingestion pipeline and the update scanner."""

from datetime import datetime, timezone

import pytest

from policy_fakes import CountingRateLimiter, FakeLLM, StaticCollector, make_document, policy_json
from src.policy_monitor.collector_manager import SourceAggregator
from src.policy_monitor.errors import PersistenceError
from src.policy_monitor.extraction import ExtractionEngine
from src.policy_monitor.gateway import PolicyGateway
from src.policy_monitor.models import PolicyRecord
from src.policy_monitor.processor import PolicyProcessor, document_text, has_significant_changes


def _processor(documents, responses, gateway, **kwargs):
    aggregator = SourceAggregator([StaticCollector(documents)])
    return PolicyProcessor(aggregator, ExtractionEngine(FakeLLM(responses)), gateway, **kwargs)


class FailingInsertGateway(PolicyGateway):
    def __init__(self, database, failing_name):
        super().__init__(database)
        self.failing_name = failing_name

    async def insert(self, record):
        if record.policy_name == self.failing_name:
            raise PersistenceError("insert", "disk I/O error")
        return await super().insert(record)


@pytest.mark.asyncio
async def test_mixed_batch_adds_only_confident_new_policy(gateway, policy_db):
    documents = [
        make_document(title="AI hearing transcript", url="https://example.gov/1"),
        make_document(title="AI research grant", url="https://example.gov/2"),
        make_document(title="AI risk rule", url="https://example.gov/3"),
    ]
    responses = {
        "https://example.gov/1": "not json",
        "https://example.gov/2": policy_json(policy_name="Grant notice", confidence_score=35),
        "https://example.gov/3": policy_json(confidence_score=85),
    }
    limiter = CountingRateLimiter()
    processor = _processor(documents, responses, gateway, ingestion_limiter=limiter)

    result = await processor.process_latest_policies(trigger="test")

    assert result.to_dict() == {"processed": 3, "added": 1, "duplicates": 0, "errors": 0}
    assert limiter.waits == 3
    stored = policy_db.get_reviewable_policies("2000-01-01T00:00:00Z", "2000-01-01")
    assert [p.source_reference_link for p in stored] == ["https://example.gov/3"]
    assert stored[0].key_provisions == "• Risk assessments\n• Incident reporting"
    run = policy_db.get_last_ingestion_run()
    assert run["status"] == "completed"
    assert run["added"] == 1


@pytest.mark.asyncio
async def test_existing_policy_name_counts_as_duplicate(gateway, policy_db):
    policy_db.insert_policy(
        PolicyRecord(policy_name="Federal AI Risk Management Rule", risk_classification="Low")
    )
    processor = _processor(
        [make_document(url="https://example.gov/new")],
        {"https://example.gov/new": policy_json()},
        gateway,
    )

    result = await processor.process_latest_policies()

    assert result.to_dict() == {"processed": 1, "added": 0, "duplicates": 1, "errors": 0}


@pytest.mark.asyncio
async def test_insert_failure_counts_as_error(policy_db):
    documents = [
        make_document(url="https://example.gov/a"),
        make_document(url="https://example.gov/b"),
    ]
    responses = {
        "https://example.gov/a": policy_json(policy_name="Rule A"),
        "https://example.gov/b": policy_json(policy_name="Rule B"),
    }
    processor = _processor(documents, responses, FailingInsertGateway(policy_db, "Rule A"))

    result = await processor.process_latest_policies()

    assert result.to_dict() == {"processed": 2, "added": 1, "duplicates": 0, "errors": 1}


@pytest.mark.asyncio
async def test_default_days_back_is_used(gateway):
    collector = StaticCollector([])
    processor = PolicyProcessor(
        SourceAggregator([collector]), ExtractionEngine(FakeLLM()), gateway, default_days_back=14
    )

    await processor.process_latest_policies()
    await processor.process_latest_policies(3)

    assert collector.calls == [14, 3]


@pytest.mark.asyncio
async def test_aggregator_failure_marks_run_failed(gateway, policy_db):
    class BrokenAggregator:
        async def fetch_all(self, days_back=None):
            raise RuntimeError("network down")

    processor = PolicyProcessor(BrokenAggregator(), ExtractionEngine(FakeLLM()), gateway)

    with pytest.raises(RuntimeError):
        await processor.process_latest_policies()

    run = policy_db.get_last_ingestion_run()
    assert run["status"] == "failed"
    assert run["metadata"] == {"error": "network down"}


def test_document_text_prefers_content():
    assert document_text(make_document(content="Full text")) == "Full text"
    empty = make_document(content="  ")
    assert document_text(empty) == f"{empty.title}\n\n{empty.description}"


STORED = PolicyRecord(
    policy_name="Act",
    status="Proposed",
    date_enacted="2024-01-01",
    key_provisions="• Audits",
    penalties_fines="None",
)


@pytest.mark.parametrize(
    "field, new_value",
    [
        ("status", "Enacted"),
        ("date_enacted", "2024-05-17"),
        ("key_provisions", "• Audits\n• Incident reporting"),
        ("penalties_fines", "Up to $20,000 per violation"),
    ],
)
def test_new_value_in_significant_field_is_a_change(field, new_value):
    candidate = PolicyRecord(policy_name="Act", **{field: new_value})

    assert has_significant_changes(STORED, candidate)


@pytest.mark.parametrize("field", ["status", "date_enacted", "key_provisions", "penalties_fines"])
def test_same_or_missing_value_is_not_a_change(field):
    same = PolicyRecord(policy_name="Act", **{field: getattr(STORED, field)})
    missing = PolicyRecord(policy_name="Act", **{field: None})

    assert not has_significant_changes(STORED, same)
    assert not has_significant_changes(STORED, missing)


def test_other_fields_are_not_significant():
    candidate = PolicyRecord(policy_name="Act", scope_coverage="New scope", risk_classification="High")

    assert not has_significant_changes(STORED, candidate)


@pytest.mark.asyncio
async def test_rescan_updates_policy_with_material_change(gateway, policy_db):
    policy_id = policy_db.insert_policy(
        PolicyRecord(
            policy_name="Colorado AI Act",
            status="Proposed",
            risk_classification="Medium",
            source_reference_link="https://leg.colorado.gov/sb24-205",
        )
    )
    documents = [
        make_document(title="Governor signs Colorado AI Act", url="https://news.example/signed"),
        make_document(title="Unrelated AI story", url="https://news.example/other"),
    ]
    responses = {
        "https://news.example/signed": policy_json(
            policy_name="Colorado AI Act", status="Enacted", date_enacted="2024-05-17"
        )
    }
    limiter = CountingRateLimiter()
    processor = _processor(documents, responses, gateway, rescan_limiter=limiter)

    summary = await processor.update_existing_policies()

    assert summary.to_dict() == {"checked": 1, "matched_documents": 1, "updated": 1, "errors": 0}
    assert limiter.waits == 1
    stored = policy_db.get_policy(policy_id)
    assert stored.status == "Enacted"
    assert stored.date_enacted == "2024-05-17"
    assert stored.latest_update == datetime.now(timezone.utc).date().isoformat()
    assert stored.source_reference_link == "https://leg.colorado.gov/sb24-205"


@pytest.mark.asyncio
async def test_rescan_skips_unchanged_policies(gateway, policy_db):
    policy_db.insert_policy(
        PolicyRecord(policy_name="Federal AI Risk Management Rule", status="Proposed", risk_classification="Low")
    )
    documents = [make_document(title="Federal AI Risk Management Rule comment period", url="https://fr.gov/x")]
    processor = _processor(documents, {"https://fr.gov/x": policy_json(key_provisions=None)}, gateway)

    summary = await processor.update_existing_policies()

    assert summary.checked == 1
    assert summary.matched_documents == 1
    assert summary.updated == 0


@pytest.mark.asyncio
async def test_rescan_with_empty_store_does_not_fetch(gateway):
    collector = StaticCollector([make_document()])
    processor = PolicyProcessor(SourceAggregator([collector]), ExtractionEngine(FakeLLM()), gateway)

    summary = await processor.update_existing_policies()

    assert summary.checked == 0
    assert collector.calls == []


@pytest.mark.asyncio
async def test_rescan_fetches_without_a_date_window(gateway, policy_db):
    policy_db.insert_policy(PolicyRecord(policy_name="Colorado AI Act", status="Proposed"))
    collector = StaticCollector([make_document(title="Unrelated AI story")])
    processor = PolicyProcessor(
        SourceAggregator([collector]), ExtractionEngine(FakeLLM()), gateway, default_days_back=14
    )

    await processor.update_existing_policies()

    assert collector.calls == [None]


def test_find_policy_mentions_ranks_and_limits(gateway):
    processor = PolicyProcessor(SourceAggregator([]), ExtractionEngine(FakeLLM()), gateway, rescan_match_limit=2)
    documents = [
        make_document(title="Weekly digest", content="Includes an item on the EU AI Act."),
        make_document(title="EU AI Act enters into force"),
        make_document(title="Commission guidance on the EU AI Act"),
        make_document(title="Farm subsidies", content="Nothing relevant"),
    ]

    matches = processor.find_policy_mentions("EU AI Act", documents)

    assert len(matches) == 2
    assert all("EU AI Act" in doc.title for doc in matches)


@pytest.mark.asyncio
async def test_collection_status_payload(gateway, policy_db):
    policy_db.insert_policy(PolicyRecord(policy_name="A", status="Enacted", risk_classification="High"))
    run_id = policy_db.start_ingestion_run("scheduled")
    policy_db.complete_ingestion_run(run_id)
    processor = PolicyProcessor(
        SourceAggregator([]), ExtractionEngine(FakeLLM()), gateway, next_collection="Hourly"
    )

    status = await processor.get_collection_status()

    assert status["success"] is True
    assert status["stats"]["total"] == 1
    assert status["stats"]["added_today"] == 1
    assert status["recent_policies"][0]["policy_name"] == "A"
    assert status["distributions"] == {"status": {"Enacted": 1}, "risk": {"High": 1}}
    assert status["system_status"]["database"] == "connected"
    assert status["system_status"]["next_collection"] == "Hourly"
    assert status["system_status"]["last_collection"].endswith("Z")
