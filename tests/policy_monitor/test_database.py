"""Tests for the policy SQLite database."""

import sqlite3

import pytest

from src.policy_monitor.database import PolicyDatabase, main
from src.policy_monitor.models import PolicyRecord, ProcessingResult


def _record(name="EU AI Act", link="https://eur-lex.europa.eu/ai-act", **kwargs):
    defaults = {"risk_classification": "High", "status": "Enacted", "confidence_score": 90}
    defaults.update(kwargs)
    return PolicyRecord(policy_name=name, source_reference_link=link, **defaults)


def test_initialize_creates_schema(policy_db):
    with sqlite3.connect(policy_db.db_path) as conn:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        indexes = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")}

    assert {"ai_policies", "ingestion_runs"} <= tables
    assert "idx_policies_name" in indexes
    assert "idx_policies_next_review" in indexes


def test_insert_and_get_policy(policy_db):
    policy_id = policy_db.insert_policy(_record(key_provisions="• Transparency"))

    stored = policy_db.get_policy(policy_id)

    assert stored.id == policy_id
    assert stored.policy_name == "EU AI Act"
    assert stored.key_provisions == "• Transparency"
    assert stored.created_at.endswith("Z")
    assert stored.created_at == stored.updated_at


def test_insert_requires_name_and_risk(policy_db):
    with pytest.raises(ValueError):
        policy_db.insert_policy(_record(name=""))
    with pytest.raises(ValueError):
        policy_db.insert_policy(_record(risk_classification=None))


def test_find_duplicate_by_name_or_link(policy_db):
    policy_id = policy_db.insert_policy(_record())

    assert policy_db.find_duplicate_id("EU AI Act", "https://other.example") == policy_id
    assert policy_db.find_duplicate_id("Other name", "https://eur-lex.europa.eu/ai-act") == policy_id
    assert policy_db.find_duplicate_id("Other name", "https://other.example") is None


def test_empty_link_never_matches(policy_db):
    policy_db.insert_policy(_record(link=""))

    assert policy_db.find_duplicate_id("Different", "") is None


def test_update_policy_keeps_natural_key(policy_db):
    policy_id = policy_db.insert_policy(_record(created_at="2024-01-01T00:00:00Z", updated_at="2024-01-01T00:00:00Z"))

    updated = policy_db.update_policy(
        policy_id, {"status": "Amended", "policy_name": "Renamed", "id": 999}
    )

    stored = policy_db.get_policy(policy_id)
    assert updated is True
    assert stored.status == "Amended"
    assert stored.policy_name == "EU AI Act"
    assert stored.updated_at > "2024-01-01T00:00:00Z"
    assert stored.created_at == "2024-01-01T00:00:00Z"


def test_update_policy_rejects_unknown_columns(policy_db):
    policy_id = policy_db.insert_policy(_record())

    with pytest.raises(ValueError):
        policy_db.update_policy(policy_id, {"colour": "blue"})
    assert policy_db.update_policy(policy_id + 100, {"status": "Repealed"}) is False


def test_reviewable_policies(policy_db):
    policy_db.insert_policy(_record(name="Old", link="a", created_at="2023-01-01T00:00:00Z", updated_at="2023-01-01T00:00:00Z"))
    policy_db.insert_policy(
        _record(name="Old but due", link="b", next_review_date="2030-01-01",
                created_at="2023-01-01T00:00:00Z", updated_at="2023-01-01T00:00:00Z")
    )
    policy_db.insert_policy(_record(name="Recent", link="c", created_at="2024-06-01T00:00:00Z", updated_at="2024-06-01T00:00:00Z"))

    names = [p.policy_name for p in policy_db.get_reviewable_policies("2024-05-15T00:00:00Z", "2024-06-10")]

    assert names == ["Recent", "Old but due"]


def test_distribution_and_counts(policy_db):
    policy_db.insert_policy(_record(name="A", link="a", status="Enacted", created_at="2024-06-01T10:00:00Z", updated_at="2024-06-01T10:00:00Z"))
    policy_db.insert_policy(_record(name="B", link="b", status=None, risk_classification="Low", created_at="2024-05-01T10:00:00Z", updated_at="2024-06-02T10:00:00Z"))

    assert policy_db.get_field_distribution("status") == {"Enacted": 1, "Unknown": 1}
    assert policy_db.get_field_distribution("risk_classification") == {"High": 1, "Low": 1}
    assert policy_db.get_processing_stats("2024-06-01T00:00:00Z", "2024-05-25T00:00:00Z") == {
        "total": 2,
        "added_today": 1,
        "added_this_week": 1,
        "last_update": "2024-06-02T10:00:00Z",
    }
    assert [row["policy_name"] for row in policy_db.get_recent_policies(5)] == ["A", "B"]
    with pytest.raises(ValueError):
        policy_db.get_field_distribution("policy_name; DROP TABLE ai_policies")


def test_ingestion_run_bookkeeping(policy_db):
    run_id = policy_db.start_ingestion_run("scheduled", {"days_back": 7})
    policy_db.complete_ingestion_run(
        run_id, result=ProcessingResult(processed=3, added=1, duplicates=1, errors=1)
    )

    run = policy_db.get_last_ingestion_run()

    assert run["id"] == run_id
    assert run["trigger_source"] == "scheduled"
    assert run["status"] == "completed"
    assert (run["processed"], run["added"], run["duplicates"], run["errors"]) == (3, 1, 1, 1)
    assert run["metadata"] == {"days_back": 7}
    assert run["completed_at"].endswith("Z")


def test_cli_init(tmp_path, capsys):
    db_path = tmp_path / "nested" / "policies.db"

    main(["--init", "--db-path", str(db_path)])

    assert db_path.exists()
    assert "Initialised policy database" in capsys.readouterr().out
    assert PolicyDatabase(db_path).ping() is True
