"""Policy monitor database interface.

Provides schema management, ingestion-run bookkeeping and the query helpers the
pipeline needs: equality lookups on the natural key, range lookups on
``created_at``/``next_review_date`` and the aggregates behind the status
endpoint. Only the persistence gateway writes policy rows.
"""

from __future__ import annotations

import argparse
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .models import PolicyRecord, ProcessingResult

ISO_TIMESTAMP_SUFFIX = "Z"

NATURAL_KEY_COLUMNS = ("policy_name", "source_reference_link")
DISTRIBUTION_COLUMNS = ("status", "risk_classification", "jurisdiction", "policy_type")
RECENT_COLUMNS = ("id", "policy_name", "jurisdiction", "status", "risk_classification", "created_at")


def _utc_now() -> str:
    """Return a UTC timestamp string with second precision."""
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + ISO_TIMESTAMP_SUFFIX


def _policy_columns() -> List[str]:
    return [name for name in PolicyRecord.field_names() if name not in PolicyRecord.STORE_MANAGED]


class PolicyDatabase:
    """High-level helper for the policy monitor SQLite database."""

    DEFAULT_DB_PATH = Path("database/policy_monitor.db")

    def __init__(self, db_path: Optional[Union[str, Path]] = None, auto_initialize: bool = True) -> None:
        path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        if not path.is_absolute():
            path = Path.cwd() / path
        self.db_path = path
        if auto_initialize:
            self.initialize()

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Initialise database directory and ensure schema exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            self._apply_pragmas(conn)
            self._create_schema(conn)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _apply_pragmas(conn: sqlite3.Connection) -> None:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA temp_store=MEMORY")

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS ai_policies (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                policy_name TEXT NOT NULL,
                jurisdiction TEXT,
                issuing_body TEXT,
                date_introduced TEXT,
                date_enacted TEXT,
                status TEXT,
                policy_type TEXT,
                scope_coverage TEXT,
                key_provisions TEXT,
                risk_classification TEXT NOT NULL,
                company_obligations TEXT,
                penalties_fines TEXT,
                affected_stakeholders TEXT,
                implementation_notes TEXT,
                latest_update TEXT,
                source_reference_link TEXT NOT NULL DEFAULT '',
                monitoring_org TEXT,
                notes_commentary TEXT,
                next_review_date TEXT,
                confidence_score INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS ingestion_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                trigger_source TEXT,
                started_at TEXT NOT NULL,
                completed_at TEXT,
                status TEXT NOT NULL DEFAULT 'running',
                processed INTEGER NOT NULL DEFAULT 0,
                added INTEGER NOT NULL DEFAULT 0,
                duplicates INTEGER NOT NULL DEFAULT 0,
                errors INTEGER NOT NULL DEFAULT 0,
                metadata TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_policies_name ON ai_policies(policy_name);
            CREATE INDEX IF NOT EXISTS idx_policies_link ON ai_policies(source_reference_link);
            CREATE INDEX IF NOT EXISTS idx_policies_created_at ON ai_policies(created_at);
            CREATE INDEX IF NOT EXISTS idx_policies_next_review ON ai_policies(next_review_date);
            CREATE INDEX IF NOT EXISTS idx_runs_started_at ON ingestion_runs(started_at);
            """
        )

    # ------------------------------------------------------------------
    # Ingestion run helpers
    # ------------------------------------------------------------------
    def start_ingestion_run(self, trigger: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO ingestion_runs (trigger_source, started_at, metadata)
                VALUES (?, ?, ?)
                """,
                (trigger, _utc_now(), self._to_json(metadata)),
            )
            run_id = cur.lastrowid
            conn.commit()
        return run_id

    def complete_ingestion_run(
        self,
        run_id: int,
        *,
        status: str = "completed",
        result: Optional[ProcessingResult] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        result = result or ProcessingResult()
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE ingestion_runs
                   SET status = ?,
                       completed_at = ?,
                       processed = ?,
                       added = ?,
                       duplicates = ?,
                       errors = ?,
                       metadata = COALESCE(?, metadata)
                 WHERE id = ?
                """,
                (
                    status,
                    _utc_now(),
                    result.processed,
                    result.added,
                    result.duplicates,
                    result.errors,
                    self._to_json(metadata),
                    run_id,
                ),
            )
            conn.commit()

    def get_last_ingestion_run(self) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM ingestion_runs ORDER BY started_at DESC, id DESC LIMIT 1"
            ).fetchone()
        if row is None:
            return None
        data = dict(row)
        data["metadata"] = self._from_json(data.get("metadata"), default={})
        return data

    # ------------------------------------------------------------------
    # Policy writes
    # ------------------------------------------------------------------
    def find_duplicate_id(self, policy_name: str, source_reference_link: Optional[str]) -> Optional[int]:
        """Id of a stored policy sharing either natural-key column, if any."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT id FROM ai_policies
                 WHERE policy_name = ?
                    OR (? != '' AND source_reference_link = ?)
                 ORDER BY id
                 LIMIT 1
                """,
                (policy_name, source_reference_link or "", source_reference_link or ""),
            ).fetchone()
        return int(row["id"]) if row else None

    def insert_policy(self, record: PolicyRecord) -> int:
        if not record.policy_name:
            raise ValueError("policy_name is required")
        if not record.risk_classification:
            raise ValueError("risk_classification is required")

        columns = _policy_columns() + ["created_at", "updated_at"]
        payload = record.to_db_params()
        now = _utc_now()
        payload["created_at"] = record.created_at or now
        payload["updated_at"] = record.updated_at or now

        with self._connect() as conn:
            cur = conn.execute(
                f"INSERT INTO ai_policies ({', '.join(columns)}) "
                f"VALUES ({', '.join(':' + name for name in columns)})",
                payload,
            )
            policy_id = int(cur.lastrowid)
            conn.commit()
        return policy_id

    def update_policy(self, policy_id: int, fields: Mapping[str, Any]) -> bool:
        """Apply ``fields`` to one row and stamp ``updated_at``.

        Natural-key and store-managed columns are never rewritten. Returns
        False when no row has ``policy_id``.
        """
        allowed = set(_policy_columns()) - set(NATURAL_KEY_COLUMNS)
        unknown = set(fields) - allowed - set(NATURAL_KEY_COLUMNS) - set(PolicyRecord.STORE_MANAGED)
        if unknown:
            raise ValueError(f"Unknown policy columns: {sorted(unknown)}")

        updates = {name: value for name, value in fields.items() if name in allowed}
        updates["updated_at"] = _utc_now()
        assignments = ", ".join(f"{name} = :{name}" for name in updates)

        with self._connect() as conn:
            cur = conn.execute(
                f"UPDATE ai_policies SET {assignments} WHERE id = :id",
                {**updates, "id": policy_id},
            )
            conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    def get_policy(self, policy_id: int) -> Optional[PolicyRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM ai_policies WHERE id = ?", (policy_id,)).fetchone()
        return PolicyRecord.from_dict(dict(row)) if row else None

    def get_reviewable_policies(self, created_since: str, review_from: str) -> List[PolicyRecord]:
        """Policies created on/after ``created_since`` or due for review on/after ``review_from``."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM ai_policies
                 WHERE created_at >= ?
                    OR (next_review_date IS NOT NULL AND next_review_date >= ?)
                 ORDER BY created_at DESC, id DESC
                """,
                (created_since, review_from),
            ).fetchall()
        return [PolicyRecord.from_dict(dict(row)) for row in rows]

    def get_recent_policies(self, limit: int = 10) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(RECENT_COLUMNS)} FROM ai_policies "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]

    def get_field_distribution(self, field: str) -> Dict[str, int]:
        """Row counts per value of ``field``; NULL is reported as ``Unknown``."""
        if field not in DISTRIBUTION_COLUMNS:
            raise ValueError(f"Unsupported distribution field: {field}")
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT COALESCE({field}, 'Unknown') AS value, COUNT(*) AS count "
                f"FROM ai_policies GROUP BY COALESCE({field}, 'Unknown') ORDER BY count DESC, value"
            ).fetchall()
        return {row["value"]: int(row["count"]) for row in rows}

    def count_policies(self, *, created_since: Optional[str] = None) -> int:
        query = "SELECT COUNT(*) FROM ai_policies"
        params: List[Any] = []
        if created_since:
            query += " WHERE created_at >= ?"
            params.append(created_since)
        with self._connect() as conn:
            return int(conn.execute(query, params).fetchone()[0])

    def get_last_update(self) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT MAX(updated_at) FROM ai_policies").fetchone()
        return row[0] if row else None

    def get_processing_stats(self, today_start: str, week_start: str) -> Dict[str, Any]:
        return {
            "total": self.count_policies(),
            "added_today": self.count_policies(created_since=today_start),
            "added_this_week": self.count_policies(created_since=week_start),
            "last_update": self.get_last_update(),
        }

    def ping(self) -> bool:
        with self._connect() as conn:
            conn.execute("SELECT 1").fetchone()
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_json(value: Optional[Any]) -> Optional[str]:
        if value is None:
            return None
        return json.dumps(value, sort_keys=True)

    @staticmethod
    def _from_json(value: Optional[str], default: Any) -> Any:
        if not value:
            return default
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return default


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Policy monitor database helper")
    parser.add_argument("--init", action="store_true", help="Initialise the policy database schema")
    parser.add_argument("--db-path", help="Override database path", default=None)
    args = parser.parse_args(argv)

    db = PolicyDatabase(db_path=args.db_path, auto_initialize=False)
    if args.init:
        db.initialize()
        print(f"Initialised policy database at {db.db_path}")
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
