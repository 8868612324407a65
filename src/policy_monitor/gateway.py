"""Deduplication and persistence gateway, the only writer of policy rows."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import date
from typing import Any, Dict, Optional

from .database import NATURAL_KEY_COLUMNS, PolicyDatabase
from .errors import PersistenceError
from .logging_config import get_logger
from .models import PolicyRecord

logger = get_logger("gateway")


class PolicyGateway:
    """Async facade over :class:`PolicyDatabase`.

    Database calls run in a worker thread. The duplicate check and the insert
    are separate statements, so two concurrent runs can still insert the same
    policy twice.
    """

    def __init__(self, database: PolicyDatabase) -> None:
        self.database = database

    async def find_duplicate(self, record: PolicyRecord) -> Optional[int]:
        return await asyncio.to_thread(
            self.database.find_duplicate_id,
            record.policy_name,
            record.source_reference_link,
        )

    async def is_duplicate(self, record: PolicyRecord) -> bool:
        """True if a stored policy shares the name or the source link.

        A failed lookup counts as "not a duplicate" so ingestion is not blocked.
        """
        try:
            return await self.find_duplicate(record) is not None
        except sqlite3.Error as exc:
            logger.error(f"Duplicate check failed for {record.policy_name!r}, treating as new: {exc}")
            return False

    async def insert(self, record: PolicyRecord) -> int:
        try:
            policy_id = await asyncio.to_thread(self.database.insert_policy, record)
        except (sqlite3.Error, ValueError) as exc:
            raise PersistenceError("insert", str(exc)) from exc
        logger.info(f"Inserted policy {policy_id}: {record.policy_name}")
        return policy_id

    async def update(self, policy_id: int, record: PolicyRecord, *, today: Optional[date] = None) -> None:
        """Merge the non-null fields of ``record`` into the stored row.

        ``latest_update`` is set to today and ``updated_at`` to now regardless of
        what ``record`` carries.
        """
        fields: Dict[str, Any] = {
            name: value
            for name, value in record.to_db_params().items()
            if value is not None and name not in NATURAL_KEY_COLUMNS
        }
        fields["latest_update"] = (today or date.today()).isoformat()

        try:
            found = await asyncio.to_thread(self.database.update_policy, policy_id, fields)
        except (sqlite3.Error, ValueError) as exc:
            raise PersistenceError("update", str(exc)) from exc
        if not found:
            raise PersistenceError("update", f"policy {policy_id} not found")
        logger.info(f"Updated policy {policy_id}: {', '.join(sorted(fields))}")
