"""Exception types raised by the policy monitor."""

from __future__ import annotations

from typing import Optional


class PolicyMonitorError(Exception):
    """Base class for policy monitor failures."""


class ExtractionError(PolicyMonitorError):
    """Model output could not be turned into a policy record."""

    def __init__(self, message: str, raw_content: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw_content = raw_content


class PersistenceError(PolicyMonitorError):
    """A write to the policy store failed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"Database {operation} error: {message}")
        self.operation = operation
