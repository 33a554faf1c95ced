from __future__ import annotations

from pathlib import Path


class IngestError(RuntimeError):
    """Base class for run-level ingestion failures."""


class ConfigError(IngestError, ValueError):
    pass


class QueryFailedError(IngestError):
    """A required query gave up after exhausting its retries."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Query '{name}' failed: {reason}")
        self.name = name
        self.reason = reason


class LicenseGateError(IngestError):
    """The candidate set carried at least one license outside the allow-list."""

    def __init__(self, violation_count: int, audit_path: Path):
        super().__init__(f"{violation_count} license violation(s); see {audit_path}")
        self.violation_count = violation_count
        self.audit_path = audit_path


class SeedError(IngestError, ValueError):
    """A seed file is unreadable, incomplete, or references an unknown source."""
