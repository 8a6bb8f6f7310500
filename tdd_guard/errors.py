"""
TDD Violations — Every way an edit can be refused.

All blocking outcomes are raised as a TDDViolation subclass. The host sees
str(exc) == "TDD: <reason>"; the audit log records the bare reason.
"""

from __future__ import annotations

BLOCK_TAG = "TDD: "


class TDDViolation(Exception):
    """Raised when an edit must not proceed."""

    default_reason = "Edit blocked"

    def __init__(self, reason: str | None = None):
        self.reason = reason if reason is not None else self.default_reason
        super().__init__(f"{BLOCK_TAG}{self.reason}")


class ConfigError(TDDViolation):
    """The project's TDD config exists but is malformed."""
    default_reason = "Invalid config JSON"


class SignalUnavailable(TDDViolation):
    """No test-output artifact on disk."""
    default_reason = "Run tests first"


class SignalStale(TDDViolation):
    """Test-output artifact is older than the freshness window."""
    default_reason = "Re-run tests"


class TestsFailing(TDDViolation):
    """More than one failing test (BLOCKED state)."""
    __test__ = False
    default_reason = "Fix existing failing test first"


class PolicyBlocked(TDDViolation):
    """The verifier declined the edit."""
    default_reason = "Verification blocked"
