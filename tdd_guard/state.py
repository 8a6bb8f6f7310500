"""
TDD State — Phases of the Red/Green/Refactor gate and the values that flow
between its components.

State is never persisted: it is re-derived from the latest test output on
every decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TDDState(Enum):
    """Phase derived from the failing-test count."""

    GREEN = "green"       # 0 failing: verifier decides
    RED = "red"           # exactly 1 failing: implementation may proceed
    BLOCKED = "blocked"   # >1 failing: fix the suite first

    @classmethod
    def from_failing_count(cls, failing_count: int) -> "TDDState":
        if failing_count > 1:
            return cls.BLOCKED
        if failing_count == 1:
            return cls.RED
        return cls.GREEN


@dataclass(frozen=True)
class TestSignal:
    """Parsed view of the most recent test run."""

    __test__ = False

    output: str
    failing_count: int
    age_seconds: float

    @property
    def state(self) -> TDDState:
        return TDDState.from_failing_count(self.failing_count)


@dataclass(frozen=True)
class VerifyResult:
    """Verdict of the policy verifier, reduced to allow/block."""

    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "VerifyResult":
        return cls(allowed=True)

    @classmethod
    def block(cls, reason: str) -> "VerifyResult":
        return cls(allowed=False, reason=reason)


@dataclass(frozen=True)
class GateDecision:
    """An allowed decision. Blocks are raised, never returned."""

    allowed: bool
    state: Optional[TDDState] = None
    reason: str = ""

    @property
    def in_scope(self) -> bool:
        return self.state is not None
