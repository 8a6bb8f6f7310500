"""
TDD Gate — Red/Green/Refactor decision for a single edit.

    BLOCKED (>1 failing): deny, fix the existing failing test first
    RED     (1 failing):  allow, the implementation may make it pass
    GREEN   (0 failing):  ask the policy verifier

Files outside enforcePatterns are allowed before the test output is even
looked at, so unrelated edits never require a test run.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Optional

from tdd_guard.config import TDDConfig
from tdd_guard.core.logger import AuditLogger
from tdd_guard.errors import PolicyBlocked, SignalStale, SignalUnavailable, TestsFailing
from tdd_guard.state import GateDecision, TDDState, TestSignal
from tdd_guard.verification.pattern_matcher import matches
from tdd_guard.verification.test_signal import read_signal
from tdd_guard.verification.verifier import PolicyVerifier

logger = logging.getLogger(__name__)


class TDDGate:
    """
    Enforces TDD discipline on file edits.

    Holds no state between calls: every check re-reads the test output.
    """

    def __init__(
        self,
        config: TDDConfig,
        project_root: str,
        audit: AuditLogger,
        verifier: Optional[PolicyVerifier] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.project_root = project_root
        self.audit = audit
        self.verifier = verifier
        self._clock = clock

    def relative_path(self, file_path: str) -> str:
        """Path as matched against enforcePatterns (relative to the project root)."""
        if os.path.isabs(file_path):
            root = os.path.abspath(self.project_root)
            candidate = os.path.abspath(file_path)
            if os.path.commonpath([root, candidate]) == root:
                return os.path.relpath(candidate, root)
        return file_path

    def is_enforced(self, file_path: str) -> bool:
        return matches(self.relative_path(file_path), self.config.enforce_patterns)

    def read_signal(self) -> TestSignal:
        """Current test signal. Failures are audited at ERROR and re-raised."""
        try:
            return read_signal(
                self.config.test_output_path(self.project_root),
                self.config.max_test_output_age,
                now=self._clock,
            )
        except (SignalUnavailable, SignalStale) as e:
            self.audit.error(e.reason)
            raise

    def check(self, file_path: str, content: str = "") -> GateDecision:
        """
        Decide whether an edit to file_path may proceed.

        Returns a GateDecision when allowed.

        Raises:
            SignalUnavailable / SignalStale: No fresh test output.
            TestsFailing: More than one failing test.
            PolicyBlocked: The verifier declined a GREEN-phase edit.
        """
        if not self.is_enforced(file_path):
            logger.debug(f"Not enforced: {file_path}")
            return GateDecision(allowed=True, reason="not enforced")

        signal = self.read_signal()
        state = signal.state

        if state is TDDState.BLOCKED:
            reason = TestsFailing.default_reason
            self.audit.warn(f"Blocked edit (BLOCKED): {file_path}: {reason}")
            raise TestsFailing(reason)

        if state is TDDState.RED:
            self.audit.info(f"Allowed edit (RED): {file_path}")
            return GateDecision(allowed=True, state=state)

        if self.verifier is None:
            self.audit.info(f"Allowed edit (GREEN): {file_path} (no verifier available)")
            return GateDecision(allowed=True, state=state, reason="no verifier available")

        result = self.verifier.verify(file_path, content, signal.output)
        if not result.allowed:
            self.audit.warn(f"Blocked edit (GREEN): {file_path}: {result.reason}")
            raise PolicyBlocked(result.reason)

        self.audit.info(f"Allowed edit (GREEN): {file_path}")
        return GateDecision(allowed=True, state=state)
