"""
Policy Verifier — Asks a language model whether a GREEN-phase edit is legal TDD.

With the suite green, only two edits are acceptable: adding or changing a
test (to get back to RED), or a refactor that keeps behaviour identical.
The model classifies the edit and returns a JSON verdict:

    {"editType": "test" | "impl", "decision": "allow" | "block", "reason": "..."}

Robustness rules:
    - The verdict may be wrapped in a ```json fenced block.
    - editType == "test" is always allowed, whatever "decision" says.
    - Anything other than decision == "allow" blocks.
    - Backend errors and unparsable replies block immediately. No retries.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from tdd_guard.core.llm_provider import ChatClient
from tdd_guard.state import VerifyResult

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Verification blocked"
INVALID_RESPONSE_REASON = "Invalid verifier response"

EDIT_TYPES = ("test", "impl")
DECISIONS = ("allow", "block")

SYSTEM_PROMPT = """You are the TDD Verifier for an autonomous coding agent.
The project follows strict Red -> Green -> Refactor. The test suite is currently GREEN (no failing tests).

Classify the proposed edit and decide whether it may proceed:
- editType "test": the edit adds or changes test code. Tests may always be written.
- editType "impl": the edit changes production code.
  - allow it only if it is a pure refactor that does not add or change behaviour.
  - block it if it adds new behaviour, because a failing test must be written first.

Respond with ONLY a JSON object, no prose:
{"editType": "test" | "impl", "decision": "allow" | "block", "reason": "<one sentence>"}"""

USER_TEMPLATE = """File: {file_path}

New content:
{content}

Test Output:
{test_output}"""

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class InvalidVerifierResponse(ValueError):
    """The reply could not be read as a verdict."""
    pass


class VerifierVerdict(BaseModel):
    """
    Verdict as returned by the model. Unknown or missing values are kept as
    None so that policy (impl / block) is applied in one place.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    edit_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("editType", "editKind"),
    )
    decision: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("edit_type", mode="before")
    @classmethod
    def _known_edit_type(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value in EDIT_TYPES else None

    @field_validator("decision", mode="before")
    @classmethod
    def _known_decision(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value in DECISIONS else None

    @field_validator("reason", mode="before")
    @classmethod
    def _text_reason(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @property
    def is_test_edit(self) -> bool:
        return self.edit_type == "test"

    @property
    def allows(self) -> bool:
        return self.decision == "allow"


def extract_json(response: str) -> str:
    """First fenced block's body if there is one, else the whole reply."""
    match = _FENCE_RE.search(response)
    return match.group(1).strip() if match else response


def parse_verdict(response: str) -> VerifierVerdict:
    """Raises InvalidVerifierResponse on anything that is not a JSON object."""
    if not isinstance(response, str):
        raise InvalidVerifierResponse(INVALID_RESPONSE_REASON)

    candidate = extract_json(response)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise InvalidVerifierResponse(INVALID_RESPONSE_REASON) from e

    if not isinstance(data, dict):
        raise InvalidVerifierResponse(INVALID_RESPONSE_REASON)

    try:
        return VerifierVerdict.model_validate(data)
    except ValidationError as e:
        raise InvalidVerifierResponse(INVALID_RESPONSE_REASON) from e


def build_messages(file_path: str, edit_content: str, test_output: str) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": USER_TEMPLATE.format(
                file_path=file_path,
                content=edit_content,
                test_output=test_output,
            ),
        },
    ]


class PolicyVerifier:
    """
    Delegates GREEN-phase edits to a language model.

    Usage:
        verifier = PolicyVerifier(client, "gpt-4o-mini")
        result = verifier.verify("src/a.py", new_content, test_output)
        if not result.allowed:
            print(result.reason)
    """

    def __init__(self, client: ChatClient, model: str):
        self.client = client
        self.model = model

    def verify(self, file_path: str, edit_content: str, test_output: str) -> VerifyResult:
        messages = build_messages(file_path, edit_content, test_output)

        try:
            response = self.client.chat(self.model, messages)
        except Exception as e:
            logger.warning(f"Verifier backend call failed: {e}")
            return VerifyResult.block(f"Verification failed: {e}")

        try:
            verdict = parse_verdict(response)
        except InvalidVerifierResponse:
            logger.warning(f"Unparsable verifier response: {str(response)[:200]!r}")
            return VerifyResult.block(INVALID_RESPONSE_REASON)

        logger.debug(
            f"Verdict for {file_path}: editType={verdict.edit_type}, "
            f"decision={verdict.decision}"
        )

        if verdict.is_test_edit:
            return VerifyResult.allow()
        if not verdict.allows:
            return VerifyResult.block(
                verdict.reason if verdict.reason is not None else DEFAULT_BLOCK_REASON
            )
        return VerifyResult.allow()
