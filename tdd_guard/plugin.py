"""
TDD Plugin — Host-facing adapter for the TDD gate.

The host calls the "tool.execute.before" hook with the tool name and its
arguments before any tool runs. Returning normally lets the tool proceed;
raising a TDDViolation blocks it, and its message ("TDD: <reason>") is
shown to the agent.

Usage:
    plugin = TDDPlugin(directory="/path/to/project", client=host_client)
    hook = plugin.hooks["tool.execute.before"]
    hook("edit", {"filePath": "src/a.py", "newString": "..."})
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Optional

from tdd_guard.config import load_config
from tdd_guard.core.llm_provider import ChatClient, LLMResponseError
from tdd_guard.core.logger import AuditLogger
from tdd_guard.errors import ConfigError
from tdd_guard.state import GateDecision
from tdd_guard.verification.tdd_gate import TDDGate
from tdd_guard.verification.verifier import PolicyVerifier

logger = logging.getLogger(__name__)

HOOK_NAME = "tool.execute.before"

# Tool name → keys holding the new content, in lookup order
EDIT_TOOLS: dict[str, tuple[str, ...]] = {
    "write": ("content",),
    "edit": ("newString", "new_string"),
    "Write": ("content",),
    "Edit": ("new_string", "newString"),
    "MultiEdit": (),
}
FILE_PATH_KEYS = ("filePath", "file_path")


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Field access for SDK objects and plain dicts alike."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def extract_edit(tool: str, args: dict) -> tuple[str, str]:
    """(file_path, new_content) from a file-modifying tool's arguments."""
    file_path = next((args[k] for k in FILE_PATH_KEYS if isinstance(args.get(k), str)), "")

    if tool == "MultiEdit":
        edits = args.get("edits") or []
        content = "\n".join(str(_get(e, "new_string", "")) for e in edits)
        return file_path, content

    content = next((args[k] for k in EDIT_TOOLS[tool] if isinstance(args.get(k), str)), "")
    return file_path, content


# ── Backend client resolution ─────────────────────────────────────


class SessionChatClient:
    """
    Adapts a session-oriented host client to ChatClient.

    Each chat() creates a throwaway session, sends a single prompt, reads
    the text of the reply, and deletes the session whether or not the
    prompt succeeded.
    """

    def __init__(self, host_client: Any, title: str = "TDD verification"):
        self.host_client = host_client
        self.title = title

    @staticmethod
    def _split_model(model: str) -> dict:
        if "/" in model:
            provider_id, model_id = model.split("/", 1)
            return {"providerID": provider_id, "modelID": model_id}
        return {"modelID": model}

    @staticmethod
    def _session_id(created: Any) -> str:
        data = _get(created, "data", created)
        session_id = _get(data, "id")
        if not session_id:
            raise LLMResponseError("Host did not return a session id")
        return session_id

    @staticmethod
    def _reply_text(reply: Any) -> str:
        if isinstance(reply, str):
            return reply
        data = _get(reply, "data", reply)
        parts = _get(data, "parts") or []
        return "".join(
            _get(part, "text", "") or ""
            for part in parts
            if _get(part, "type") == "text"
        )

    def chat(self, model: str, messages: list[dict]) -> str:
        sessions = self.host_client.session
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        prompt = "\n\n".join(m["content"] for m in messages if m["role"] != "system")

        session_id = self._session_id(sessions.create(title=self.title))
        try:
            reply = sessions.prompt(
                session_id,
                parts=[{"type": "text", "text": prompt}],
                system=system,
                model=self._split_model(model),
            )
            return self._reply_text(reply)
        finally:
            try:
                sessions.delete(session_id)
            except Exception as e:
                logger.warning(f"Failed to delete verification session {session_id}: {e}")


def _has_session_api(client: Any) -> bool:
    sessions = getattr(client, "session", None)
    return sessions is not None and all(
        callable(getattr(sessions, name, None)) for name in ("create", "prompt", "delete")
    )


def resolve_chat_client(client: Any) -> Optional[ChatClient]:
    """
    Probe the host-provided object for a usable backend.

    A direct chat() is used as-is; a session API is wrapped in
    SessionChatClient; anything else means no verifier.
    """
    if client is None:
        return None
    if callable(getattr(client, "chat", None)):
        return client
    if _has_session_api(client):
        return SessionChatClient(client)
    logger.info(f"Host client {type(client).__name__} has no chat or session API")
    return None


# ── Plugin ───────────────────────────────────────────────────────


class TDDPlugin:
    """One plugin instance per project root."""

    def __init__(
        self,
        directory: Optional[str] = None,
        client: Any = None,
        audit: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.project_root = directory or os.getcwd()
        self.chat_client = resolve_chat_client(client)
        self.audit = audit or AuditLogger(self.project_root)
        self._clock = clock

    @property
    def hooks(self) -> dict[str, Callable[..., None]]:
        return {HOOK_NAME: self.before_tool}

    def before_tool(self, tool: str, args: Optional[dict] = None) -> None:
        """Host hook. Returns nothing to allow; raises TDDViolation to block."""
        self.decide(tool, args)

    def decide(self, tool: str, args: Optional[dict] = None) -> Optional[GateDecision]:
        """
        Gate one tool call. Returns None (non-edit tool, no config) or the
        allowing GateDecision; raises TDDViolation to block.
        """
        if tool not in EDIT_TOOLS:
            return None

        file_path, content = extract_edit(tool, args or {})
        logger.info(f"[TDD] Intercepted {tool}: {file_path}")

        try:
            loaded = load_config(self.project_root)
        except ConfigError as e:
            self.audit.error(e.reason)
            raise

        if loaded.is_missing:
            return None

        config = loaded.config
        verifier = None
        if self.chat_client is not None:
            verifier = PolicyVerifier(self.chat_client, config.verifier_model)

        gate = TDDGate(config, self.project_root, self.audit, verifier, clock=self._clock)
        return gate.check(file_path, content)
