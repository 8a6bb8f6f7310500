"""
TDD Guard — CLI Runner.

Usage:
    tdd-guard hook < payload.json        Gate one PreToolUse call (exit 2 = blocked)
    tdd-guard status                     Show the current RED/GREEN/BLOCKED state
    tdd-guard status --repo /path
    python -m tdd_guard --version

Hook payload (stdin):
    {"cwd": "/repo", "tool_name": "Edit",
     "tool_input": {"file_path": "src/a.py", "new_string": "..."}}
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from tdd_guard import __version__
from tdd_guard.config import load_config
from tdd_guard.core.logger import AUDIT_THEME, AuditLogger, make_console
from tdd_guard.core.provider_factory import create_default_client
from tdd_guard.errors import TDDViolation
from tdd_guard.plugin import EDIT_TOOLS, TDDPlugin
from tdd_guard.state import TDDState
from tdd_guard.verification.test_signal import read_signal

# Claude Code treats exit code 2 from a PreToolUse hook as a block
BLOCK_EXIT_CODE = 2

STATE_STYLES = {
    TDDState.GREEN: "bold green",
    TDDState.RED: "bold red",
    TDDState.BLOCKED: "bold yellow",
}


def _parse_payload(raw: str) -> tuple[str, dict, Optional[str]]:
    """(tool, args, cwd) from a hook payload in either host shape."""
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("hook payload must be a JSON object")
    tool = payload.get("tool_name") or payload.get("tool") or ""
    args = payload.get("tool_input") or payload.get("args") or {}
    if not isinstance(args, dict):
        raise ValueError("tool arguments must be a JSON object")
    return tool, args, payload.get("cwd")


def run_hook(
    repo: Optional[str],
    stdin=None,
    err: Optional[Console] = None,
    verbose: bool = False,
) -> int:
    err = err or Console(stderr=True, theme=AUDIT_THEME)
    stdin = stdin or sys.stdin
    try:
        tool, args, cwd = _parse_payload(stdin.read())
    except (json.JSONDecodeError, ValueError) as e:
        err.print(f"tdd-guard: invalid hook payload: {e}", style="error", markup=False)
        return 1

    # Only edits can reach the verifier
    client = create_default_client() if tool in EDIT_TOOLS else None
    project_root = repo or cwd or os.getcwd()
    audit = AuditLogger(project_root, console=make_console() if verbose else None)
    plugin = TDDPlugin(directory=project_root, client=client, audit=audit)
    try:
        plugin.before_tool(tool, args)
    except TDDViolation as e:
        # Plain text: the agent reads this message
        print(str(e), file=sys.stderr)
        return BLOCK_EXIT_CODE
    return 0


def run_status(repo: Optional[str], out: Optional[Console] = None) -> int:
    out = out or Console(theme=AUDIT_THEME)
    project_root = os.path.abspath(repo or os.getcwd())

    try:
        loaded = load_config(project_root)
    except TDDViolation as e:
        out.print(str(e), style="error", markup=False)
        return 1

    if loaded.is_missing:
        out.print(f"No TDD config in {project_root}: all edits pass through.")
        return 0

    config = loaded.config
    try:
        signal = read_signal(config.test_output_path(project_root), config.max_test_output_age)
    except TDDViolation as e:
        out.print(Panel(Text(str(e), style="error"), title="TDD Guard", border_style="red", expand=False))
        return 1

    state = signal.state
    body = Text()
    body.append(f"State: {state.name}\n", style=STATE_STYLES[state])
    body.append(f"Failing markers: {signal.failing_count}\n")
    body.append(f"Test output age: {signal.age_seconds:.0f}s (max {config.max_test_output_age:g}s)\n")
    body.append(f"Enforced: {', '.join(config.enforce_patterns) if config.enforce_patterns else '(nothing)'}\n")
    body.append(f"Verifier model: {config.verifier_model}")
    out.print(Panel(body, title="TDD Guard", border_style="cyan", expand=False))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tdd-guard",
        description="Red/Green/Refactor gate for coding-agent file edits",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Echo audit entries and gate internals to stderr")
    subparsers = parser.add_subparsers(dest="command")

    hook_parser = subparsers.add_parser("hook", help="Gate a PreToolUse payload read from stdin")
    hook_parser.add_argument("--repo", help="Project root (defaults to the payload's cwd)")

    status_parser = subparsers.add_parser("status", help="Show the current TDD state")
    status_parser.add_argument("--repo", help="Project root (defaults to the current directory)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    if args.command == "hook":
        return run_hook(args.repo, verbose=args.verbose)
    if args.command == "status":
        return run_status(args.repo)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
