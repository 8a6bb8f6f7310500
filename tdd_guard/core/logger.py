import logging
import os
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

# Console styles for echoed audit entries
AUDIT_THEME = Theme({
    "info": "green",
    "warn": "bold yellow",
    "error": "bold red",
    "time": "dim white",
})

LOG_DIR = os.path.join(".opencode", "tdd")
LOG_FILE = "tdd.log"
LEVELS = ("INFO", "WARN", "ERROR")

_stdlib_logger = logging.getLogger("tdd_guard.audit")


def _timestamp() -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-01-01T12:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class AuditLogger:
    """
    Append-only decision log for one project.

    Every entry is one line:
        [<ISO-8601>] [<LEVEL>] <message>

    Entries go out in a single os.write on an O_APPEND descriptor, so
    interleaved writers from parallel hook invocations never split a line.
    Existing content is never truncated.
    """

    def __init__(self, project_root: str, console: Optional[Console] = None):
        self.project_root = project_root
        self.log_dir = os.path.join(project_root, LOG_DIR)
        self.log_file = os.path.join(self.log_dir, LOG_FILE)
        self.console = console

    def log(self, level: str, message: str):
        """Append a timestamped entry to the log file."""
        if level not in LEVELS:
            raise ValueError(f"Unknown audit level: {level}")

        timestamp = _timestamp()
        # One entry per line, whatever the message contains
        flat = message.replace("\r", "\\r").replace("\n", "\\n")
        line = f"[{timestamp}] [{level}] {flat}\n"

        os.makedirs(self.log_dir, exist_ok=True)
        fd = os.open(self.log_file, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        try:
            os.write(fd, line.encode("utf-8"))
        finally:
            os.close(fd)

        _stdlib_logger.debug(f"[{level}] {flat}")
        if self.console is not None:
            self.console.print(
                f"[time]{timestamp}[/time] [{level.lower()}]{level}[/{level.lower()}] {escape(flat)}",
                highlight=False,
                markup=True,
            )

    def info(self, message: str):
        self.log("INFO", message)

    def warn(self, message: str):
        self.log("WARN", message)

    def error(self, message: str):
        self.log("ERROR", message)

    def read_entries(self) -> list[str]:
        """All entries written so far, oldest first."""
        try:
            with open(self.log_file, "r", encoding="utf-8") as f:
                return f.read().splitlines()
        except FileNotFoundError:
            return []


def make_console(stderr: bool = True) -> Console:
    """Console for echoing audit entries. Hooks keep stdout clean, so stderr by default."""
    return Console(theme=AUDIT_THEME, stderr=stderr)
