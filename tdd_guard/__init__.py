"""Red/Green/Refactor gate for coding-agent file edits."""

__version__ = "0.1.0"

from .errors import TDDViolation, ConfigError, SignalUnavailable, SignalStale, TestsFailing, PolicyBlocked
from .plugin import TDDPlugin, resolve_chat_client
