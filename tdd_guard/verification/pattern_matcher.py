"""
Pattern Matcher — Which files fall under TDD enforcement.

Glob semantics over '/'-separated paths:
    *       any run of characters inside one segment
    **      any run of whole segments, including none
    ?       one character inside a segment
    [abc]   character class
    {a,b}   alternation
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional


def normalize_path(file_path: str) -> str:
    """Forward slashes, no leading './'."""
    path = file_path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def _translate_segment(segment: str) -> str:
    out = []
    i = 0
    depth = 0
    while i < len(segment):
        ch = segment[i]
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            end = segment.find("]", i + 1)
            body = segment[i + 1:end] if end != -1 else ""
            if body in ("", "!"):
                # Unclosed or empty class: a literal "["
                out.append(re.escape(ch))
            else:
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        elif ch == "{":
            depth += 1
            out.append("(?:")
        elif ch == "}" and depth:
            depth -= 1
            out.append(")")
        elif ch == "," and depth:
            out.append("|")
        else:
            out.append(re.escape(ch))
        i += 1
    if depth:
        # Unbalanced brace: treat the whole segment literally
        return re.escape(segment)
    return "".join(out)


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern:
    """Translate one glob into an anchored regex."""
    parts = normalize_path(pattern).split("/")
    regex = ""
    last = len(parts) - 1
    for i, part in enumerate(parts):
        if part == "**":
            if i == last:
                # "dir/**" also matches "dir" itself; "**" alone matches anything
                regex = regex[:-1] + "(?:/.*)?" if regex else ".*"
            else:
                regex += "(?:[^/]+/)*"
        else:
            regex += _translate_segment(part)
            if i != last:
                regex += "/"
    try:
        return re.compile(f"^{regex}$")
    except re.error:
        # Malformed class such as "[z-a]": match the pattern literally
        return re.compile(f"^{re.escape(normalize_path(pattern))}$")


def matches(file_path: str, patterns: Optional[Iterable[str]]) -> bool:
    """True if file_path matches any pattern. No patterns → False."""
    if not patterns:
        return False
    path = normalize_path(file_path)
    return any(compile_pattern(p).match(path) for p in patterns)
