"""Shell-style filename patterns (`*` and `?` only)."""

from __future__ import annotations

import re


def glob_to_regex(pattern: str) -> str:
    """Translate a glob into an anchored regular expression string."""
    parts: list[str] = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return "^" + "".join(parts) + "$"


def matches(filename: str, pattern: str) -> bool:
    """Return True when the whole filename matches the glob, case-sensitively."""
    try:
        regex = re.compile(glob_to_regex(pattern), re.DOTALL)
    except re.error:
        return False
    return regex.fullmatch(filename) is not None
