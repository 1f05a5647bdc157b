"""Locate the latest Mermaid block in a chat message."""

from __future__ import annotations

import re

from studybuddy.diagrams.sanitize import sanitize_aggressive, sanitize_conservative

MIN_DIAGRAM_LENGTH = 5

_FENCE_OPENER = re.compile(r"```[ \t]*mermaid", re.IGNORECASE)
_MERMAID_BLOCK = re.compile(r"```[ \t]*mermaid[ \t]*\r?\n?(.*?)```", re.IGNORECASE | re.DOTALL)


def has_diagram_fence(text: str | None) -> bool:
    """True if *text* opens at least one ```mermaid fence."""
    return bool(text) and _FENCE_OPENER.search(text) is not None


def extract_raw_diagram(text: str | None) -> str | None:
    """Return the trimmed content of the last usable mermaid block.

    Later blocks win because a model revising a diagram mid-answer puts
    the current version last. Blocks shorter than ``MIN_DIAGRAM_LENGTH``
    after trimming are noise and skipped.
    """
    if not has_diagram_fence(text):
        return None

    latest: str | None = None
    for match in _MERMAID_BLOCK.finditer(text):
        code = match.group(1).strip()
        if len(code) >= MIN_DIAGRAM_LENGTH:
            latest = code
    return latest


def extract_diagram(text: str | None) -> str | None:
    """Latest mermaid block, conservatively sanitized."""
    raw = extract_raw_diagram(text)
    if raw is None:
        return None
    return sanitize_conservative(raw)


def extract_diagram_fallback(text: str | None) -> str | None:
    """Latest mermaid block, aggressively sanitized for a second render try."""
    raw = extract_raw_diagram(text)
    if raw is None:
        return None
    return sanitize_aggressive(raw)
