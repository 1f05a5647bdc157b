"""Line classification and diagram-kind detection for Mermaid sources."""

from __future__ import annotations

import re
from enum import StrEnum

# Identifiers that open a statement and must never be read as node ids.
RESERVED_KEYWORDS = frozenset({
    "subgraph",
    "graph",
    "flowchart",
    "end",
    "style",
    "class",
    "classdef",
    "click",
    "linkstyle",
    "direction",
})

_ORIENTATION = re.compile(r"^(graph|flowchart)(\s|$)|^direction\s+\w+$", re.IGNORECASE)
_GROUP_OPEN = re.compile(r"^subgraph(\s|$)", re.IGNORECASE)
_DIRECTIVE = re.compile(r"^(style|classDef|class|click|linkStyle)\s", re.IGNORECASE)

SYNTHETIC_CLOSE = "    end"


class LineKind(StrEnum):
    """Classification of a single diagram line."""

    BLANK = "blank"
    COMMENT = "comment"
    ORIENTATION = "orientation"
    GROUP_OPEN = "group_open"
    GROUP_CLOSE = "group_close"
    DIRECTIVE = "directive"
    CONTENT = "content"

    @property
    def is_structural(self) -> bool:
        return self is not LineKind.CONTENT


class DiagramKind(StrEnum):
    """Dominant diagram family, used for labelling only."""

    MINDMAP = "mindmap"
    FLOWCHART = "flowchart"
    SEQUENCE = "sequence"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    DiagramKind.MINDMAP: "Mind map",
    DiagramKind.FLOWCHART: "Flowchart",
    DiagramKind.SEQUENCE: "Sequence",
    DiagramKind.OTHER: "Diagram",
}


def classify_line(line: str) -> LineKind:
    """Classify one line of diagram source.

    Grouping markers are checked before directives so that ``subgraph``
    and ``end`` are always counted for balance tracking.
    """
    trimmed = line.strip()
    if not trimmed:
        return LineKind.BLANK
    if trimmed.startswith("%%"):
        return LineKind.COMMENT
    if trimmed.lower() == "end":
        return LineKind.GROUP_CLOSE
    if _GROUP_OPEN.match(trimmed):
        return LineKind.GROUP_OPEN
    if _ORIENTATION.match(trimmed):
        return LineKind.ORIENTATION
    if _DIRECTIVE.match(trimmed):
        return LineKind.DIRECTIVE
    return LineKind.CONTENT


class GroupBalance:
    """Counts open grouping regions; never drops below zero."""

    def __init__(self) -> None:
        self.depth = 0

    def track(self, kind: LineKind) -> None:
        if kind is LineKind.GROUP_OPEN:
            self.depth += 1
        elif kind is LineKind.GROUP_CLOSE:
            # A stray close is not reconciled against anything.
            self.depth = max(self.depth - 1, 0)

    def closing_lines(self) -> list[str]:
        """Synthetic close lines needed to balance every open group."""
        return [SYNTHETIC_CLOSE] * self.depth


def classify_diagram(code: str | None) -> DiagramKind:
    """Detect the diagram family from its first declaration keyword."""
    if not code:
        return DiagramKind.OTHER

    for line in code.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("%%"):
            continue
        keyword = trimmed.split()[0].lower()
        if keyword == "mindmap":
            return DiagramKind.MINDMAP
        if keyword in ("sequencediagram", "sequence"):
            return DiagramKind.SEQUENCE
        if keyword in ("graph", "flowchart"):
            return DiagramKind.FLOWCHART
        return DiagramKind.OTHER

    return DiagramKind.OTHER
