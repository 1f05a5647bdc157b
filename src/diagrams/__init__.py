"""Mermaid diagram extraction, repair and rendering for chat messages.

Chat answers often carry Mermaid markup that the renderer rejects. This
package pulls the latest ```mermaid block out of a message, repairs it
with a conservative or aggressive sanitizer, and drives a two-tier render
that falls back to showing the raw code.
"""

from studybuddy.diagrams.classify import DiagramKind, LineKind, classify_diagram, classify_line
from studybuddy.diagrams.extract import (
    extract_diagram,
    extract_diagram_fallback,
    extract_raw_diagram,
    has_diagram_fence,
)
from studybuddy.diagrams.render import (
    DiagramPanel,
    RenderOutcome,
    RenderStatus,
    render_diagram,
)
from studybuddy.diagrams.sanitize import sanitize_aggressive, sanitize_conservative

__all__ = [
    "DiagramKind",
    "DiagramPanel",
    "LineKind",
    "RenderOutcome",
    "RenderStatus",
    "classify_diagram",
    "classify_line",
    "extract_diagram",
    "extract_diagram_fallback",
    "extract_raw_diagram",
    "has_diagram_fence",
    "render_diagram",
    "sanitize_aggressive",
    "sanitize_conservative",
]
