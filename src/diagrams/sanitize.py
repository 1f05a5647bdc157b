"""Conservative and aggressive Mermaid sanitizers.

Both sanitizers share one pipeline: classify every line, pass structural
lines through verbatim while tracking grouping balance, rewrite content
lines with an ordered rule list, drop a truncated trailing edge, then
close any grouping region the model left open.
"""

from __future__ import annotations

from collections.abc import Sequence

from studybuddy.diagrams.classify import GroupBalance, LineKind, classify_line
from studybuddy.diagrams.rules import (
    AGGRESSIVE_RULES,
    CONSERVATIVE_RULES,
    Rule,
    apply_rules,
    is_dangling_edge,
)


def _sanitize(code: str, rules: Sequence[Rule]) -> str:
    balance = GroupBalance()
    lines: list[tuple[LineKind, str]] = []

    for line in code.split("\n"):
        kind = classify_line(line)
        balance.track(kind)
        if kind.is_structural:
            lines.append((kind, line))
        else:
            lines.append((kind, apply_rules(line, rules)))

    # Repeated so the output has no dangling tail left to trim on a rerun.
    while lines and lines[-1][0] is LineKind.CONTENT and is_dangling_edge(lines[-1][1]):
        lines.pop()

    output = [line for _, line in lines]
    output.extend(balance.closing_lines())
    return "\n".join(output)


def sanitize_conservative(code: str) -> str:
    """Repair common syntax faults while keeping as much styling as possible.

    Rich node shapes become quoted rectangles, bare labels get quoted,
    chained edge labels are merged and thick/dotted arrows become plain
    ``-->`` arrows. Decision diamonds and subroutine shapes survive.
    """
    return _sanitize(code, CONSERVATIVE_RULES)


def sanitize_aggressive(code: str) -> str:
    """Reduce a diagram to quoted rectangles, decision diamonds and ``-->``.

    Used as a last resort after the conservative output fails to render.
    Every bracket and brace label is re-quoted from scratch and every
    link style collapses to a plain arrow, with edge labels kept as
    ``|"label"|`` text.
    """
    return _sanitize(code, AGGRESSIVE_RULES)
