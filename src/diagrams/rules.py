"""Rewrite rules applied to Mermaid content lines.

Each rule is a pure ``str -> str`` transform over a single content line.
Rules never see structural lines (declarations, grouping markers, style
directives, comments), and every rule is a fixed point on its own output.

Apart from :func:`merge_chained_labels`, rules leave text inside
double-quoted strings and ``|...|`` edge labels untouched: the compiled
patterns match those spans first and hand them back unchanged.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from studybuddy.diagrams.classify import RESERVED_KEYWORDS

Rule = Callable[[str], str]

_PROTECTED = r'(?P<protected>"[^"\n]*"|\|[^|\n]*\|)'

_ARROW_HEAD = r"(?P<arrow>-->|={2,}>|-\.+->)"


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(f"{_PROTECTED}|{pattern}")


def _substitute(
    pattern: re.Pattern[str], line: str, replace: Callable[[re.Match[str]], str]
) -> str:
    def _sub(match: re.Match[str]) -> str:
        if match.group("protected") is not None:
            return match.group(0)
        return replace(match)

    return pattern.sub(_sub, line)


def clean_label(text: str) -> str:
    """Drop one enclosing quote pair and swap inner double quotes for single ones."""
    label = text.strip()
    if len(label) >= 2 and label[0] == label[-1] and label[0] in "\"'":
        label = label[1:-1]
    return label.replace('"', "'")


def quoted_node(text: str) -> str:
    """Canonical quoted-rectangle node body for *text*."""
    return f'["{clean_label(text)}"]'


# --- chained edge labels ----------------------------------------------------

_CHAINED_QUOTED = re.compile(
    r'--\s*"(?P<first>[^"]*)"\s*--\s*(?P<second>[^-=.>"\s][^->]*?)\s*' + _ARROW_HEAD
)
_CHAINED_BARE = re.compile(
    r"--\s+(?P<first>[^\">\s][^->\n]*?)\s+--\s+(?P<second>[^\">\s][^->\n]*?)\s*"
    + _ARROW_HEAD
)


def _merged_label(match: re.Match[str]) -> str:
    first = match.group("first").replace('"', "'")
    second = match.group("second").replace('"', "'")
    return f'-- "{first}: {second}" {match.group("arrow")}'


def merge_chained_labels(line: str) -> str:
    """Merge two ``--text--`` segments on one arrow into a single label.

    Pre: ``A -- "x" -- y --> B`` or ``A -- x -- y --> B``.
    Post: ``A -- "x: y" --> B``; the arrow head is kept as written.
    """
    line = _CHAINED_QUOTED.sub(_merged_label, line)
    return _CHAINED_BARE.sub(_merged_label, line)


# --- arrows -----------------------------------------------------------------

_LABELED_THICK = r"==\s*(?P<thick>[^=>\s][^=>\n]*?)\s*={2,}>"
_LABELED_DOTTED = r"-\.\s*(?P<dotted>[^.>\-\s][^.>\n]*?)\s*\.+->"
_LABELED_ARROW = _compile(f"{_LABELED_THICK}|{_LABELED_DOTTED}")


def _arrow_label(match: re.Match[str]) -> str:
    label = match.group("thick")
    if label is None:
        label = match.group("dotted")
    return label.strip()


def flatten_labeled_arrows(line: str) -> str:
    """Rewrite labeled thick/dotted arrows as inline-labeled plain arrows.

    Pre: ``A == yes ==> B`` or ``A -. yes .-> B``.
    Post: ``A -- yes --> B``.
    """
    return _substitute(
        _LABELED_ARROW, line, lambda m: f"-- {_arrow_label(m)} -->"
    )


def pipe_labeled_arrows(line: str) -> str:
    """Rewrite labeled thick/dotted arrows as pipe-labeled plain arrows.

    Pre: ``A == yes ==> B`` or ``A -. yes .-> B``.
    Post: ``A -->|"yes"| B``.
    """
    return _substitute(
        _LABELED_ARROW, line, lambda m: f'-->|"{clean_label(_arrow_label(m))}"|'
    )


_HEADED_ARROW = _compile(r"(?P<arrow>={2,}>|-\.+->)")
_OTHER_LINK = _compile(
    r"(?P<link><-+>|<=+>"
    r"|(?<!\w)[ox]-{2,}[ox](?=\s|$)"
    r"|-{2,}[ox](?=\s|$)"
    r"|={3,}|-\.+-|-{3,}>?)"
)


def flatten_arrows(line: str) -> str:
    """Replace thick (``==>``) and dotted (``-.->``) arrows with ``-->``."""
    return _substitute(_HEADED_ARROW, line, lambda m: "-->")


def flatten_all_links(line: str) -> str:
    """Like :func:`flatten_arrows`, but every link style becomes ``-->``.

    Covers open links (``---``, ``===``, ``-.-``), long arrows (``--->``),
    two-way arrows (``<-->``, ``<==>``) and circle or cross ends
    (``--o``, ``--x``, ``o--o``).
    """
    line = flatten_arrows(line)
    return _substitute(_OTHER_LINK, line, lambda m: "-->")


# --- node shapes ------------------------------------------------------------

RICH_SHAPES: dict[str, str] = {
    "stadium": r"\(\[(?P<stadium>[^\]\n]+)\]\)",
    "cylinder": r"\[\((?P<cylinder>(?:[^()\n]|\([^()\n]*\))+)\)\]",
    "hexagon": r"\{\{(?P<hexagon>[^}\n]+)\}\}",
    "parallelogram": r"\[[/\\](?P<parallelogram>[^/\\\]\n]+)[/\\]\]",
    "circle": r"\({2,3}(?P<circle>[^()\n]+)\){2,3}",
}

_RICH_SHAPE = _compile("|".join(RICH_SHAPES.values()))
_FLAG_SHAPE = _compile(r"(?P<id>\b[A-Za-z_]\w*)>(?P<label>[^\]\n]+)\]")
_SUBROUTINE = _compile(r"\[\[(?P<label>[^\[\]\n]+)\]\]")


def _shape_to_rect(match: re.Match[str]) -> str:
    for name in RICH_SHAPES:
        label = match.group(name)
        if label is not None:
            return quoted_node(label)
    return match.group(0)


def collapse_rich_shapes(line: str) -> str:
    """Collapse stadium, cylinder, hexagon, parallelogram and circle shapes.

    Pre: ``A([Start])``, ``B[(db)]``, ``C{{x}}``, ``D[/in/]``, ``E((o))``.
    Post: the same ids followed by ``["label"]``.
    """
    return _substitute(_RICH_SHAPE, line, _shape_to_rect)


def collapse_subroutines(line: str) -> str:
    """Rewrite the subroutine shape ``id[[label]]`` as ``id["label"]``."""
    return _substitute(_SUBROUTINE, line, lambda m: quoted_node(m.group("label")))


def collapse_flag_shapes(line: str) -> str:
    """Rewrite the asymmetric ``id>label]`` shape as ``id["label"]``.

    Runs after bracket labels are quoted, so a ``>`` inside a label is
    already protected.
    """
    return _substitute(
        _FLAG_SHAPE, line, lambda m: f"{m.group('id')}{quoted_node(m.group('label'))}"
    )


_ROUND_NODE = _compile(
    r"(?P<id>\b[A-Za-z_]\w*)\((?P<label>(?:[^()\n]|\([^()\n]*\))*)\)"
)


def _round_to_rect(match: re.Match[str]) -> str:
    node_id = match.group("id")
    if node_id.lower() in RESERVED_KEYWORDS:
        return match.group(0)
    return f"{node_id}{quoted_node(match.group('label'))}"


def convert_round_nodes(line: str) -> str:
    """Rewrite ``id(label)`` as ``id["label"]``, sparing reserved keywords."""
    return _substitute(_ROUND_NODE, line, _round_to_rect)


# --- label quoting ----------------------------------------------------------

_UNQUOTED_BRACKET = _compile(r'\[(?!["\[])(?P<label>[^\[\]\n]+)\]')
_UNQUOTED_BRACE = _compile(r'\{(?!["{])(?P<label>[^{}\n]{2,})\}')
_ANY_BRACKET = _compile(r"\[(?!\[)(?P<label>[^\[\]\n]+)\]")
_ANY_BRACE = _compile(r"\{(?!\{)(?P<label>[^{}\n]+)\}")


def quote_bracket_labels(line: str) -> str:
    """Wrap unquoted ``[label]`` text in double quotes.

    ``[[label]]`` keeps its outer brackets; only the inner label is quoted.
    """
    return _substitute(_UNQUOTED_BRACKET, line, lambda m: quoted_node(m.group("label")))


def quote_brace_labels(line: str) -> str:
    """Wrap unquoted decision labels of two or more characters in quotes."""
    return _substitute(
        _UNQUOTED_BRACE, line, lambda m: '{"' + clean_label(m.group("label")) + '"}'
    )


def requote_bracket_labels(line: str) -> str:
    """Re-quote every ``[label]``, discarding whatever quoting it had."""
    return _substitute(_ANY_BRACKET, line, lambda m: quoted_node(m.group("label")))


def requote_brace_labels(line: str) -> str:
    """Re-quote every decision ``{label}``, discarding whatever quoting it had."""
    return _substitute(
        _ANY_BRACE, line, lambda m: '{"' + clean_label(m.group("label")) + '"}'
    )


# Bracket and brace quoting run before round-node conversion so that
# parentheses inside a label are never read as a node.
CONSERVATIVE_RULES: Sequence[Rule] = (
    merge_chained_labels,
    flatten_labeled_arrows,
    flatten_arrows,
    collapse_rich_shapes,
    quote_bracket_labels,
    quote_brace_labels,
    convert_round_nodes,
)

AGGRESSIVE_RULES: Sequence[Rule] = (
    merge_chained_labels,
    pipe_labeled_arrows,
    flatten_all_links,
    collapse_rich_shapes,
    collapse_subroutines,
    requote_bracket_labels,
    requote_brace_labels,
    collapse_flag_shapes,
    convert_round_nodes,
)


def apply_rules(line: str, rules: Sequence[Rule]) -> str:
    """Run *rules* over *line* in order."""
    for rule in rules:
        line = rule(line)
    return line


_DANGLING_EDGE = re.compile(r"(-{2,}|={2,}|\.-)>?\s*$")


def is_dangling_edge(line: str) -> bool:
    """True for an edge that ends in link punctuation with no target."""
    trimmed = line.strip()
    if any(ch in trimmed for ch in "])}"):
        return False
    return bool(_DANGLING_EDGE.search(trimmed))
