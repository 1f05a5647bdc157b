"""Tests for src/diagrams/rules.py — individual content-line rewrites."""

import pytest

from studybuddy.diagrams.rules import (
    AGGRESSIVE_RULES,
    CONSERVATIVE_RULES,
    apply_rules,
    clean_label,
    collapse_flag_shapes,
    collapse_subroutines,
    collapse_rich_shapes,
    convert_round_nodes,
    flatten_all_links,
    flatten_arrows,
    flatten_labeled_arrows,
    is_dangling_edge,
    merge_chained_labels,
    pipe_labeled_arrows,
    quote_brace_labels,
    quote_bracket_labels,
    quoted_node,
    requote_brace_labels,
    requote_bracket_labels,
)


class TestLabels:
    def test_clean_label_strips_enclosing_quotes(self):
        assert clean_label(' "Start" ') == "Start"
        assert clean_label("'Start'") == "Start"

    def test_clean_label_swaps_inner_quotes(self):
        assert clean_label('say "hi" now') == "say 'hi' now"

    def test_quoted_node(self):
        assert quoted_node("Read (file)") == '["Read (file)"]'


class TestChainedLabels:
    def test_quoted_first_segment(self):
        assert merge_chained_labels('A -- "x" -- y --> B') == 'A -- "x: y" --> B'

    def test_bare_segments(self):
        assert merge_chained_labels("A -- x -- y --> B") == 'A -- "x: y" --> B'

    def test_arrow_head_kept(self):
        assert merge_chained_labels("A -- x -- y ==> B") == 'A -- "x: y" ==> B'

    def test_single_label_untouched(self):
        assert merge_chained_labels("A -- yes --> B") == "A -- yes --> B"


class TestArrows:
    def test_labeled_thick(self):
        assert flatten_labeled_arrows("A == yes ==> B") == "A -- yes --> B"

    def test_labeled_dotted(self):
        assert flatten_labeled_arrows("A -. maybe .-> B") == "A -- maybe --> B"

    def test_pipe_labeled(self):
        assert pipe_labeled_arrows("A == yes ==> B") == 'A -->|"yes"| B'
        assert pipe_labeled_arrows("A -. no .-> B") == 'A -->|"no"| B'

    def test_flatten_headed(self):
        assert flatten_arrows("A ==> B -.-> C -..-> D") == "A --> B --> C --> D"

    def test_flatten_leaves_headless(self):
        assert flatten_arrows("A === B -.- C") == "A === B -.- C"

    def test_flatten_all_links(self):
        assert flatten_all_links("A === B -.- C ==> D") == "A --> B --> C --> D"

    @pytest.mark.parametrize(
        "line",
        ["A --- B", "A ----> B", "A <--> B", "A <-.-> B", "A --o B", "A --x B", "A x--x B"],
    )
    def test_flatten_all_link_styles(self, line):
        assert flatten_all_links(line) == "A --> B"

    def test_flatten_all_spares_ids_starting_with_o_or_x(self):
        assert flatten_all_links("A --> ox --> xo") == "A --> ox --> xo"
        assert flatten_all_links("box--x B") == "box--> B"

    def test_quoted_arrow_text_untouched(self):
        assert flatten_arrows('A["a ==> b"] ==> B') == 'A["a ==> b"] --> B'

    def test_pipe_label_untouched(self):
        assert flatten_arrows("A -->|x ==> y| B") == "A -->|x ==> y| B"


class TestShapes:
    @pytest.mark.parametrize(
        "line, expected",
        [
            ("A([Start])", 'A["Start"]'),
            ("B[(Store)]", 'B["Store"]'),
            ("C{{Retry}}", 'C["Retry"]'),
            ("D[/Input/]", 'D["Input"]'),
            ("E[\\Output\\]", 'E["Output"]'),
            ("F((Hub))", 'F["Hub"]'),
            ("G(((Ring)))", 'G["Ring"]'),
        ],
    )
    def test_rich_shapes(self, line, expected):
        assert collapse_rich_shapes(line) == expected

    def test_cylinder_with_nested_parentheses(self):
        assert collapse_rich_shapes("A[(Database (main))]") == 'A["Database (main)"]'

    def test_subroutine(self):
        assert collapse_subroutines('A[[Sub]] --> B[["Quoted"]]') == 'A["Sub"] --> B["Quoted"]'

    def test_flag_shape(self):
        assert collapse_flag_shapes("H>Flag] --> I") == 'H["Flag"] --> I'

    def test_flag_inside_quotes_untouched(self):
        assert collapse_flag_shapes('A["x>y]"]') == 'A["x>y]"]'

    def test_round_nodes(self):
        assert convert_round_nodes("A(Start) --> B(Done)") == 'A["Start"] --> B["Done"]'

    def test_round_nodes_with_nested_parentheses(self):
        assert convert_round_nodes("A(Node (x)) --> B") == 'A["Node (x)"] --> B'

    def test_round_nodes_spare_keywords(self):
        assert convert_round_nodes("A --> end(x)") == "A --> end(x)"
        assert convert_round_nodes("A --> Subgraph(x)") == "A --> Subgraph(x)"

    def test_round_nodes_inside_quotes(self):
        assert convert_round_nodes('A["Read (file)"]') == 'A["Read (file)"]'


class TestQuoting:
    def test_bracket_labels(self):
        assert quote_bracket_labels("A[Plain] --> B") == 'A["Plain"] --> B'

    def test_bracket_already_quoted(self):
        assert quote_bracket_labels('A["Plain"]') == 'A["Plain"]'

    def test_subroutine_keeps_outer_brackets(self):
        assert quote_bracket_labels("A[[Sub]]") == 'A[["Sub"]]'

    def test_brace_labels(self):
        assert quote_brace_labels("B{Valid?}") == 'B{"Valid?"}'

    def test_single_char_brace_untouched(self):
        assert quote_brace_labels("B{x}") == "B{x}"

    def test_requote_partial_quotes(self):
        assert requote_bracket_labels('A["a" and b]') == "A[\"'a' and b\"]"

    def test_requote_brace(self):
        assert requote_brace_labels("B{x}") == 'B{"x"}'
        assert requote_brace_labels('B{"Valid?"}') == 'B{"Valid?"}'


class TestApplyRules:
    def test_conservative_order(self):
        line = "A[Load (cfg)] == ok ==> B(Go)"
        assert apply_rules(line, CONSERVATIVE_RULES) == 'A["Load (cfg)"] -- ok --> B["Go"]'

    def test_aggressive_order(self):
        line = "A[Load (cfg)] == ok ==> B>Go]"
        assert apply_rules(line, AGGRESSIVE_RULES) == 'A["Load (cfg)"] -->|"ok"| B["Go"]'

    def test_empty_rules(self):
        assert apply_rules("A --> B", ()) == "A --> B"


class TestDanglingEdge:
    @pytest.mark.parametrize(
        "line", ["A -->", "A --", "A ==>", "A ==", "A -.->", "  B -->  "]
    )
    def test_dangling(self, line):
        assert is_dangling_edge(line) is True

    @pytest.mark.parametrize(
        "line", ["A --> B", 'A["x"] -->', "B{y} --", "F(z) -->", "plain text"]
    )
    def test_not_dangling(self, line):
        assert is_dangling_edge(line) is False
