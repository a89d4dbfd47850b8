"""Tests for the gridcalc.calc formula grammar."""

from __future__ import annotations

import pytest

from gridcalc.calc._errors import FormulaParseError
from gridcalc.calc._parser import call_arguments, parse_formula, unquote


class TestPrecedence:
    def test_mul_binds_tighter_than_add(self) -> None:
        tree = parse_formula("1+2*3")
        assert tree.data == "add"
        assert tree.children[1].data == "mul"

    def test_parentheses_group(self) -> None:
        tree = parse_formula("(1+2)*3")
        assert tree.data == "mul"
        assert tree.children[0].data == "add"

    def test_left_associative_subtraction(self) -> None:
        tree = parse_formula("7-2-1")
        assert tree.data == "sub"
        assert tree.children[0].data == "sub"

    def test_power_right_associative(self) -> None:
        tree = parse_formula("2^3^2")
        assert tree.data == "pow"
        assert tree.children[1].data == "pow"

    def test_unary_minus_wraps_power(self) -> None:
        tree = parse_formula("-2^2")
        assert tree.data == "neg"
        assert tree.children[0].data == "pow"

    def test_comparison_lowest(self) -> None:
        tree = parse_formula("A1+1>5")
        assert tree.data == "compare"
        assert tree.children[0].data == "add"
        assert tree.children[1] == ">"

    def test_concat_below_addition(self) -> None:
        tree = parse_formula('"a"&1+1')
        assert tree.data == "concat"
        assert tree.children[1].data == "add"

    @pytest.mark.parametrize("op", ["=", "==", "<>", "!=", "<", ">", "<=", ">="])
    def test_comparison_operators(self, op: str) -> None:
        tree = parse_formula(f"1{op}2")
        assert tree.data == "compare"
        assert tree.children[1] == op


class TestAtoms:
    def test_number(self) -> None:
        assert parse_formula("42").data == "number"
        assert parse_formula("2.5e3").data == "number"

    def test_cell_ref(self) -> None:
        assert parse_formula("A1").data == "cell_ref"
        assert parse_formula("$A$1").data == "cell_ref"

    def test_range(self) -> None:
        tree = parse_formula("A1:B2")
        assert tree.data == "range_ref"
        assert tree.children[0] == "A1:B2"

    def test_boolean_case_insensitive(self) -> None:
        assert parse_formula("TRUE").data == "boolean"
        assert parse_formula("false").data == "boolean"

    def test_bare_word(self) -> None:
        assert parse_formula("hello").data == "name"
        assert parse_formula("TRUEISH").data == "name"

    def test_string(self) -> None:
        tree = parse_formula('"  HELLO "')
        assert tree.data == "string"
        assert unquote(str(tree.children[0])) == "  HELLO "

    def test_whitespace_ignored(self) -> None:
        assert parse_formula(" 1 + 2 ").data == "add"


class TestFunctionCalls:
    def test_range_argument(self) -> None:
        tree = parse_formula("SUM(A1:A2)")
        assert tree.data == "func_call"
        assert tree.children[0] == "SUM"
        args = call_arguments(tree)
        assert [a.data for a in args] == ["range_ref"]

    def test_no_arguments(self) -> None:
        assert call_arguments(parse_formula("SUM()")) == []

    def test_commas_inside_strings_and_calls(self) -> None:
        tree = parse_formula('IF(MAX(A1,B1)>5,"a,b","c")')
        args = call_arguments(tree)
        assert len(args) == 3
        assert args[0].data == "compare"
        assert args[1].data == "string"

    def test_digit_suffixed_function_name(self) -> None:
        tree = parse_formula("LOG10(100)")
        assert tree.data == "func_call"
        assert tree.children[0] == "LOG10"

    def test_nested(self) -> None:
        tree = parse_formula("TRIM(UPPER(A1))")
        inner = call_arguments(tree)[0]
        assert inner.data == "func_call"
        assert inner.children[0] == "UPPER"


class TestTextArgumentFallback:
    def test_unquoted_words_become_a_string(self) -> None:
        tree = parse_formula("UPPER(hello world)")
        assert tree.data == "func_call"
        args = call_arguments(tree)
        assert [a.data for a in args] == ["string"]
        assert unquote(str(args[0].children[0])) == "hello world"

    def test_surrounding_space_kept(self) -> None:
        args = call_arguments(parse_formula("TRIM( a b )"))
        assert unquote(str(args[0].children[0])) == " a b "

    def test_lowercase_function_name(self) -> None:
        args = call_arguments(parse_formula("lower(Two Words)"))
        assert args[0].data == "string"

    def test_expression_argument_untouched(self) -> None:
        tree = parse_formula("UPPER(A1&B1)")
        assert call_arguments(tree)[0].data == "concat"

    @pytest.mark.parametrize("body", ["UPPER(hello world)+", "SUM(hello world)", 'UPPER(a "b")'])
    def test_other_syntax_errors_remain(self, body: str) -> None:
        with pytest.raises(FormulaParseError):
            parse_formula(body)


class TestParseErrors:
    @pytest.mark.parametrize("body", ["1+", "SUM(A1", '"unterminated', "1 2", "*3", ")"])
    def test_invalid_syntax(self, body: str) -> None:
        with pytest.raises(FormulaParseError):
            parse_formula(body)

    def test_empty(self) -> None:
        with pytest.raises(FormulaParseError, match="Empty formula"):
            parse_formula("   ")


def test_unquote_escaped_quotes() -> None:
    assert unquote('"say ""hi"""') == 'say "hi"'
