"""Unit tests for the placeholder scanner."""

from __future__ import annotations

import pytest

from sqlbridge.core.scanner import named_positions, positional_positions, scan


class TestPositionalPlaceholders:
    def test_simple(self) -> None:
        assert positional_positions("SELECT * FROM t WHERE a = ? AND b = ?") == [26, 36]

    def test_no_placeholders(self) -> None:
        assert scan("SELECT 1") == []

    def test_inside_single_quoted_literal_is_ignored(self) -> None:
        assert positional_positions("SELECT '?' FROM t WHERE a = ?") == [28]

    def test_inside_double_quoted_identifier_is_ignored(self) -> None:
        assert positional_positions('SELECT "?" FROM t WHERE a = ?') == [28]

    def test_inside_backticks_is_ignored(self) -> None:
        assert positional_positions("SELECT `a?b` FROM t WHERE a = ?") == [30]

    def test_inside_brackets_is_ignored(self) -> None:
        assert positional_positions("SELECT [a?b] FROM t WHERE a = ?") == [30]

    def test_array_constructor_brackets_are_scanned(self) -> None:
        assert positional_positions("SELECT ARRAY[?, ?]") == [13, 16]

    def test_line_comment_is_ignored(self) -> None:
        sql = "SELECT ? -- what?\nFROM t WHERE a = ?"
        assert positional_positions(sql) == [7, 35]

    def test_block_comment_is_ignored(self) -> None:
        assert positional_positions("SELECT /* ? */ ?") == [15]

    def test_double_question_mark_is_an_operator(self) -> None:
        assert positional_positions("SELECT data ?? 'k', ? FROM t") == [20]

    def test_doubled_quote_escape(self) -> None:
        sql = "SELECT 'it''s ?' , ?"
        assert positional_positions(sql) == [19]


class TestBackslashEscapes:
    SQL = "SELECT 'a\\' , ?"

    def test_standard_sql_treats_backslash_as_literal(self) -> None:
        # without escapes the literal ends after the backslash
        assert positional_positions(self.SQL) == [14]

    def test_backslash_escaped_quote_keeps_literal_open(self) -> None:
        assert positional_positions(self.SQL, backslash_escapes=True) == []


class TestNamedPlaceholders:
    def test_simple(self) -> None:
        sql = "SELECT * FROM t WHERE a = :foo AND b = :bar_1"
        assert named_positions(sql) == {26: "foo", 39: "bar_1"}

    def test_typecast_is_not_a_placeholder(self) -> None:
        assert named_positions("SELECT a::text FROM t WHERE b = :b") == {32: "b"}

    def test_inside_literal_is_ignored(self) -> None:
        assert named_positions("SELECT ':foo' FROM t WHERE a = :foo") == {31: "foo"}

    def test_lone_colon(self) -> None:
        assert named_positions("SELECT 'x' : 1") == {}

    def test_placeholder_attributes(self) -> None:
        (placeholder,) = scan("WHERE a = :name")
        assert placeholder.name == "name"
        assert not placeholder.is_positional
        assert placeholder.end == len("WHERE a = :name")


class TestMixedPlaceholders:
    def test_order_is_left_to_right(self) -> None:
        found = scan("SELECT ?, :a, ?")
        assert [p.text for p in found] == ["?", ":a", "?"]

    @pytest.mark.parametrize("sql", ["", "SELECT 'unterminated ?"])
    def test_degenerate_input_does_not_fail(self, sql: str) -> None:
        assert positional_positions(sql) == []
