"""Argument expansion and positional placeholder tests."""

import pytest

from pgchain import PlaceholderMismatchError
from pgchain._placeholders import (
    expand_args,
    is_expandable,
    marks_to_placeholders,
    placeholders_to_positional,
)


class TestIsExpandable:
    @pytest.mark.parametrize("value", [[1, 2], (1, 2), []])
    def test_sequences(self, value):
        assert is_expandable(value)

    @pytest.mark.parametrize(
        "value", [b"ab", bytearray(b"ab"), memoryview(b"ab"), "ab", {1, 2}, {"a": 1}, 1, None]
    )
    def test_scalars(self, value):
        assert not is_expandable(value)


class TestExpandArgs:
    def test_scalars_pass_through(self):
        assert expand_args("a = ? AND b = ?", [1, "x"]) == ("a = ? AND b = ?", [1, "x"])

    def test_list_expands(self):
        assert expand_args("a = ? AND b IN (?)", [1, [2, 3, 4]]) == (
            "a = ? AND b IN (?, ?, ?)",
            [1, 2, 3, 4],
        )

    def test_tuple_expands(self):
        assert expand_args("b IN (?)", [("x", "y")]) == ("b IN (?, ?)", ["x", "y"])

    def test_none_becomes_null(self):
        assert expand_args("a = ? AND b = ?", [None, 2]) == ("a = NULL AND b = ?", [2])

    def test_bytes_not_expanded(self):
        assert expand_args("b = ?", [b"\xaa\xbb"]) == ("b = ?", [b"\xaa\xbb"])

    def test_escaped_marker_kept(self):
        assert expand_args("data \\? col = ?", ["x"]) == ("data \\? col = ?", ["x"])

    def test_missing_args_leave_markers(self):
        assert expand_args("a = ? AND b = ?", [1]) == ("a = ? AND b = ?", [1])

    def test_surplus_args_appended(self):
        assert expand_args("a = ?", [1, 2]) == ("a = ?", [1, 2])

    def test_no_markers(self):
        assert expand_args("a IS NULL", []) == ("a IS NULL", [])


class TestPlaceholdersToPositional:
    def test_numbers_in_order(self):
        assert placeholders_to_positional("a = ? AND b IN (?, ?)") == (
            "a = $1 AND b IN ($2, $3)",
            3,
        )

    def test_unescapes(self):
        assert placeholders_to_positional("data \\? col = ?") == ("data ? col = $1", 1)

    def test_no_markers(self):
        assert placeholders_to_positional("SELECT 1") == ("SELECT 1", 0)


class TestMarksToPlaceholders:
    def test_expands_and_numbers(self):
        assert marks_to_placeholders("a = ? AND b IN (?)", [None, [1, 2]]) == (
            "a = $1 AND b IN ($2, $3)",
            ["NULL", 1, 2],
        )

    def test_escaped_marker(self):
        assert marks_to_placeholders("a \\? b = ?", ["x"]) == ("a ? b = $1", ["x"])

    def test_too_few_args(self):
        with pytest.raises(PlaceholderMismatchError, match="more markers"):
            marks_to_placeholders("a = ? AND b = ?", [1])

    def test_too_many_args(self):
        with pytest.raises(PlaceholderMismatchError):
            marks_to_placeholders("a = ?", [1, 2])
