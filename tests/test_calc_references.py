"""Tests for gridcalc.calc reference resolution."""

from __future__ import annotations

from gridcalc.calc._references import (
    column_letter,
    parse_ref,
    range_coords,
    raw_at,
    resolve_ref,
)

GRID = [
    {"A": "10", "B": ""},
    {"A": "5", "B": "x"},
]


class TestParseRef:
    def test_simple(self) -> None:
        assert parse_ref("A1") == (0, 0)
        assert parse_ref("B3") == (1, 2)

    def test_absolute_markers_stripped(self) -> None:
        assert parse_ref("$B$3") == (1, 2)
        assert parse_ref("$B3") == (1, 2)
        assert parse_ref("B$3") == (1, 2)

    def test_lowercase_letter(self) -> None:
        assert parse_ref("b2") == (1, 1)

    def test_multi_letter_column_rejected(self) -> None:
        assert parse_ref("AA1") is None

    def test_not_a_reference(self) -> None:
        assert parse_ref("A") is None
        assert parse_ref("1A") is None
        assert parse_ref("hello") is None
        assert parse_ref("") is None

    def test_row_zero_maps_below_grid(self) -> None:
        assert parse_ref("A0") == (0, -1)


class TestResolveRef:
    def test_present(self) -> None:
        assert resolve_ref("A2", GRID) == "5"
        assert resolve_ref("$A$1", GRID) == "10"

    def test_empty_cell_is_absent(self) -> None:
        assert resolve_ref("B1", GRID) is None

    def test_out_of_bounds_is_absent(self) -> None:
        assert resolve_ref("A9", GRID) is None
        assert resolve_ref("A0", GRID) is None
        assert resolve_ref("C1", GRID) is None

    def test_malformed_is_absent(self) -> None:
        assert resolve_ref("AA1", GRID) is None
        assert resolve_ref("foo", GRID) is None

    def test_raw_at_stringifies_non_text(self) -> None:
        assert raw_at([{"A": 7}], 0, 0) == "7"  # type: ignore[dict-item]


class TestRangeCoords:
    def test_rectangle_row_major(self) -> None:
        assert range_coords("A1", "B2") == [(0, 0), (1, 0), (0, 1), (1, 1)]

    def test_single_column(self) -> None:
        assert range_coords("$A$1", "A3") == [(0, 0), (0, 1), (0, 2)]

    def test_reversed_range_is_empty(self) -> None:
        assert range_coords("B2", "A1") == []

    def test_reversed_single_axis_is_empty(self) -> None:
        assert range_coords("A2", "B1") == []
        assert range_coords("B1", "A2") == []

    def test_invalid_endpoint_is_empty(self) -> None:
        assert range_coords("AA1", "AB2") == []


def test_column_letter() -> None:
    assert column_letter(0) == "A"
    assert column_letter(2) == "C"
