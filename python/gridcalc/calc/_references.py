"""Reference resolver: A1 tokens to grid coordinates and raw cell content.

Only single-letter columns are addressable from formulas.  Anything that
does not match the reference grammar resolves to "absent" rather than
raising, so callers decide whether absence reads as ``0`` or ``""``.
"""

from __future__ import annotations

import re

from gridcalc.calc._protocol import RawGrid

# $A$1, $A1, A$1, a1
_REF_RE = re.compile(r"^\$?([A-Z])\$?(\d+)$", re.IGNORECASE)


def parse_ref(token: str) -> tuple[int, int] | None:
    """Map a reference token to a 0-based ``(col, row)`` pair, or None."""
    m = _REF_RE.match(token.strip())
    if not m:
        return None
    col = ord(m.group(1).upper()) - ord("A")
    row = int(m.group(2)) - 1
    return col, row


def column_letter(col: int) -> str:
    return chr(ord("A") + col)


def raw_at(grid: RawGrid, col: int, row: int) -> str | None:
    """Raw content at a coordinate; None when out of bounds, missing or empty."""
    if row < 0 or row >= len(grid) or col < 0 or col > 25:
        return None
    value = grid[row].get(column_letter(col))
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def resolve_ref(token: str, grid: RawGrid) -> str | None:
    """Raw content a reference token points at, or None."""
    coord = parse_ref(token)
    if coord is None:
        return None
    return raw_at(grid, *coord)


def range_coords(start: str, end: str) -> list[tuple[int, int]]:
    """Expand ``start:end`` into ``(col, row)`` pairs, row-major.

    Iteration runs from the start corner to the end corner as written, so a
    range whose end precedes its start on either axis is empty.
    """
    first = parse_ref(start)
    last = parse_ref(end)
    if first is None or last is None:
        return []
    start_col, start_row = first
    end_col, end_row = last
    return [
        (c, r)
        for r in range(start_row, end_row + 1)
        for c in range(start_col, end_col + 1)
    ]
