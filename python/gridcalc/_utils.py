"""A1 notation helpers shared by the sheet model and the calc engine."""

from __future__ import annotations

import re

_A1_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?(\d+)$")


def column_to_index(letters: str) -> int:
    """Convert a column label (``A``, ``B``, ``AA``) to a 0-based index."""
    index = 0
    for ch in letters.upper():
        if not "A" <= ch <= "Z":
            raise ValueError(f"Invalid column label: {letters!r}")
        index = index * 26 + (ord(ch) - ord("A") + 1)
    if index == 0:
        raise ValueError(f"Invalid column label: {letters!r}")
    return index - 1


def a1_to_rowcol(ref: str) -> tuple[int, str]:
    """Split ``"B3"`` into a 0-based row index and a column label: ``(2, "B")``.

    Dollar markers are accepted and ignored.
    """
    m = _A1_RE.match(ref.strip())
    if not m or int(m.group(2)) < 1:
        raise ValueError(f"Invalid cell reference: {ref!r}")
    return int(m.group(2)) - 1, m.group(1).upper()
