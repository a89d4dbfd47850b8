"""Sheet: raw grid, computed grid and styles for one identified sheet.

Every raw mutation marks the sheet dirty and recalculates the whole grid
before returning, so callers only ever observe a stable sheet.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from gridcalc._styles import DEFAULT_STYLE, CellStyle
from gridcalc._utils import a1_to_rowcol, column_to_index
from gridcalc.calc import CalcEngine, ComputedGrid, FormulaEngine, RawGrid, format_value

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = ("A", "B")


class SheetState(enum.Enum):
    STABLE = "stable"
    DIRTY = "dirty"


class Sheet:
    """A rectangular grid of raw cells plus its computed values.

    Usage::

        sheet = Sheet(rows=[{"A": "10", "B": "=A1+5"}])
        sheet["A2"] = "=SUM(A1:B1)"
        sheet.computed_value("A2")  # 25.0
    """

    __slots__ = (
        "_sheet_id", "_columns", "_rows", "_computed", "_styles",
        "_engine", "_state",
    )

    def __init__(
        self,
        sheet_id: str = "default",
        columns: Iterable[str] = DEFAULT_COLUMNS,
        rows: Iterable[Mapping[str, Any]] | None = None,
        engine: CalcEngine | None = None,
    ) -> None:
        self._sheet_id = sheet_id
        self._rows: RawGrid = []
        self._columns: list[str] = []
        for column in columns:
            self._add_column(column)
        self._computed: ComputedGrid = []
        self._styles: dict[tuple[int, str], CellStyle] = {}
        self._engine: CalcEngine = engine if engine is not None else FormulaEngine()
        self._state = SheetState.DIRTY
        self.load(rows or [])

    @property
    def sheet_id(self) -> str:
        return self._sheet_id

    @sheet_id.setter
    def sheet_id(self, value: str) -> None:
        self._sheet_id = value

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self._columns)

    @property
    def state(self) -> SheetState:
        return self._state

    @property
    def rows(self) -> RawGrid:
        """Copy of the raw grid."""
        return [dict(row) for row in self._rows]

    @property
    def computed(self) -> ComputedGrid:
        """Copy of the computed grid."""
        return [dict(row) for row in self._computed]

    def __len__(self) -> int:
        return len(self._rows)

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> str:
        """``sheet['A1']`` -> raw text ("" past the last row)."""
        row, column = self._locate(key)
        if row >= len(self._rows):
            return ""
        return self._rows[row][column]

    def __setitem__(self, key: str, value: Any) -> None:
        """``sheet['A1'] = '=B1*2'`` is shorthand for :meth:`set_value`."""
        row, column = self._locate(key)
        self.set_value(row, column, value)

    def set_value(self, row: int, column: str, value: Any) -> None:
        """Set the raw text at 0-based *row* and recalculate.

        Rows past the end are created blank.  Setting a cell to its current
        text does nothing.
        """
        column = column.upper()
        if column not in self._columns:
            raise KeyError(f"Column '{column}' does not exist")
        if row < 0:
            raise ValueError(f"Row index must not be negative: {row}")
        text = "" if value is None else str(value)
        if row < len(self._rows) and self._rows[row][column] == text:
            return
        while len(self._rows) <= row:
            self._rows.append(self._blank_row())
        self._rows[row][column] = text
        self._recalculate()

    def computed_value(self, key: str) -> Any:
        row, column = self._locate(key)
        if row >= len(self._computed):
            return None
        return self._computed[row][column]

    def display(self, key: str) -> str:
        """Computed value of *key* rendered as text."""
        return format_value(self.computed_value(key))

    def load(self, cells: Iterable[Mapping[str, Any]]) -> None:
        """Replace the whole raw grid and recalculate.

        Rows are normalised to the column set; keys not yet known extend it.
        """
        rows = [dict(row) for row in cells]
        for row in rows:
            for key in row:
                if key.upper() not in self._columns:
                    self._add_column(key)
        self._rows = []
        for row in rows:
            upper = {k.upper(): v for k, v in row.items()}
            self._rows.append({
                c: "" if upper.get(c) is None else str(upper[c])
                for c in self._columns
            })
        self._recalculate()

    # ------------------------------------------------------------------
    # Styles
    # ------------------------------------------------------------------

    def style(self, row: int, column: str) -> CellStyle:
        return self._styles.get((row, column.upper()), DEFAULT_STYLE)

    def set_style(self, row: int, column: str, style: CellStyle) -> None:
        """Styles are presentation only; setting one never recalculates."""
        self._styles[(row, column.upper())] = style

    # ------------------------------------------------------------------
    # Persistence records
    # ------------------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        return {"sheetId": self._sheet_id, "cells": self.rows}

    @classmethod
    def from_record(cls, record: Mapping[str, Any], **kwargs: Any) -> Sheet:
        return cls(
            sheet_id=record.get("sheetId") or "default",
            rows=record.get("cells") or [],
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _add_column(self, label: str) -> None:
        label = label.upper()
        column_to_index(label)  # validates
        if label not in self._columns:
            self._columns.append(label)
            self._columns.sort(key=column_to_index)
            for row in self._rows:
                row.setdefault(label, "")

    def _blank_row(self) -> dict[str, str]:
        return {c: "" for c in self._columns}

    def _locate(self, key: str) -> tuple[int, str]:
        row, column = a1_to_rowcol(key)
        if column not in self._columns:
            raise KeyError(f"Column '{column}' does not exist")
        return row, column

    def _recalculate(self) -> None:
        self._state = SheetState.DIRTY
        self._computed = self._engine.recalculate_all(self._rows)
        self._state = SheetState.STABLE
        logger.debug(
            "Recalculated sheet %r (%d rows x %d columns)",
            self._sheet_id, len(self._rows), len(self._columns),
        )

    def __repr__(self) -> str:
        return f"<Sheet {self._sheet_id!r} rows={len(self._rows)} columns={self._columns}>"
