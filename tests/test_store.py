"""Tests for SheetStore JSON persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gridcalc import DEFAULT_STORE_PATH, Sheet, SheetStore

CELLS = [
    {"A": "10", "B": "=A1+5"},
    {"A": "=B1*2", "B": "5"},
]


@pytest.fixture()
def store(tmp_path: Path) -> SheetStore:
    return SheetStore(tmp_path / "sheets.json")


class TestLoad:
    def test_missing_file_default_id(self, store: SheetStore) -> None:
        assert store.load("default") == {"sheetId": "default", "cells": []}

    def test_missing_file_other_id(self, store: SheetStore) -> None:
        assert store.load("budget") == {"sheetId": "budget", "cells": []}

    def test_default_path(self) -> None:
        assert SheetStore().path == DEFAULT_STORE_PATH


class TestSave:
    def test_round_trip(self, store: SheetStore) -> None:
        store.save("budget", CELLS)
        assert store.load("budget") == {"sheetId": "budget", "cells": CELLS}

    def test_mismatched_id_is_empty(self, store: SheetStore) -> None:
        store.save("budget", CELLS)
        assert store.load("other") == {"sheetId": "other", "cells": []}

    def test_single_record_overwritten(self, store: SheetStore) -> None:
        store.save("first", CELLS)
        store.save("second", [{"A": "1", "B": ""}])
        assert store.load("first")["cells"] == []
        assert store.load("second")["cells"] == [{"A": "1", "B": ""}]

    def test_file_layout(self, store: SheetStore) -> None:
        store.save("budget", CELLS)
        text = Path(store.path).read_text(encoding="utf-8")
        assert json.loads(text) == {"sheetId": "budget", "cells": CELLS}
        assert "\n  " in text

    def test_empty_cells_allowed(self, store: SheetStore) -> None:
        store.save("budget", [])
        assert store.load("budget") == {"sheetId": "budget", "cells": []}

    @pytest.mark.parametrize("sheet_id, cells", [("", CELLS), ("budget", None), (None, CELLS)])
    def test_missing_fields(self, store: SheetStore, sheet_id, cells) -> None:
        with pytest.raises(ValueError, match="Missing sheetId or cells"):
            store.save(sheet_id, cells)
        assert not Path(store.path).exists()


class TestSheetWrappers:
    def test_save_and_load_sheet(self, store: SheetStore) -> None:
        original = Sheet(sheet_id="budget", rows=CELLS)
        store.save_sheet(original)

        restored = Sheet(sheet_id="budget")
        store.load_sheet(restored)
        assert restored.rows == original.rows
        assert restored.computed == original.computed
        assert restored.computed_value("A2") == 30

    def test_load_sheet_other_id_clears(self, store: SheetStore) -> None:
        store.save_sheet(Sheet(sheet_id="budget", rows=CELLS))
        other = Sheet(sheet_id="other", rows=[{"A": "1", "B": "2"}])
        store.load_sheet(other)
        assert len(other) == 0

    def test_repr(self, store: SheetStore) -> None:
        assert "sheets.json" in repr(store)
