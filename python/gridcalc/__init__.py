"""gridcalc: a spreadsheet grid with a formula evaluation engine.

Usage::

    from gridcalc import Sheet, SheetStore, evaluate

    sheet = Sheet(rows=[{"A": "10", "B": "=A1+5"}])
    sheet["A2"] = "=SUM(A1:B1)"
    print(sheet.display("A2"))   # 25

    evaluate('=TRIM("  HELLO ")', sheet.rows)   # 'HELLO'

    store = SheetStore("sheets.json")
    store.save_sheet(sheet)
"""

from gridcalc._sheet import DEFAULT_COLUMNS, Sheet, SheetState
from gridcalc._store import DEFAULT_STORE_PATH, SheetStore
from gridcalc._styles import CellStyle
from gridcalc.calc import ERROR, FormulaEngine, evaluate, format_value, recalculate_all

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CellStyle",
    "DEFAULT_COLUMNS",
    "DEFAULT_STORE_PATH",
    "ERROR",
    "FormulaEngine",
    "Sheet",
    "SheetState",
    "SheetStore",
    "evaluate",
    "format_value",
    "recalculate_all",
]
