"""SheetStore: single-record JSON file persistence for raw sheets.

The file holds exactly one ``{"sheetId": ..., "cells": [...]}`` record.
Saving overwrites it; loading a different identifier yields an empty grid.
There is no versioning and no protection against concurrent writers.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from gridcalc._sheet import Sheet
from gridcalc.calc import RawGrid

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = "spreadsheetData.json"


class SheetStore:
    def __init__(self, path: str | os.PathLike[str] = DEFAULT_STORE_PATH) -> None:
        self._path = os.fspath(path)

    @property
    def path(self) -> str:
        return self._path

    def _read(self) -> dict[str, Any]:
        if not os.path.exists(self._path):
            return {"sheetId": "default", "cells": []}
        with open(self._path, encoding="utf-8") as f:
            return json.load(f)

    def save(self, sheet_id: str, cells: RawGrid | None) -> None:
        """Overwrite the stored record.

        Raises:
            ValueError: If *sheet_id* is empty or *cells* is None.
        """
        if not sheet_id or cells is None:
            raise ValueError("Missing sheetId or cells")
        record = {"sheetId": sheet_id, "cells": [dict(row) for row in cells]}
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(record, f, indent=2)
        logger.info("Saved sheet %r (%d rows) to %s", sheet_id, len(cells), self._path)

    def load(self, sheet_id: str) -> dict[str, Any]:
        """Stored record when its id matches *sheet_id*, else an empty one."""
        data = self._read()
        if data.get("sheetId") == sheet_id:
            logger.info("Loaded sheet %r from %s", sheet_id, self._path)
            return {"sheetId": sheet_id, "cells": list(data.get("cells") or [])}
        logger.info("No stored sheet %r in %s", sheet_id, self._path)
        return {"sheetId": sheet_id, "cells": []}

    # ------------------------------------------------------------------
    # Sheet convenience wrappers
    # ------------------------------------------------------------------

    def save_sheet(self, sheet: Sheet) -> None:
        record = sheet.to_record()
        self.save(record["sheetId"], record["cells"])

    def load_sheet(self, sheet: Sheet) -> None:
        """Replace *sheet*'s raw grid with the stored one for its id."""
        sheet.load(self.load(sheet.sheet_id)["cells"])

    def __repr__(self) -> str:
        return f"<SheetStore {self._path!r}>"
