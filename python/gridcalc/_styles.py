"""Per-cell presentation record. Stored on the sheet, never read by the engine."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class CellStyle:
    bold: bool = False
    italic: bool = False
    color: str = "#000000"
    font_size: int = 16

    def toggled_bold(self) -> CellStyle:
        return replace(self, bold=not self.bold)

    def toggled_italic(self) -> CellStyle:
        return replace(self, italic=not self.italic)


DEFAULT_STYLE = CellStyle()
