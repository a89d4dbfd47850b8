"""CalcEngine protocol and grid type aliases."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

# Row-major list of rows; each row maps a column letter to raw cell text.
RawGrid = list[dict[str, str]]
# Same shape as RawGrid, holding computed values.
ComputedGrid = list[dict[str, Any]]


@runtime_checkable
class CalcEngine(Protocol):
    """Protocol for formula evaluation engines."""

    def evaluate(self, raw: Any, grid: RawGrid) -> Any:
        """Evaluate one raw cell against a grid snapshot.

        Non-formula content is returned unchanged; failures return ``ERROR``.
        """
        ...

    def recalculate_all(self, grid: RawGrid) -> ComputedGrid:
        """Evaluate every cell of *grid* and return the computed grid."""
        ...
