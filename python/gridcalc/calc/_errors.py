"""Exceptions raised while evaluating a formula.

None of these escape the engine: a failing cell shows ``#ERROR``.
"""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for formula evaluation failures."""


class FormulaParseError(FormulaError):
    """The formula text does not match the formula grammar."""

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        if position is not None:
            message = f"{message} (at column {position})"
        super().__init__(message)


class FormulaFunctionError(FormulaError):
    """A function call is unknown or its implementation rejected the arguments."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        super().__init__(f"{name}: {reason}")


class CircularReferenceError(FormulaError):
    """A cell was reached again while it was still being evaluated.

    Attributes:
        cycle_path: cell labels from the first visit back to the revisit.
    """

    def __init__(self, cycle_path: list[str]) -> None:
        self.cycle_path = cycle_path
        super().__init__(f"Circular reference: {' -> '.join(cycle_path)}")
