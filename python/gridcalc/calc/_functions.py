"""Function whitelist and builtin implementations for formula evaluation."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Callable


# ---------------------------------------------------------------------------
# CellError: the #ERROR sentinel
# ---------------------------------------------------------------------------


class CellError:
    """Error value shown in place of a cell that cannot be computed.

    Use ``CellError.of(code)`` to get a cached singleton for each code.
    Errors compare equal to their string code (``ERROR == "#ERROR"``).
    """

    __slots__ = ("code",)
    _cache: dict[str, CellError] = {}

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> CellError:
        canon = code.upper()
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CellError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


ERROR = CellError.of("#ERROR")


def is_error(val: Any) -> bool:
    """Return True if *val* is a CellError instance."""
    return isinstance(val, CellError)


def first_error(*values: Any) -> CellError | None:
    """Return the first CellError found in *values*, or None."""
    for v in values:
        if isinstance(v, CellError):
            return v
    return None


# ---------------------------------------------------------------------------
# RangeValue: a resolved A1:B2 argument
# ---------------------------------------------------------------------------


@dataclass
class RangeValue:
    """Values of a rectangular range in row-major order.

    Empty when the range was written end-before-start on either axis.
    """

    values: list[Any]

    def __iter__(self):
        return iter(self.values)

    def __len__(self):
        return len(self.values)


# ---------------------------------------------------------------------------
# Whitelist: functions the engine evaluates, by category.
# ---------------------------------------------------------------------------

FUNCTION_WHITELIST: dict[str, str] = {
    # Aggregate (7)
    "SUM": "aggregate",
    "AVERAGE": "aggregate",
    "MAX": "aggregate",
    "MIN": "aggregate",
    "COUNT": "aggregate",
    "PRODUCT": "aggregate",
    "MEDIAN": "aggregate",
    # Text (3)
    "TRIM": "text",
    "UPPER": "text",
    "LOWER": "text",
    # Logic (1)
    "IF": "logic",
}


def is_supported(func_name: str) -> bool:
    """Check if a function name is in the evaluation whitelist."""
    return func_name.upper() in FUNCTION_WHITELIST


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INT_RE = re.compile(r"[+-]?\d+")


def parse_number(text: str) -> int | float | None:
    """Parse *text* when the whole of it (ignoring surrounding space) is a number.

    Integer literals stay ``int``.
    """
    stripped = text.strip()
    if not _NUMBER_RE.fullmatch(stripped):
        return None
    if _INT_RE.fullmatch(stripped):
        return int(stripped)
    return float(stripped)


def coerce_number(value: Any) -> float | None:
    """Best-effort numeric coercion used by the aggregates.

    Text contributes its leading numeric prefix (``"12abc"`` -> 12.0).
    Returns None for values with no numeric reading.
    """
    if isinstance(value, CellError) or value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    m = _NUMBER_RE.match(str(value).lstrip())
    if not m:
        return None
    return float(m.group(0))


def format_value(value: Any) -> str:
    """Render a value the way a cell displays it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _flatten(args: list[Any]) -> list[Any]:
    values: list[Any] = []
    for a in args:
        if isinstance(a, (RangeValue, list, tuple)):
            values.extend(a)
        else:
            values.append(a)
    return values


def _coerce_or(values: list[Any], default: float) -> list[float]:
    result: list[float] = []
    for v in values:
        num = coerce_number(v)
        result.append(default if num is None else num)
    return result


# ---------------------------------------------------------------------------
# Aggregate builtins.  Each takes a list of resolved argument values; range
# arguments arrive as RangeValue and are flattened in order.
# ---------------------------------------------------------------------------


def _builtin_sum(args: list[Any]) -> float:
    return sum(_coerce_or(_flatten(args), 0.0))


def _builtin_average(args: list[Any]) -> float:
    """AVERAGE - empty range placeholders count towards the divisor."""
    values = _flatten(args)
    if not values:
        return 0.0
    return sum(_coerce_or(values, 0.0)) / len(values)


def _builtin_max(args: list[Any]) -> float:
    nums = _coerce_or(_flatten(args), 0.0)
    if not nums:
        return 0.0
    return max(nums)


def _builtin_min(args: list[Any]) -> float:
    nums = _coerce_or(_flatten(args), 0.0)
    if not nums:
        return 0.0
    return min(nums)


def _builtin_count(args: list[Any]) -> float:
    """COUNT - counts values with a numeric reading."""
    return float(sum(1 for v in _flatten(args) if coerce_number(v) is not None))


def _builtin_product(args: list[Any]) -> float:
    """PRODUCT - values with no numeric reading count as 1, not 0."""
    result = 1.0
    for num in _coerce_or(_flatten(args), 1.0):
        result *= num
    return result


def _builtin_median(args: list[Any]) -> float:
    nums = sorted(_coerce_or(_flatten(args), 0.0))
    if not nums:
        return 0.0
    mid = len(nums) // 2
    if len(nums) % 2:
        return nums[mid]
    return (nums[mid - 1] + nums[mid]) / 2


# ---------------------------------------------------------------------------
# Text builtins.  Flagged ``_text_args``: the evaluator hands them the text
# of each argument (cell content, unquoted literal, bare word, or the
# rendered value of any other expression).
# ---------------------------------------------------------------------------


def _text_result(text: str) -> int | float | str:
    num = parse_number(text)
    return text if num is None else num


def _builtin_trim(args: list[str]) -> int | float | str:
    """TRIM: strip leading and trailing whitespace."""
    if len(args) != 1:
        raise ValueError("TRIM requires exactly 1 argument")
    return _text_result(args[0].strip())


def _builtin_upper(args: list[str]) -> int | float | str:
    if len(args) != 1:
        raise ValueError("UPPER requires exactly 1 argument")
    return _text_result(args[0].upper())


def _builtin_lower(args: list[str]) -> int | float | str:
    if len(args) != 1:
        raise ValueError("LOWER requires exactly 1 argument")
    return _text_result(args[0].lower())


_builtin_trim._text_args = True  # type: ignore[attr-defined]
_builtin_upper._text_args = True  # type: ignore[attr-defined]
_builtin_lower._text_args = True  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Raw-arg builtins (receive unevaluated argument trees and an eval callback)
# ---------------------------------------------------------------------------


def is_nan(value: Any) -> bool:
    """True for the float NaN a reference with no numeric reading becomes."""
    return isinstance(value, float) and math.isnan(value)


def is_truthy(value: Any) -> bool:
    """0, NaN, False, None and "" are false; everything else is true."""
    if is_nan(value):
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def _builtin_if(raw_args: list[Any], eval_fn: Callable[..., Any]) -> Any:
    """IF(condition, true_value, false_value); only the chosen branch is evaluated.

    The condition is evaluated with ``condition=True``: references in it read
    as numbers, and text with no numeric reading becomes NaN.
    """
    if len(raw_args) != 3:
        raise ValueError("IF requires exactly 3 arguments")
    condition = eval_fn(raw_args[0], condition=True)
    if isinstance(condition, CellError):
        return condition
    if is_truthy(condition):
        return eval_fn(raw_args[1])
    return eval_fn(raw_args[2])


_builtin_if._raw_args = True  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_BUILTINS: dict[str, Callable[..., Any]] = {
    "SUM": _builtin_sum,
    "AVERAGE": _builtin_average,
    "MAX": _builtin_max,
    "MIN": _builtin_min,
    "COUNT": _builtin_count,
    "PRODUCT": _builtin_product,
    "MEDIAN": _builtin_median,
    "TRIM": _builtin_trim,
    "UPPER": _builtin_upper,
    "LOWER": _builtin_lower,
    "IF": _builtin_if,
}


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with builtins and can be extended with custom functions, which
    receive the list of resolved argument values.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[..., Any]] = dict(_BUILTINS)

    def register(self, name: str, func: Callable[..., Any]) -> None:
        self._functions[name.upper()] = func

    def get(self, name: str) -> Callable[..., Any] | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
