"""gridcalc.calc - Formula evaluation engine for gridcalc sheets."""

from gridcalc.calc._errors import (
    CircularReferenceError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
)
from gridcalc.calc._evaluator import (
    FormulaEngine,
    GridEvaluator,
    evaluate,
    is_formula,
    recalculate_all,
)
from gridcalc.calc._functions import (
    ERROR,
    FUNCTION_WHITELIST,
    CellError,
    FunctionRegistry,
    RangeValue,
    format_value,
    is_error,
    is_supported,
)
from gridcalc.calc._parser import parse_formula
from gridcalc.calc._protocol import CalcEngine, ComputedGrid, RawGrid
from gridcalc.calc._references import parse_ref, range_coords, resolve_ref

__all__ = [
    "CalcEngine",
    "CellError",
    "CircularReferenceError",
    "ComputedGrid",
    "ERROR",
    "FUNCTION_WHITELIST",
    "FormulaEngine",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FunctionRegistry",
    "GridEvaluator",
    "RangeValue",
    "RawGrid",
    "evaluate",
    "format_value",
    "is_error",
    "is_formula",
    "is_supported",
    "parse_formula",
    "parse_ref",
    "range_coords",
    "recalculate_all",
    "resolve_ref",
]
