"""GridEvaluator: bottom-up evaluation of parsed formulas over a raw grid.

A cell's raw text is either a literal, returned unchanged, or a formula
(leading ``=``).  Formulas are parsed once (see ``_parser``) and the tree is
walked bottom-up: function calls evaluate their arguments first, then the
enclosing operator or call consumes the results.  References resolve through
a closure over one grid snapshot; a referenced formula cell is evaluated on
demand and memoised for the rest of the pass.  Before a cell is computed, the
formula cells it reaches are computed dependencies-first from an explicit
stack, so reference chains of any length stay shallow.

Cycles are detected with an in-progress set: reaching a cell that is still
being evaluated raises :class:`CircularReferenceError`, which unwinds to the
top-level cell and shows as ``#ERROR`` there.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from lark import Tree

from gridcalc.calc._errors import (
    CircularReferenceError,
    FormulaError,
    FormulaFunctionError,
)
from gridcalc.calc._functions import (
    ERROR,
    CellError,
    FunctionRegistry,
    RangeValue,
    coerce_number,
    first_error,
    format_value,
    is_nan,
    parse_number,
)
from gridcalc.calc._parser import call_arguments, parse_formula, unquote
from gridcalc.calc._protocol import ComputedGrid, RawGrid
from gridcalc.calc._references import (
    column_letter,
    parse_ref,
    range_coords,
    raw_at,
)

logger = logging.getLogger(__name__)

_ARITHMETIC_OPS = {"add": "+", "sub": "-", "mul": "*", "div": "/", "pow": "^"}
_NAN = float("nan")


def is_formula(raw: Any) -> bool:
    return isinstance(raw, str) and raw.startswith("=")


def _label(coord: tuple[int, int]) -> str:
    col, row = coord
    return f"{column_letter(col)}{row + 1}"


def _to_number(value: Any) -> int | float:
    """Numeric reading of an operand: absent and non-numeric text read as 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    num = parse_number(str(value))
    return 0 if num is None else num


def _binary_op(left: Any, op: str, right: Any) -> Any:
    """Evaluate an arithmetic binary operation."""
    err = first_error(left, right)
    if err is not None:
        return err
    lf = _to_number(left)
    rf = _to_number(right)
    if op in ("+", "-", "*", "/"):
        if op == "/" and rf == 0:
            raise FormulaError("Division by zero")
        try:
            if op == "+":
                return lf + rf
            if op == "-":
                return lf - rf
            if op == "*":
                return lf * rf
            return lf / rf
        except (OverflowError, ZeroDivisionError) as exc:
            raise FormulaError(f"Numeric overflow in {op!r}") from exc
    if op == "^":
        try:
            if isinstance(lf, int) and isinstance(rf, int) and 0 <= rf <= 64:
                result = lf ** rf
                if abs(result) > sys.float_info.max:
                    raise OverflowError("integer power out of float range")
                return result
            result = float(lf) ** float(rf)
        except (ZeroDivisionError, OverflowError) as exc:
            raise FormulaError("Invalid power") from exc
        if isinstance(result, complex):
            raise FormulaError("Invalid power")
        return result
    raise FormulaError(f"Unknown operator {op!r}")


def _compare(left: Any, right: Any, op: str) -> Any:
    """Evaluate a comparison.

    Numeric when both sides have a numeric reading, otherwise a
    case-insensitive comparison of the displayed text.  NaN is unequal to
    everything, so only ``<>`` holds for it.
    """
    err = first_error(left, right)
    if err is not None:
        return err
    if is_nan(left) or is_nan(right):
        return op in ("<>", "!=")
    lf = left if isinstance(left, (int, float)) else parse_number(format_value(left))
    rf = right if isinstance(right, (int, float)) else parse_number(format_value(right))
    if lf is None or rf is None:
        lf = format_value(left).lower()
        rf = format_value(right).lower()
    if op in ("=", "=="):
        return lf == rf
    if op in ("<>", "!="):
        return lf != rf
    if op == ">":
        return lf > rf
    if op == "<":
        return lf < rf
    if op == ">=":
        return lf >= rf
    if op == "<=":
        return lf <= rf
    raise FormulaError(f"Unknown comparison {op!r}")


def _referenced_cells(tree: Tree) -> list[tuple[int, int]]:
    """Coordinates of every reference and range cell named in *tree*."""
    coords: list[tuple[int, int]] = []
    for sub in tree.iter_subtrees():
        if sub.data in ("cell_ref", "name"):
            coord = parse_ref(str(sub.children[0]))
            if coord is not None:
                coords.append(coord)
        elif sub.data == "range_ref":
            start, end = str(sub.children[0]).split(":", 1)
            coords.extend(range_coords(start, end))
    return coords


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class GridEvaluator:
    """Evaluates raw cells against one snapshot of a raw grid.

    Usage::

        ev = GridEvaluator([{"A": "10", "B": "=A1+5"}])
        ev.evaluate("=SUM(A1:B1)")  # 25.0
        ev.recalculate_all()        # [{"A": "10", "B": 15}]

    Computed formula cells are memoised per instance, so build a new
    evaluator whenever the grid changes.
    """

    def __init__(self, grid: RawGrid, registry: FunctionRegistry | None = None) -> None:
        self._grid = grid
        self._functions = registry if registry is not None else FunctionRegistry()
        self._cache: dict[tuple[int, int], Any] = {}
        self._in_progress: set[tuple[int, int]] = set()
        self._eval_stack: list[tuple[int, int]] = []
        self._numeric_refs = False

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def evaluate(self, raw: Any) -> Any:
        """Evaluate raw cell content not tied to a grid position."""
        if not is_formula(raw):
            return raw
        try:
            tree = parse_formula(raw[1:].strip())
            self._prime(_referenced_cells(tree))
            with self._reference_mode(numeric=False):
                return self._eval(tree)
        except FormulaError as exc:
            logger.debug("Cannot evaluate formula %r: %s", raw, exc)
        except RecursionError:
            logger.debug("Reference chain too deep in %r", raw)
        return ERROR

    def evaluate_at(self, row: int, column: str) -> Any:
        """Computed value of the cell at 0-based *row* and *column* letter."""
        raw = self._grid[row].get(column)
        if not is_formula(raw):
            return raw
        coord = parse_ref(f"{column}{row + 1}")
        if coord is None:
            # Columns formulas cannot address get no cycle bookkeeping.
            return self.evaluate(raw)
        try:
            self._prime([coord])
            return self._cell_value(coord)
        except CircularReferenceError as exc:
            logger.debug("%s in %s", exc, _label(coord))
        except RecursionError:
            logger.debug("Reference chain too deep in %s", _label(coord))
        return ERROR

    def recalculate_all(self) -> ComputedGrid:
        """Evaluate every cell, row-major, into a grid of the same shape."""
        computed: ComputedGrid = []
        errors = 0
        for row_index, row in enumerate(self._grid):
            out: dict[str, Any] = {}
            for column in row:
                value = self.evaluate_at(row_index, column)
                if isinstance(value, CellError):
                    errors += 1
                out[column] = value
            computed.append(out)
        logger.debug("Recalculated %d rows, %d error cells", len(computed), errors)
        return computed

    # ------------------------------------------------------------------
    # Cell resolution
    # ------------------------------------------------------------------

    def _prime(self, roots: list[tuple[int, int]]) -> None:
        """Evaluate the formula cells reachable from *roots*, dependencies first.

        References are walked with an explicit stack and the cells are then
        computed in post-order, so every evaluation finds its inputs already
        memoised and a long chain never nests deeply.
        """
        order: list[tuple[int, int]] = []
        visited: set[tuple[int, int]] = set()
        stack = [(coord, False) for coord in reversed(roots)]
        while stack:
            coord, expanded = stack.pop()
            if expanded:
                order.append(coord)
                continue
            if coord in visited or coord in self._cache:
                continue
            visited.add(coord)
            raw = raw_at(self._grid, *coord)
            if not is_formula(raw):
                continue
            try:
                deps = _referenced_cells(parse_formula(raw[1:].strip()))
            except FormulaError:
                deps = []
            stack.append((coord, True))
            stack.extend((dep, False) for dep in reversed(deps) if dep not in visited)

        for coord in order:
            try:
                self._cell_value(coord)
            except CircularReferenceError:
                # Cycle members stay uncached; the caller reports them.
                continue
            except RecursionError:
                break

    def _cell_value(self, coord: tuple[int, int]) -> Any:
        """Computed value at *coord*: raw text for literals, None when absent.

        Raises:
            CircularReferenceError: If *coord* is already being evaluated.
        """
        if coord in self._cache:
            return self._cache[coord]
        raw = raw_at(self._grid, *coord)
        if not is_formula(raw):
            return raw

        if coord in self._in_progress:
            start = self._eval_stack.index(coord)
            cycle = [_label(c) for c in self._eval_stack[start:]] + [_label(coord)]
            raise CircularReferenceError(cycle)

        self._in_progress.add(coord)
        self._eval_stack.append(coord)
        try:
            value = self._evaluate_formula(raw)
        except CircularReferenceError:
            raise
        except FormulaError as exc:
            logger.debug("Cannot evaluate %s %r: %s", _label(coord), raw, exc)
            value = ERROR
        finally:
            self._in_progress.discard(coord)
            self._eval_stack.pop()

        self._cache[coord] = value
        return value

    @contextmanager
    def _reference_mode(self, numeric: bool) -> Iterator[None]:
        """Within the block, bare references read as numbers when *numeric*."""
        saved = self._numeric_refs
        self._numeric_refs = numeric
        try:
            yield
        finally:
            self._numeric_refs = saved

    def _reference_value(self, token: str) -> Any:
        """Value of a bare reference in an expression.

        Absent cells and tokens that are not references read as 0.  In
        numeric mode (an IF condition) a value reads through its numeric
        prefix and text without one becomes NaN; otherwise numeric text
        becomes a number and other text stays text.
        """
        coord = parse_ref(token)
        if coord is None:
            return 0
        value = self._cell_value(coord)
        if value is None:
            return 0
        if self._numeric_refs:
            if isinstance(value, CellError):
                return value
            num = coerce_number(value)
            return _NAN if num is None else num
        if isinstance(value, str):
            num = parse_number(value)
            return value if num is None else num
        return value

    def _range_value(self, token: str) -> RangeValue:
        """Values of ``start:end`` in source order; absent cells become ""."""
        start, end = token.split(":", 1)
        values = []
        for coord in range_coords(start, end):
            value = self._cell_value(coord)
            values.append("" if value is None else value)
        return RangeValue(values=values)

    # ------------------------------------------------------------------
    # Tree evaluation
    # ------------------------------------------------------------------

    def _evaluate_formula(self, raw: str) -> Any:
        tree = parse_formula(raw[1:].strip())
        with self._reference_mode(numeric=False):
            return self._eval(tree)

    def _eval_raw_arg(self, tree: Tree, condition: bool = False) -> Any:
        """Tree evaluator handed to ``_raw_args`` functions."""
        with self._reference_mode(numeric=condition):
            return self._eval(tree)

    def _eval(self, tree: Tree) -> Any:
        kind = tree.data
        children = tree.children

        if kind == "number":
            return parse_number(str(children[0]))
        if kind == "string":
            return unquote(str(children[0]))
        if kind == "boolean":
            return str(children[0]).upper() == "TRUE"
        if kind in ("cell_ref", "name"):
            return self._reference_value(str(children[0]))
        if kind == "range_ref":
            raise FormulaError(f"Range {children[0]} used outside a function argument")

        if kind in _ARITHMETIC_OPS:
            left = self._eval(children[0])
            right = self._eval(children[1])
            return _binary_op(left, _ARITHMETIC_OPS[kind], right)
        if kind == "compare":
            left = self._eval(children[0])
            right = self._eval(children[2])
            return _compare(left, right, str(children[1]))
        if kind == "concat":
            left = self._eval(children[0])
            right = self._eval(children[1])
            err = first_error(left, right)
            if err is not None:
                return err
            return format_value(left) + format_value(right)
        if kind == "neg":
            value = self._eval(children[0])
            if isinstance(value, CellError):
                return value
            return -_to_number(value)
        if kind == "pos":
            return self._eval(children[0])
        if kind == "func_call":
            with self._reference_mode(numeric=False):
                return self._eval_function(str(children[0]).upper(), call_arguments(tree))

        raise FormulaError(f"Unsupported expression {kind!r}")

    # ------------------------------------------------------------------
    # Function dispatch
    # ------------------------------------------------------------------

    def _eval_function(self, func_name: str, arg_trees: list[Tree]) -> Any:
        """Evaluate a function call.

        Functions with ``_raw_args = True`` receive the argument trees and
        a tree evaluator taking an optional ``condition`` flag.  Functions
        with ``_text_args = True`` receive the text of each argument.
        Everything else receives resolved values, with ranges as
        :class:`RangeValue`.
        """
        func = self._functions.get(func_name)
        if func is None:
            raise FormulaFunctionError(func_name, "unsupported function")

        if getattr(func, "_raw_args", False):
            call_args: list[Any] = arg_trees
        elif getattr(func, "_text_args", False):
            call_args = [self._text_arg(t) for t in arg_trees]
            err = first_error(*call_args)
            if err is not None:
                return err
        else:
            call_args = [self._resolve_arg(t) for t in arg_trees]

        try:
            if getattr(func, "_raw_args", False):
                return func(call_args, self._eval_raw_arg)
            return func(call_args)
        except (ValueError, TypeError, ArithmeticError) as e:
            raise FormulaFunctionError(func_name, str(e)) from e

    def _resolve_arg(self, tree: Tree) -> Any:
        if tree.data == "range_ref":
            return self._range_value(str(tree.children[0]))
        return self._eval(tree)

    def _text_arg(self, tree: Tree) -> Any:
        """Text of a string-function argument.

        A reference gives the referenced cell's content ("" when absent), a
        quoted literal its unquoted text, a bare word itself; any other
        expression is evaluated and rendered.
        """
        kind = tree.data
        if kind == "cell_ref":
            coord = parse_ref(str(tree.children[0]))
            value = self._cell_value(coord) if coord is not None else None
            if isinstance(value, CellError):
                return value
            return format_value(value)
        if kind == "string":
            return unquote(str(tree.children[0]))
        if kind == "name":
            return str(tree.children[0])
        value = self._eval(tree)
        if isinstance(value, CellError):
            return value
        return format_value(value)


# ---------------------------------------------------------------------------
# Engine facade
# ---------------------------------------------------------------------------


class FormulaEngine:
    """Stateless facade satisfying :class:`CalcEngine`.

    Each call builds a fresh :class:`GridEvaluator` over the given snapshot,
    so repeated calls on an unchanged grid return identical results.
    """

    def __init__(self, registry: FunctionRegistry | None = None) -> None:
        self.functions = registry if registry is not None else FunctionRegistry()

    def evaluate(self, raw: Any, grid: RawGrid) -> Any:
        return GridEvaluator(grid, self.functions).evaluate(raw)

    def recalculate_all(self, grid: RawGrid) -> ComputedGrid:
        return GridEvaluator(grid, self.functions).recalculate_all()


_default_engine = FormulaEngine()


def evaluate(raw: Any, grid: RawGrid) -> Any:
    """Evaluate one raw cell against *grid*; ``#ERROR`` on failure."""
    return _default_engine.evaluate(raw, grid)


def recalculate_all(grid: RawGrid) -> ComputedGrid:
    """Computed grid for *grid*, every cell evaluated independently."""
    return _default_engine.recalculate_all(grid)
