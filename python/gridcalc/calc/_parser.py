"""Formula tokenizer and parser built on lark.

The body of a formula (the text after the leading ``=``) is parsed into a
lark ``Tree`` which the evaluator walks bottom-up.

Operator precedence (lowest to highest)::

    1. comparison      = == <> != < > <= >=
    2. concatenation   &
    3. additive        + -
    4. multiplicative  * /
    5. unary           + -
    6. exponentiation  ^ (right-associative)
"""

from __future__ import annotations

import re
from functools import lru_cache

from lark import Lark, Tree
from lark.exceptions import LarkError, UnexpectedInput

from gridcalc.calc._errors import FormulaParseError

GRAMMAR = r"""
?start: expr

?expr: comparison

?comparison: concatenation
    | comparison COMPOP concatenation   -> compare

?concatenation: addition
    | concatenation "&" addition        -> concat

?addition: multiplication
    | addition "+" multiplication       -> add
    | addition "-" multiplication       -> sub

?multiplication: unary
    | multiplication "*" unary          -> mul
    | multiplication "/" unary          -> div

?unary: power
    | "-" unary                         -> neg
    | "+" unary                         -> pos

?power: atom
    | atom "^" unary                    -> pow

?atom: NUMBER                           -> number
    | STRING                            -> string
    | BOOL                              -> boolean
    | NAME "(" [args] ")"               -> func_call
    | RANGE                             -> range_ref
    | CELL_REF                          -> cell_ref
    | NAME                              -> name
    | "(" expr ")"

args: expr ("," expr)*

COMPOP: /<>|<=|>=|==|!=|<|>|=/

// A1:B2, $A$1:B$2 (no spaces around the colon)
RANGE.3: /\$?[A-Za-z]{1,3}\$?\d+:\$?[A-Za-z]{1,3}\$?\d+(?![A-Za-z0-9_.(])/

// A1, $A$1, AA10; not when followed by "(" so LOG10( stays a function name
CELL_REF.2: /\$?[A-Za-z]{1,3}\$?\d+(?![A-Za-z0-9_.(])/

BOOL.2: /(?i:TRUE|FALSE)(?![A-Za-z0-9_.(])/

NAME.1: /[A-Za-z_][A-Za-z0-9_.]*/

NUMBER: /(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?/

// Double-quoted, "" escapes a quote
STRING: /"(?:[^"]|"")*"/

%ignore /\s+/
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


# TRIM/UPPER/LOWER whose argument holds no parentheses or quotes
_TEXT_CALL_RE = re.compile(r"\b(TRIM|UPPER|LOWER)\(([^()\"]+)\)", re.IGNORECASE)


@lru_cache(maxsize=1024)
def parse_formula(body: str) -> Tree:
    """Parse a formula body (no leading ``=``) into a tree.

    Single-atom formulas such as ``42`` come back as a one-child tree
    (``number``, ``cell_ref``, ...); operators and calls become inner nodes.

    A body that does not parse is retried once with the arguments of text
    functions that are not expressions quoted, so ``UPPER(hello world)``
    reads as ``UPPER("hello world")``.

    Raises:
        FormulaParseError: If the body has invalid syntax.
    """
    if not body.strip():
        raise FormulaParseError("Empty formula")
    try:
        return _parse(body)
    except FormulaParseError:
        quoted = _quote_text_arguments(body)
        if quoted == body:
            raise
    return _parse(quoted)


def _quote_text_arguments(body: str) -> str:
    def quote(m: re.Match[str]) -> str:
        if _is_expression(m.group(2)):
            return m.group(0)
        return f'{m.group(1)}("{m.group(2)}")'

    return _TEXT_CALL_RE.sub(quote, body)


def _is_expression(text: str) -> bool:
    try:
        _parser.parse(text)
    except LarkError:
        return False
    return True


def _parse(body: str) -> Tree:
    try:
        return _parser.parse(body)
    except UnexpectedInput as exc:
        raise FormulaParseError(str(exc).splitlines()[0], position=getattr(exc, "column", None)) from exc
    except LarkError as exc:
        raise FormulaParseError(str(exc)) from exc


def unquote(token: str) -> str:
    """Strip the surrounding quotes of a STRING token and unescape ``""``."""
    return token[1:-1].replace('""', '"')


def call_arguments(tree: Tree) -> list[Tree]:
    """Argument subtrees of a ``func_call`` node (empty for ``NAME()``)."""
    args = tree.children[1]
    if args is None:
        return []
    return list(args.children)
