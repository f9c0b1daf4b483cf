"""Computed-column formulas.

A formula is arithmetic over ``[Column]`` references with one conditional form
(``IF(cond, a, b)``) and four functions (``ROUND``, ``ABS``, ``CEIL``,
``FLOOR``). Evaluation always returns a display string; anything that cannot
be computed becomes the placeholder.
"""

from __future__ import annotations

import ast
import logging
import math
import re
from decimal import Decimal
from typing import Any, Callable, Mapping

from firegrid.widgets.values import PLACEHOLDER, format_number, parse_float

logger = logging.getLogger(__name__)

_REFERENCE_RE = re.compile(r"\[([^\]]+)\]")
_CALL_RE = re.compile(r"\b(IF|ROUND|ABS|CEIL|FLOOR)\s*\(", re.IGNORECASE)
_COMPARISON_RE = re.compile(r"^(.+?)\s*(>=|<=|!=|==|=|>|<)\s*(.+)$", re.DOTALL)
_DISALLOWED_RE = re.compile(r"[^0-9+\-*/().%\s]")

_COMPARISONS: dict[str, Callable[[float, float], bool]] = {
    "=": lambda a, b: a == b,
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
}

_FUNCTIONS: dict[str, Callable[[float], float]] = {
    "ROUND": lambda value: float(math.floor(value + 0.5)),
    "ABS": abs,
    "CEIL": lambda value: float(math.ceil(value)),
    "FLOOR": lambda value: float(math.floor(value)),
}


class FormulaError(ValueError):
    pass


def resolve_reference(row: Mapping[str, Any], name: str) -> Any:
    """Exact key first, then the first key ending in ``.name``."""
    if name in row:
        return row[name]
    suffix = f".{name}"
    for key, value in row.items():
        if key.endswith(suffix):
            return value
    return None


def _number_literal(value: float) -> str:
    if not math.isfinite(value):
        raise FormulaError("non-finite operand")
    return f"({format(Decimal(repr(value)), 'f')})"


def _substitute_references(formula: str, row: Mapping[str, Any]) -> str:
    def replace(match: re.Match[str]) -> str:
        number = parse_float(resolve_reference(row, match.group(1)))
        if number is None:
            raise FormulaError(f"reference '{match.group(1)}' is not numeric")
        return _number_literal(number)

    return _REFERENCE_RE.sub(replace, formula)


def _split_call(expr: str, open_index: int) -> tuple[list[str], int]:
    """Split the argument list starting at ``expr[open_index] == "("``.

    Returns the top-level comma separated arguments and the index of the
    matching closing parenthesis.
    """
    depth = 0
    args: list[str] = []
    start = open_index + 1
    for index in range(open_index, len(expr)):
        char = expr[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                args.append(expr[start:index])
                return args, index
        elif char == "," and depth == 1:
            args.append(expr[start:index])
            start = index + 1
    raise FormulaError("unbalanced parentheses")


def _expand_if(args: list[str]) -> str:
    if len(args) != 3:
        raise FormulaError("IF takes three arguments")
    condition, when_true, when_false = (arg.strip() for arg in args)
    comparison = _COMPARISON_RE.match(condition)
    if comparison is None:
        return when_false
    left = evaluate_arithmetic(comparison.group(1))
    right = evaluate_arithmetic(comparison.group(3))
    return when_true if _COMPARISONS[comparison.group(2)](left, right) else when_false


def _expand_calls(expr: str) -> str:
    # The last call in the text never contains another call, so expanding
    # from the end resolves nested calls innermost first.
    while True:
        matches = list(_CALL_RE.finditer(expr))
        if not matches:
            return expr
        match = matches[-1]
        name = match.group(1).upper()
        args, close_index = _split_call(expr, match.end() - 1)
        if name == "IF":
            replacement = f"({_expand_if(args)})"
        else:
            if len(args) != 1:
                raise FormulaError(f"{name} takes one argument")
            replacement = _number_literal(_FUNCTIONS[name](evaluate_arithmetic(args[0])))
        expr = expr[: match.start()] + replacement + expr[close_index + 1 :]


def _evaluate_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return float(node.value)
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
        operand = _evaluate_node(node.operand)
        return -operand if isinstance(node.op, ast.USub) else operand
    if isinstance(node, ast.BinOp):
        left = _evaluate_node(node.left)
        right = _evaluate_node(node.right)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        if isinstance(node.op, ast.Div):
            return left / right
        if isinstance(node.op, ast.Mod):
            return math.fmod(left, right)
    raise FormulaError(f"unsupported expression: {type(node).__name__}")


def evaluate_arithmetic(expr: str) -> float:
    """Evaluate ``+ - * / %`` over numbers after stripping everything else."""
    sanitized = _DISALLOWED_RE.sub("", expr).strip()
    if not sanitized:
        raise FormulaError("empty expression")
    result = _evaluate_node(ast.parse(sanitized, mode="eval"))
    if not math.isfinite(result):
        raise FormulaError("non-finite result")
    return result


def evaluate_formula(
    formula: str,
    row: Mapping[str, Any],
    prefix: str | None = None,
    suffix: str | None = None,
) -> str:
    try:
        expr = _substitute_references(formula, row)
        expr = _expand_calls(expr)
        result = evaluate_arithmetic(expr)
    except (FormulaError, SyntaxError, ArithmeticError, ValueError, RecursionError) as exc:
        logger.debug("firegrid.formula.unresolved | %s", {"formula": formula, "reason": str(exc)})
        return PLACEHOLDER
    return format_number(result, prefix, suffix)
