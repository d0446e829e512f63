"""Formula classification and main-variable detection."""

import re
from enum import Enum


class FormulaType(str, Enum):
    EQUATION = "equation"
    EXPRESSION = "expression"
    DERIVATIVE = "derivative"
    INTEGRAL = "integral"
    SPECIAL = "special"


# Alphabetic tokens that are never the unknown.
RESERVED_NAMES = frozenset({
    "sin", "cos", "tan", "cot", "sec", "csc",
    "asin", "acos", "atan", "arcsin", "arccos", "arctan",
    "atan2", "sinh", "cosh", "tanh",
    "log", "ln", "log10", "exp", "sqrt", "cbrt", "root", "abs",
    "det", "inv", "transpose", "trace", "norm", "mod", "re", "im", "arg", "conj",
    "pi", "PI", "Pi", "e", "E", "i", "I", "oo", "zoo", "nan", "Infinity", "NaN",
    "limit", "summation", "sum", "series", "diff", "integrate", "integral",
    "binomial", "factorial", "matrix", "Matrix", "O",
    "d", "dx", "dy", "dt",
})

_TOKEN = re.compile(r"[A-Za-z]+")
_DERIVATIVE_MARKER = re.compile(r"d/d[A-Za-z]")
_INTEGRAL_WORD = re.compile(r"integral", re.IGNORECASE)


def classify(formula: str) -> FormulaType:
    """Tag *formula* by its surface markers.

    Checked in order: ``=`` first, then a derivative marker (``d/dx`` or a
    trailing prime), then an integral marker (``∫`` or the word
    "integral"); anything else is an expression.
    """
    if "=" in formula:
        return FormulaType.EQUATION
    if _DERIVATIVE_MARKER.search(formula) or formula.rstrip().endswith("'"):
        return FormulaType.DERIVATIVE
    if "∫" in formula or _INTEGRAL_WORD.search(formula):
        return FormulaType.INTEGRAL
    return FormulaType.EXPRESSION


def free_variables(formula: str) -> list:
    """Alphabetic tokens of *formula* that are not reserved names, in order of appearance."""
    seen = []
    for token in _TOKEN.findall(formula):
        if token not in RESERVED_NAMES and token not in seen:
            seen.append(token)
    return seen


def detect_main_variable(formula: str) -> str:
    """Pick the unknown: ``x`` if present, else the first free token, else ``x``."""
    candidates = free_variables(formula)
    if "x" in candidates or not candidates:
        return "x"
    return candidates[0]
