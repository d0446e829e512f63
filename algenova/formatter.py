"""Display helpers: LaTeX typesetting of canonical strings and number formatting."""

import logging
import re

import numpy as np
from sympy import latex

from algenova.oracle import parse_formula

logger = logging.getLogger(__name__)

_OR_SPLIT = re.compile(r"\s+or\s+")


def _side_to_latex(side: str) -> str:
    return latex(parse_formula(side, evaluate=False))


def to_display_markup(canonical: str) -> str:
    """Typeset a canonical string as LaTeX.

    Handles plain expressions, ``lhs = rhs`` equations and answer lists
    joined with ``or``.  On any failure the input is returned unchanged.
    """
    try:
        parts = []
        for alternative in _OR_SPLIT.split(canonical.strip()):
            sides = alternative.split("=")
            parts.append(" = ".join(_side_to_latex(side) for side in sides))
        return r" \quad \text{or} \quad ".join(parts)
    except Exception as e:
        logger.debug("Typesetting fell back to raw text for %r: %s", canonical, e)
        return canonical


def format_number(value: float, max_decimals: int = 10) -> str:
    """Format a float into a clean decimal string.

    - Removes trailing zeros after the decimal point.
    - Uses up to *max_decimals* digits of precision.
    - Returns integers without a decimal point (e.g. ``7`` not ``7.0``).
    """
    if np.isnan(value):
        return "NaN"
    if np.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if abs(value - round(value)) < 1e-12:
        return str(int(round(value)))
    return f"{value:.{max_decimals}f}".rstrip("0").rstrip(".")


def format_numeric(value) -> str:
    """Format a real or complex oracle value for display."""
    c = complex(value)
    if c.imag != 0:
        sign = "-" if c.imag < 0 else "+"
        return f"{format_number(c.real)} {sign} {format_number(abs(c.imag))}i"
    return format_number(c.real)
