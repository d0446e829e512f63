"""SymPy-backed symbolic oracle.

Every algebraic computation of the solver goes through ``SymPyOracle``:
solve, simplify, evaluate, differentiate, integrate, factor and series.
Inputs and outputs are canonical strings (``^`` for powers); any SymPy
failure is re-raised as ``OracleError`` so callers deal with a single
error type.
"""

import logging

import sympy
from sympy import E, oo, pi, Symbol, nan, zoo
from sympy.parsing.sympy_parser import (
    parse_expr, standard_transformations, implicit_multiplication_application,
    convert_xor, rationalize,
)

logger = logging.getLogger(__name__)

TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
    rationalize,  # Convert decimals like "0.5" to exact Rational(1, 2)
)


def _matrix(*rows):
    """``matrix((1, 2), (3, 4))`` -> 2x2 matrix; ``matrix(1, 2)`` -> column vector."""
    return sympy.Matrix(rows)


def _norm(value):
    if isinstance(value, sympy.MatrixBase):
        return value.norm()
    return sympy.Abs(value)


# Names the canonical syntax uses that SymPy spells differently.
_LOCAL_NAMES = {
    "ln": sympy.log,
    "log10": lambda arg: sympy.log(arg, 10),
    "matrix": _matrix,
    "norm": _norm,
    "det": lambda m: m.det(),
    "Infinity": oo,
    "pi": pi,
    "e": E,
    "E": E,
}


class OracleError(ValueError):
    """Raised when the symbolic engine cannot carry out an operation."""


def to_caret(text: str) -> str:
    """Render SymPy's ``**`` power operator as ``^``."""
    return text.replace("**", "^")


def _to_text(value) -> str:
    """Canonical one-line text of a SymPy result; matrices print as ``Matrix([[...]])``."""
    if isinstance(value, sympy.MatrixBase):
        return to_caret(f"Matrix({value.tolist()})")
    return to_caret(str(value))


def parse_formula(expr_str: str, evaluate: bool = True):
    """Parse a canonical expression string into a SymPy expression."""
    s = expr_str.strip()
    if not s:
        raise OracleError("Could not parse expression: empty input.")
    try:
        return parse_expr(s, local_dict=dict(_LOCAL_NAMES),
                          transformations=TRANSFORMATIONS, evaluate=evaluate)
    except Exception as e:
        raise OracleError(f"Could not parse expression: '{expr_str}'. Error: {e}") from e


class SymPyOracle:
    """Symbolic oracle implemented on top of SymPy."""

    library = f"SymPy {sympy.__version__}"

    def solve(self, expr: str, var: str) -> list:
        """Return the roots of ``expr = 0`` for *var* as canonical strings."""
        parsed = parse_formula(expr)
        try:
            roots = sympy.solve(parsed, Symbol(var))
        except Exception as e:
            raise OracleError(f"Could not solve '{expr}' for {var}: {e}") from e
        return [_to_text(r) for r in roots]

    def simplify(self, expr: str) -> str:
        parsed = parse_formula(expr)
        try:
            return _to_text(sympy.simplify(parsed))
        except Exception as e:
            raise OracleError(f"Could not simplify '{expr}': {e}") from e

    def factor(self, expr: str) -> str:
        parsed = parse_formula(expr)
        try:
            return _to_text(sympy.factor(parsed))
        except Exception as e:
            raise OracleError(f"Could not factor '{expr}': {e}") from e

    def evaluate(self, expr: str):
        """Evaluate *expr* numerically.

        Returns a ``float`` for real results and a ``complex`` otherwise.
        Expressions with free symbols or undefined results (``1/0``) raise
        ``OracleError``.
        """
        parsed = parse_formula(expr)
        if not isinstance(parsed, sympy.Basic):
            raise OracleError(f"'{expr}' does not evaluate to a number.")
        if parsed.free_symbols:
            names = ", ".join(sorted(str(s) for s in parsed.free_symbols))
            raise OracleError(f"Cannot evaluate '{expr}': free symbol(s) {names}.")
        try:
            value = sympy.N(parsed.doit())
        except Exception as e:
            raise OracleError(f"Could not evaluate '{expr}': {e}") from e
        if value.has(zoo, nan):
            raise OracleError(f"The value of '{expr}' is undefined.")
        try:
            if value.is_extended_real:
                return float(value)
            return complex(value)
        except (TypeError, ValueError) as e:
            raise OracleError(f"'{expr}' does not evaluate to a number.") from e

    def differentiate(self, expr: str, var: str) -> str:
        parsed = parse_formula(expr)
        try:
            return _to_text(sympy.diff(parsed, Symbol(var)))
        except Exception as e:
            raise OracleError(f"Could not differentiate '{expr}': {e}") from e

    def integrate(self, expr: str, var: str, lower=None, upper=None) -> str:
        """Antiderivative of *expr*, or the definite integral when both bounds are given."""
        parsed = parse_formula(expr)
        v = Symbol(var)
        try:
            if lower is not None and upper is not None:
                result = sympy.integrate(parsed, (v, parse_formula(str(lower)),
                                                  parse_formula(str(upper))))
            else:
                result = sympy.integrate(parsed, v)
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(f"Could not integrate '{expr}': {e}") from e
        if result.has(sympy.Integral):
            raise OracleError(f"No closed-form antiderivative found for '{expr}'.")
        return _to_text(result)

    def series(self, expr: str, var: str, point=0, order: int = 5) -> str:
        """Taylor polynomial of *expr* around *point*, without the order term."""
        parsed = parse_formula(expr)
        try:
            result = sympy.series(parsed, Symbol(var), parse_formula(str(point)), int(order))
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(f"Could not expand '{expr}' in a series: {e}") from e
        return _to_text(result.removeO())


default_oracle = SymPyOracle()
