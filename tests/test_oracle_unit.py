"""Tests for the SymPy oracle and the display formatter."""

import math

import pytest

from algenova.formatter import format_number, format_numeric, to_display_markup
from algenova.oracle import OracleError, default_oracle, parse_formula, to_caret


# ── Oracle ───────────────────────────────────────────────────────────────

def test_oracle_library_name() -> None:
    assert default_oracle.library.startswith("SymPy ")


def test_oracle_solve_quadratic() -> None:
    assert default_oracle.solve("x^2 - 4", "x") == ["-2", "2"]


def test_oracle_simplify_and_factor() -> None:
    assert default_oracle.simplify("2*x + 3*x") == "5*x"
    assert default_oracle.factor("x^2 - 1") == "(x - 1)*(x + 1)"


def test_oracle_decimals_become_rationals() -> None:
    assert default_oracle.simplify("0.5 + 0.25") == "3/4"


def test_oracle_evaluate() -> None:
    assert default_oracle.evaluate("2^10") == 1024.0
    assert default_oracle.evaluate("ln(e)") == pytest.approx(1.0)
    assert default_oracle.evaluate("log10(1000)") == pytest.approx(3.0)
    assert default_oracle.evaluate("pi") == pytest.approx(math.pi)


def test_oracle_evaluate_complex() -> None:
    assert default_oracle.evaluate("sqrt(-4)") == pytest.approx(2j)


def test_oracle_evaluate_rejects_free_symbols() -> None:
    with pytest.raises(OracleError, match="free symbol"):
        default_oracle.evaluate("x + 1")


def test_oracle_evaluate_rejects_division_by_zero() -> None:
    with pytest.raises(OracleError, match="undefined"):
        default_oracle.evaluate("1/0")


def test_oracle_differentiate() -> None:
    assert default_oracle.differentiate("x^3", "x") == "3*x^2"


def test_oracle_integrate() -> None:
    assert default_oracle.integrate("2*x", "x") == "x^2"
    assert default_oracle.integrate("x^2", "x", "0", "1") == "1/3"


def test_oracle_series() -> None:
    expansion = default_oracle.series("sin(x)", "x", 0, 5)
    assert "O(" not in expansion
    assert default_oracle.simplify(f"({expansion}) - (x - x^3/6)") == "0"
    assert default_oracle.simplify(f"({default_oracle.series('exp(x)', 'x', 0, 3)}) - (1 + x + x^2/2)") == "0"


def test_oracle_series_failure_is_an_oracle_error() -> None:
    with pytest.raises(OracleError):
        default_oracle.series("sin(x)", "x", 0, "many")


def test_oracle_matrix_names() -> None:
    assert default_oracle.simplify("matrix((1, 2), (3, 4))*2") == "Matrix([[2, 4], [6, 8]])"
    assert default_oracle.evaluate("det(matrix((1, 2), (3, 4)))") == pytest.approx(-2.0)
    assert default_oracle.evaluate("norm(matrix(3, 4))") == pytest.approx(5.0)
    assert default_oracle.evaluate("norm(-7)") == pytest.approx(7.0)


def test_oracle_parse_errors_are_oracle_errors() -> None:
    with pytest.raises(OracleError, match="Could not parse"):
        parse_formula("(2+")
    with pytest.raises(OracleError):
        parse_formula("   ")
    assert issubclass(OracleError, ValueError)


def test_to_caret() -> None:
    assert to_caret("x**2 + y**3") == "x^2 + y^3"


# ── Formatter ────────────────────────────────────────────────────────────

def test_format_number_integer() -> None:
    assert format_number(7.0) == "7"


def test_format_number_clean_decimal() -> None:
    assert format_number(2.5) == "2.5"


def test_format_number_very_small_rounds_to_int() -> None:
    assert format_number(3.0000000000001) == "3"


def test_format_number_non_finite() -> None:
    assert format_number(float("nan")) == "NaN"
    assert format_number(float("inf")) == "Infinity"
    assert format_number(float("-inf")) == "-Infinity"


def test_format_number_complex() -> None:
    assert format_numeric(complex(0, 2)) == "0 + 2i"
    assert format_numeric(complex(1, -1.5)) == "1 - 1.5i"
    assert format_numeric(4.0) == "4"


def test_display_markup_expression() -> None:
    assert to_display_markup("sqrt(x)") == r"\sqrt{x}"


def test_display_markup_equation() -> None:
    assert to_display_markup("x = 2") == "x = 2"


def test_display_markup_alternatives() -> None:
    assert to_display_markup("x = 2 or x = 3") == r"x = 2 \quad \text{or} \quad x = 3"


def test_display_markup_unparseable_input_is_returned_unchanged() -> None:
    assert to_display_markup("Error in processing ((") == "Error in processing (("
