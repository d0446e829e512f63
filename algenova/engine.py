"""Step-by-step solution orchestrator.

``solve_problem`` runs the whole pipeline on raw user input:

    normalize -> validate -> special formulas -> classify -> solve -> typeset

Each formula type has one handler.  Handlers build plain step dicts
(``description``, ``expression``, ``explanation``) and return them with the
answer and verification records; step numbers are assigned once, by
``solve``, on fresh copies.

Failure policies differ per type:
  - equation:   oracle failure -> answer "Error in processing" plus an Error step
  - expression: oracle failure propagates (OracleError)
  - derivative: oracle failure propagates (OracleError)
  - integral:   oracle failure -> answer "Integration failed", no extra step
"""

import logging
import re
import time
from datetime import datetime

from algenova.classifier import FormulaType, classify, detect_main_variable, free_variables
from algenova.formatter import format_numeric, to_display_markup
from algenova.normalizer import normalize
from algenova.oracle import OracleError, default_oracle
from algenova.settings import DEFAULT_SETTINGS
from algenova.special import recognize_special
from algenova.validator import validate
from algenova.verifier import verify

logger = logging.getLogger(__name__)

ERROR_ANSWER = "Error in processing"
NO_SOLUTION = "No solution"
INTEGRATION_FAILED = "Integration failed"

EXPLANATIONS = {
    FormulaType.EQUATION: ("This is an algebraic or transcendental equation. I will solve for the "
                           "unknown variable by isolating it on one side."),
    FormulaType.EXPRESSION: "This is a mathematical expression. I will evaluate it step by step.",
    FormulaType.DERIVATIVE: ("This is a derivative problem. I will find the derivative using "
                             "differentiation rules."),
    FormulaType.INTEGRAL: "This is an integration problem. I will find the antiderivative.",
    FormulaType.SPECIAL: "This is a well-known formula. Here is its standard statement.",
}


def _step(description: str, expression: str, explanation: str) -> dict:
    return {"description": description, "expression": expression, "explanation": explanation}


def _number_steps(steps: list) -> list:
    return [dict(step, step_number=i) for i, step in enumerate(steps, start=1)]


def _unwrap_call(side: str, name: str):
    """Return the argument of *side* if it is exactly ``name(...)``, else None."""
    side = side.strip()
    if not (side.startswith(name + "(") and side.endswith(")")):
        return None
    depth = 0
    for i in range(len(name), len(side)):
        if side[i] == "(":
            depth += 1
        elif side[i] == ")":
            depth -= 1
            if depth == 0:
                return side[len(name) + 1:-1] if i == len(side) - 1 else None
    return None


def _strip_outer_parens(expr: str) -> str:
    expr = expr.strip()
    while _unwrap_call(expr, "") is not None:
        expr = expr[1:-1].strip()
    return expr


# ── Equations ────────────────────────────────────────────────────────────

# Inverse-function families keyed by the function wrapping the whole left
# side.  Each branch is (template, reading of the left side used to verify it).
_FUNCTION_FAMILIES = {
    "sin": (("asin({v}) + 2*k*pi", None), ("pi - asin({v}) + 2*k*pi", None)),
    "cos": (("acos({v}) + 2*k*pi", None), ("-acos({v}) + 2*k*pi", None)),
    "tan": (("atan({v}) + k*pi", None),),
    "log": (("10^({v})", "log10"), ("exp({v})", None)),
    "ln": (("exp({v})", None),),
}

_FAMILY_EXPLANATIONS = {
    "sin": "Sine is periodic: every solution is one of these two families, for any integer k.",
    "cos": "Cosine is periodic: every solution is one of these two families, for any integer k.",
    "tan": "Tangent has period pi: every solution has this form, for any integer k.",
    "log": "Undo the logarithm by exponentiating. Both the base-10 and the natural reading are given.",
    "ln": "Undo the natural logarithm by exponentiating both sides.",
}


def _split_arguments(args: str) -> list:
    """Split a call's argument text on top-level commas."""
    parts, depth, start = [], 0, 0
    for i, ch in enumerate(args):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(args[start:i].strip())
            start = i + 1
    parts.append(args[start:].strip())
    return parts


def _solve_function_family(left, right, var, oracle):
    """Solve ``f(arg) = right`` for a known invertible *f*.

    Returns None when the left side is not such a call or when the right
    side depends on *var*; those equations go to the general solver.
    """
    if var in free_variables(right):
        return None
    for name, branches in _FUNCTION_FAMILIES.items():
        arg = _unwrap_call(left, name)
        if arg is None:
            continue
        explanation = _FAMILY_EXPLANATIONS[name]
        args = _split_arguments(arg)
        if len(args) == 2 and name == "log":
            arg, base = args
            if var in free_variables(base):
                return None
            branches = ((f"({base})^({{v}})", None),)
            explanation = f"Undo the base-{base} logarithm by raising {base} to both sides."
        elif len(args) != 1:
            return None
        solutions = []
        general = []
        for template, reading in branches:
            branch = template.format(v=right)
            general.append(f"{arg} = {branch}")
            check_left = left if reading is None else reading + left[len(name):]
            if arg.strip() == var:
                roots = [oracle.simplify(branch)]
            else:
                roots = oracle.solve(f"({arg}) - ({branch})", var)
            solutions.extend((f"{var} = {root}", check_left) for root in roots)
        steps = [_step(f"Invert {name}", " or ".join(general), explanation)]
        return solutions, steps
    return None


def _solve_polynomial(left, right, var, oracle):
    difference = f"({left}) - ({right})"
    steps = [_step("Move all terms to one side", f"{difference} = 0",
                   "Subtract the right side so the equation reads expression = 0.")]
    roots = []
    try:
        reduced = oracle.factor(oracle.simplify(difference))
        roots = oracle.solve(reduced, var)
        steps.append(_step("Simplify and factor", f"{reduced} = 0",
                           "Combine like terms and factor where possible."))
    except OracleError as e:
        logger.warning("Solving the factored form of %r failed, retrying on the raw difference: %s",
                       difference, e)
    if not roots:
        roots = oracle.solve(difference, var)
    return [(f"{var} = {root}", left) for root in roots], steps


def _solve_plus_minus(formula, oracle, settings):
    steps, answers, verification = [], [], []
    for sign in "+-":
        branch = _solve_equation(formula.replace("±", sign), oracle, settings)
        steps.extend(dict(step, description=f"Branch ({sign}): {step['description']}")
                     for step in branch["steps"])
        answer = branch["final_answer"]
        answers.extend(answer if isinstance(answer, list) else [answer])
        verification.extend(branch["verification"])
    steps.append(_step("Combine both branches", " or ".join(answers),
                       "The ± sign gives one equation per sign; together they give every solution."))
    return {"steps": steps, "final_answer": answers, "verification": verification}


def _solve_equation(formula, oracle, settings):
    if "±" in formula:
        return _solve_plus_minus(formula, oracle, settings)

    left, right = (side.strip() for side in formula.split("=", 1))
    var = detect_main_variable(formula)
    steps = [_step("Original equation", f"{left} = {right}", "Starting with the given equation.")]

    try:
        found = _solve_function_family(left, right, var, oracle)
        if found is None:
            found = _solve_polynomial(left, right, var, oracle)
    except OracleError as e:
        logger.warning("Could not solve equation %r: %s", formula, e)
        steps.append(_step("Error", formula, f"Unable to process equation: {e}"))
        return {"steps": steps, "final_answer": ERROR_ANSWER, "verification": []}

    solutions, solving_steps = found
    steps.extend(solving_steps)
    if not solutions:
        steps.append(_step("Solved equation", NO_SOLUTION,
                           f"No value of {var} satisfies the equation."))
        return {"steps": steps, "final_answer": NO_SOLUTION, "verification": []}

    answers = [answer for answer, _ in solutions]
    steps.append(_step("Solved equation", " or ".join(answers),
                       "Isolated the variable using algebraic rules."))

    verification = []
    for answer, check_left in solutions:
        verification.extend(verify(check_left, right, [answer], var, oracle,
                                   tolerance=settings["verify_tolerance"],
                                   samples=tuple(settings["parameter_samples"])))
    return {"steps": steps, "final_answer": answers, "verification": verification}


# ── Expressions ──────────────────────────────────────────────────────────

_SERIES_CALL = re.compile(
    r"^series\((.+?),\s*([A-Za-z])(?:,\s*([^,()]+))?(?:,\s*(\d+))?\)$", re.IGNORECASE
)
_MATRIX_RESULT = re.compile(r"^Matrix\(\[")


def _solve_series(m, oracle):
    function, var = m.group(1).strip(), m.group(2)
    point = (m.group(3) or "0").strip()
    order = int(m.group(4) or 5)
    steps = [_step("Original function", f"f({var}) = {function}",
                   f"Expand f around {var} = {point}.")]
    expansion = oracle.series(function, var, point, order)
    steps.append(_step("Series expansion", expansion,
                       f"Taylor polynomial with the terms below {var}^{order}."))
    return {"steps": steps, "final_answer": expansion, "verification": []}


def _solve_expression(formula, oracle, settings):
    series = _SERIES_CALL.match(formula.strip())
    if series:
        return _solve_series(series, oracle)

    steps = [_step("Original expression", formula,
                   "Starting with the given mathematical expression.")]
    simplified = oracle.simplify(formula)
    if simplified.replace(" ", "") != formula.replace(" ", ""):
        steps.append(_step("Simplified form", simplified,
                           "Simplifying the expression using algebraic rules."))
    if _MATRIX_RESULT.match(simplified):
        steps.append(_step("Matrix result", simplified,
                           "The expression evaluates to a matrix, computed entry by entry."))
        return {"steps": steps, "final_answer": simplified, "verification": []}
    if free_variables(simplified):
        return {"steps": steps, "final_answer": simplified, "verification": []}

    value = format_numeric(oracle.evaluate(simplified))
    steps.append(_step("Final calculation", f"= {value}",
                       "Performing the final calculation to get the numerical result."))
    return {"steps": steps, "final_answer": value, "verification": []}


# ── Derivatives ──────────────────────────────────────────────────────────

_DERIVATIVE_MARKER = re.compile(r"d/d([A-Za-z])\s*")


def _solve_derivative(formula, oracle, settings):
    marker = _DERIVATIVE_MARKER.search(formula)
    if marker:
        var = marker.group(1)
        function = formula[:marker.start()] + formula[marker.end():]
    else:
        function = formula.strip().rstrip("'")
        var = detect_main_variable(function)
    function = _strip_outer_parens(function)

    steps = [_step("Original function", f"f({var}) = {function}",
                   "Identifying the function to differentiate.")]
    derivative = oracle.differentiate(function, var)
    steps.append(_step("Apply differentiation rules", f"f'({var}) = {derivative}",
                       "Using calculus differentiation rules."))
    return {"steps": steps, "final_answer": derivative, "verification": []}


# ── Integrals ────────────────────────────────────────────────────────────

_DEFINITE_INTEGRAL = re.compile(r"^integral\((.+),\s*([A-Za-z]),\s*([^,]+),\s*([^,]+)\)$",
                                re.IGNORECASE)
_INTEGRAL_CALL = re.compile(r"^integral\((.+),\s*([A-Za-z])\)$", re.IGNORECASE)
_INTEGRAL_MARKER = re.compile(r"∫|(?<![A-Za-z])integral(?![A-Za-z])", re.IGNORECASE)
_LEADING_OF = re.compile(r"^of\s+", re.IGNORECASE)
_DIFFERENTIAL = re.compile(r"\s*\*?\s*d([A-Za-z])\s*$")
_BY_PARTS = re.compile(r"^(.+)\*(sin|cos)\(([A-Za-z])\)$")
_FUNCTION_NAME = re.compile(r"[A-Za-z]{2,}")


def _by_parts_steps(body, var, oracle):
    """Expository integration-by-parts steps for ``polynomial * sin|cos(var)``."""
    m = _BY_PARTS.match(body)
    if not m or m.group(3) != var:
        return []
    u, trig = _strip_outer_parens(m.group(1)), m.group(2)
    if var not in u or _FUNCTION_NAME.search(u):
        return []
    du = oracle.differentiate(u, var)
    v = f"-cos({var})" if trig == "sin" else f"sin({var})"
    return [
        _step("Choose u and dv", f"u = {u}, dv = {trig}({var}) d{var}",
              "Pick the polynomial factor as u so that differentiating it simplifies the integral."),
        _step("Differentiate u and integrate dv", f"du = {du} d{var}, v = {v}",
              "Differentiate u and integrate dv."),
        _step("Apply integration by parts",
              f"∫ u dv = u*v - ∫ v du = ({u})*({v}) - ∫ ({v})*({du}) d{var}",
              "Use the identity ∫ u dv = u*v - ∫ v du."),
    ]


def _solve_definite_integral(m, oracle):
    function, var, lower, upper = (g.strip() for g in m.groups())
    steps = [_step("Set up the definite integral", f"∫[{lower}, {upper}] {function} d{var}",
                   f"Integrate {function} with respect to {var} from {lower} to {upper}.")]
    try:
        value = oracle.integrate(function, var, lower, upper)
    except OracleError as e:
        logger.warning("Definite integration of %r failed: %s", function, e)
        return {"steps": steps, "final_answer": INTEGRATION_FAILED, "verification": []}
    steps.append(_step("Evaluate between the bounds", value,
                       "Evaluate the antiderivative at the upper bound minus the lower bound."))
    return {"steps": steps, "final_answer": value, "verification": []}


def _solve_integral(formula, oracle, settings):
    formula = formula.strip()
    definite = _DEFINITE_INTEGRAL.match(formula)
    if definite:
        return _solve_definite_integral(definite, oracle)

    call = _INTEGRAL_CALL.match(formula)
    if call:
        body, var = call.group(1).strip(), call.group(2)
    else:
        body = _LEADING_OF.sub("", _INTEGRAL_MARKER.sub(" ", formula).strip())
        differential = _DIFFERENTIAL.search(body)
        if differential:
            var = differential.group(1)
            body = body[:differential.start()]
        else:
            var = detect_main_variable(body)
        body = _strip_outer_parens(body)

    steps = [_step("Set up the integral", f"∫ {body} d{var}",
                   f"Find the antiderivative of {body} with respect to {var}.")]
    try:
        steps.extend(_by_parts_steps(body, var, oracle))
        antiderivative = oracle.integrate(body, var)
    except OracleError as e:
        logger.warning("Integration of %r failed: %s", body, e)
        return {"steps": steps, "final_answer": INTEGRATION_FAILED, "verification": []}

    answer = f"{antiderivative} + C"
    steps.append(_step("Integration", f"∫ {body} d{var} = {answer}",
                       "Finding the antiderivative symbolically."))
    return {"steps": steps, "final_answer": answer, "verification": []}


# ── Dispatch ─────────────────────────────────────────────────────────────

_HANDLERS = {
    FormulaType.EQUATION: _solve_equation,
    FormulaType.EXPRESSION: _solve_expression,
    FormulaType.DERIVATIVE: _solve_derivative,
    FormulaType.INTEGRAL: _solve_integral,
}


def _effective_settings(settings) -> dict:
    merged = dict(DEFAULT_SETTINGS)
    merged.update(settings or {})
    return merged


def solve(formula: str, formula_type, oracle=None, settings=None) -> dict:
    """Solve a canonical *formula* of the given type.

    Returns ``{"steps", "final_answer", "verification"}`` with numbered
    steps.  Raises ``ValueError("Unsupported formula type.")`` for
    ``special`` or unknown tags.
    """
    try:
        handler = _HANDLERS.get(FormulaType(formula_type))
    except ValueError:
        handler = None
    if handler is None:
        raise ValueError("Unsupported formula type.")
    result = handler(formula, oracle or default_oracle, _effective_settings(settings))
    return dict(result, steps=_number_steps(result["steps"]))


def _typeset_answer(answer):
    if isinstance(answer, list):
        return [to_display_markup(a) for a in answer]
    if answer in (ERROR_ANSWER, NO_SOLUTION, INTEGRATION_FAILED):
        return answer
    return to_display_markup(answer)


def solve_problem(raw: str, oracle=None, settings=None) -> dict:
    """Run the full pipeline on raw user input and return a JSON-ready result.

    Oracle failures in expressions and derivatives propagate as
    ``OracleError``; everything else is reported inside the result.
    """
    t_start = time.perf_counter()
    oracle = oracle or default_oracle
    settings = _effective_settings(settings)

    canonical = normalize(raw, compact=settings["compact_operators"])
    validation = validate(canonical)
    if not validation["is_valid"]:
        logger.info("Validation findings for %r: %s", canonical, "; ".join(validation["errors"]))

    special = recognize_special(raw)
    if special is not None:
        formula_type = FormulaType.SPECIAL
        outcome = {"steps": [], "final_answer": special["markup"], "verification": []}
    else:
        formula_type = classify(canonical)
        outcome = solve(canonical, formula_type, oracle, settings)

    steps = outcome["steps"]
    final_answer = outcome["final_answer"]
    result = {
        "original_formula": raw,
        "parsed_formula": canonical,
        "type": formula_type.value,
        "steps": steps,
        "final_answer": final_answer,
        "verification": outcome["verification"],
        "explanation": EXPLANATIONS[formula_type],
        "validation": validation,
    }
    if special is not None:
        result["special_name"] = special["name"]

    if settings["typeset"] and formula_type is not FormulaType.SPECIAL:
        result["steps"] = [dict(step, expression_latex=to_display_markup(step["expression"]))
                           for step in steps]
        result["final_answer_latex"] = _typeset_answer(final_answer)

    runtime_ms = round((time.perf_counter() - t_start) * 1000, 2)
    result["summary"] = {
        "runtime_ms": runtime_ms,
        "total_steps": len(steps),
        "verification_checks": len(outcome["verification"]),
        "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "library": getattr(oracle, "library", "unknown"),
    }
    return result
