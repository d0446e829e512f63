"""Advisory syntax checks on a canonical formula.

``validate`` reports problems but never rejects anything: the orchestrator
attaches its result to the response and solves the formula regardless.
"""

_ALLOWED_SYMBOLS = set("+-*/^().,=") | set("π∞±∫'")
_OPERATORS = set("+-*/^=±")


def _check_parentheses(formula: str) -> list:
    errors = []
    depth = 0
    for i, ch in enumerate(formula):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                errors.append(f"Unmatched closing parenthesis at position {i}")
                depth = 0
    if depth > 0:
        errors.append(f"{depth} unmatched opening parenthesis(es)")
    return errors


def _check_characters(formula: str) -> list:
    bad = sorted({ch for ch in formula
                  if not (ch.isascii() and ch.isalnum())
                  and not ch.isspace()
                  and ch not in _ALLOWED_SYMBOLS})
    if bad:
        return [f"Invalid character(s): {' '.join(bad)}"]
    return []


def _check_operators(formula: str) -> list:
    errors = []
    for i in range(len(formula) - 1):
        pair = formula[i:i + 2]
        if pair[0] in _OPERATORS and pair[1] in _OPERATORS:
            errors.append(f"Consecutive operators '{pair}' at position {i}")
    return errors


def validate(formula: str) -> dict:
    """Run every check on *formula* and collect the findings.

    Returns ``{"is_valid": bool, "errors": [str, ...]}``.  All checks run
    even when an earlier one already failed.
    """
    errors = (_check_parentheses(formula)
              + _check_characters(formula)
              + _check_operators(formula))
    return {"is_valid": not errors, "errors": errors}
