"""Numeric back-substitution of candidate answers into an equation."""

import logging
import re

import numpy as np

from algenova.formatter import format_numeric
from algenova.oracle import default_oracle

logger = logging.getLogger(__name__)

_ANSWER_PREFIX = re.compile(r"^\s*[A-Za-z]\w*\s*=\s*")
_PARAMETER = re.compile(r"(?<![A-Za-z0-9_])k(?![A-Za-z0-9_])")


def _token_pattern(name: str):
    return re.compile(r"(?<![A-Za-z0-9_])" + re.escape(name) + r"(?![A-Za-z0-9_])")


def _display_value(value):
    if isinstance(value, complex):
        return format_numeric(value)
    return value


def _check(left, right, var_token, candidate, value, oracle, tolerance, sample):
    record = {
        "candidate": candidate,
        "left_value": None,
        "right_value": None,
        "is_correct": False,
        "parameter_sample": sample,
        "error": None,
    }
    try:
        lhs = oracle.evaluate(var_token.sub(f"({value})", left))
        rhs = oracle.evaluate(var_token.sub(f"({value})", right))
    except Exception as e:
        logger.warning("Verification of %r failed: %s", candidate, e)
        record["error"] = str(e)
        return record
    record["left_value"] = _display_value(lhs)
    record["right_value"] = _display_value(rhs)
    record["is_correct"] = bool(np.isclose(lhs, rhs, rtol=0, atol=tolerance))
    return record


def verify(left: str, right: str, candidates, variable: str = "x",
           oracle=None, tolerance: float = 1e-10, samples=(0, 1)) -> list:
    """Substitute each candidate into ``left = right`` and compare both sides.

    Candidates look like ``"x = 4"``; the ``<var> =`` prefix is optional.
    Candidates carrying the integer parameter ``k`` are checked once per
    value in *samples*.  A candidate that fails to evaluate yields a record
    with ``error`` set; the remaining candidates are still checked.
    """
    oracle = oracle or default_oracle
    var_token = _token_pattern(variable)
    records = []
    for candidate in candidates:
        value = _ANSWER_PREFIX.sub("", candidate, count=1).replace("π", "pi").strip()
        if _PARAMETER.search(value):
            for sample in samples:
                sampled = _PARAMETER.sub(f"({sample})", value)
                records.append(_check(left, right, var_token, candidate, sampled,
                                      oracle, tolerance, sample))
        else:
            records.append(_check(left, right, var_token, candidate, value,
                                  oracle, tolerance, None))
    return records
