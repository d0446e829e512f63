"""AlgeNova — normalize free-form math input and solve it step by step."""

from algenova.engine import solve, solve_problem
from algenova.normalizer import normalize

__all__ = ["normalize", "solve", "solve_problem"]
