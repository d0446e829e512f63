"""Named identities and theorems answered from a fixed catalog.

Matching runs on the raw input, before normalization, so phrasing such as
"what is the quadratic formula?" is still recognized.
"""

import re

# Ordered: the first matching entry wins, so more specific names come first.
SPECIAL_FORMULAS = tuple((re.compile(pattern, re.IGNORECASE), name, markup) for pattern, name, markup in (
    (r"\bquadratic\s+formula\b",
     "Quadratic formula",
     r"x = \frac{-b \pm \sqrt{b^2 - 4ac}}{2a}"),
    (r"\bbinomial\s+theorem\b",
     "Binomial theorem",
     r"(a + b)^n = \sum_{k=0}^{n} \binom{n}{k} a^{n-k} b^{k}"),
    (r"\beuler(?:'?s)?\b",
     "Euler's identity",
     r"e^{i\pi} + 1 = 0, \quad e^{i\theta} = \cos\theta + i\sin\theta"),
    (r"\b(?:trig(?:onometric)?|pythagorean)\s+identity\b",
     "Pythagorean trigonometric identity",
     r"\sin^2\theta + \cos^2\theta = 1"),
    (r"\bpythagor(?:as'?|ean)\s+theorem\b|\bpythagoras\b",
     "Pythagorean theorem",
     r"a^2 + b^2 = c^2"),
    (r"\bmaclaurin\s+series\b",
     "Maclaurin series",
     r"f(x) = \sum_{n=0}^{\infty} \frac{f^{(n)}(0)}{n!} x^n"),
    (r"\btaylor\s+series\b",
     "Taylor series",
     r"f(x) = \sum_{n=0}^{\infty} \frac{f^{(n)}(a)}{n!} (x - a)^n"),
    (r"\blaw\s+of\s+cosines\b",
     "Law of cosines",
     r"c^2 = a^2 + b^2 - 2ab\cos C"),
    (r"\blaw\s+of\s+sines\b",
     "Law of sines",
     r"\frac{a}{\sin A} = \frac{b}{\sin B} = \frac{c}{\sin C}"),
    (r"\barea\s+of\s+(?:a\s+)?circle\b|\bcircle\s+area\b",
     "Area of a circle",
     r"A = \pi r^2"),
    (r"\bcompound\s+interest\b",
     "Compound interest",
     r"A = P\left(1 + \frac{r}{n}\right)^{nt}"),
    (r"\bdifference\s+of\s+(?:two\s+)?squares\b",
     "Difference of squares",
     r"a^2 - b^2 = (a - b)(a + b)"),
    (r"\barithmetic\s+(?:series|sum|progression)\b",
     "Arithmetic series",
     r"S_n = \frac{n}{2}\left(2a + (n - 1)d\right)"),
    (r"\bgeometric\s+(?:series|sum|progression)\b",
     "Geometric series",
     r"S_n = a\frac{1 - r^n}{1 - r}, \quad r \neq 1"),
))


def recognize_special(raw: str):
    """Return ``{"name", "markup"}`` for the first catalog entry named in *raw*, else None."""
    if not isinstance(raw, str):
        return None
    for pattern, name, markup in SPECIAL_FORMULAS:
        if pattern.search(raw):
            return {"name": name, "markup": markup}
    return None
