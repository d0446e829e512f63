"""Input normalizer.

Turns free-form input (spoken English, LaTeX markup, calculator syntax)
into the canonical infix form the rest of the pipeline consumes, e.g.

    "two plus three"                 ->  "2+3"
    "\\frac{1}{2}+\\frac{1}{3}"      ->  "(1)/(2)+(1)/(3)"
    "solve for x: 2x + 3 = 7"        ->  "2*x+3=7"
    "\\int_{0}^{1} x^{2} dx"         ->  "integral(x^2, x, 0, 1)"

The stages run in a fixed order; later stages rely on the output of the
earlier ones.  ``normalize`` never raises: unknown phrasing is reduced to
the allowed character set.
"""

import logging
import re

from word2number import w2n

from algenova.classifier import detect_main_variable

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE


# ── Stage 1: lexical desugaring of markup ────────────────────────────────

_LEXICAL_RULES = tuple((re.compile(p), r) for p, r in (
    (r"\\left\s*\.|\\right\s*\.", ""),
    (r"\\left\s*\\\{", "("),
    (r"\\right\s*\\\}", ")"),
    (r"\\left\s*([(\[|])", r"\1"),
    (r"\\right\s*([)\]|])", r"\1"),
    (r"\\(?:bigg|Bigg|big|Big)[lr]?", ""),
    (r"\$\$?", ""),
    (r"\\\[|\\\]|\\\(|\\\)", ""),
    (r"\\(?:displaystyle|textstyle)", ""),
    (r"\\(?:mathrm|textrm|text|operatorname|mathit|mathbf)\s*\{([^{}]*)\}", r"\1"),
    (r"\\[dt]frac", r"\\frac"),
    (r"\\cdot|\\times|[×·∙⋅]", "*"),
    (r"\\div|÷", "/"),
    (r"[−–]", "-"),
    (r"\\[lc]?dots|…", "..."),
    (r"\\[,;:!]|\\q?quad", " "),
    (r"\\pi(?![A-Za-z])|π", "pi"),
    (r"\\infty|∞", "Infinity"),
    (r"\\pm|\+/-|\+-", "±"),
    (r"²", "^2"),
    (r"³", "^3"),
    (r"√", "sqrt"),
    (r"\*\*", "^"),
))


def _desugar_markup(s: str) -> str:
    for pattern, repl in _LEXICAL_RULES:
        s = pattern.sub(repl, s)
    return s


# ── Stage 2: structural rewrites ─────────────────────────────────────────

_DEFINITE_INTEGRAL = re.compile(
    r"\\int\s*_\s*\{?([^{}\s^]+)\}?\s*\^\s*\{?([^{}\s]+)\}?\s*(.+?)\s*d([A-Za-z])\s*$"
)
_INDEFINITE_INTEGRAL = re.compile(r"\\int(?![A-Za-z])\s*")
_LIMIT = re.compile(
    r"\\lim\s*_\s*\{\s*([A-Za-z])\s*(?:\\to|\\rightarrow|->|→)\s*([^{}]*?)\s*\}\s*(.+)$"
)
_SUM = re.compile(
    r"\\sum\s*_\s*\{\s*([A-Za-z])\s*=\s*([^{}]*?)\s*\}\s*\^\s*\{?([^{}\s]+)\}?\s*(.+)$"
)

# Applied repeatedly until nothing changes so nested groups resolve
# innermost first.
_NESTED_RULES = tuple((re.compile(p), r) for p, r in (
    (r"\\frac\s*\{([^{}]*)\}\s*\{([^{}]*)\}", r"(\1)/(\2)"),
    (r"\\frac\s*(\d)\s*(\d)", r"(\1)/(\2)"),
    (r"\\sqrt\s*\[([^\[\]]*)\]\s*\{([^{}]*)\}", r"root(\2, \1)"),
    (r"\\sqrt\s*\{([^{}]*)\}", r"sqrt(\1)"),
    (r"\\binom\s*\{([^{}]*)\}\s*\{([^{}]*)\}", r"binomial(\1, \2)"),
    (r"_\{([A-Za-z0-9]+)\}", r"_\1"),
))
_SUPERSCRIPT = re.compile(r"\^\s*\{([^{}]*)\}")
_SINGLE_TOKEN = re.compile(r"\d+(?:\.\d+)?|[A-Za-z]+")
_EMPTY_BRACES = re.compile(r"\{\s*\}")
_ABS_BARS = re.compile(r"\|([^|]+)\|")
_MATRIX_ENVIRONMENT = re.compile(r"\\begin\s*\{([bpv]?matrix)\}(.*?)\\end\s*\{\1\}", re.DOTALL)
_MATRIX_LITERAL = re.compile(r"\[\s*\[(.*?)\]\s*\]")
_ROW_SEPARATOR = re.compile(r"\\\\")
_VECTOR = re.compile(r"\\(?:vec|overrightarrow)\s*\{([^{}]*)\}")
_NORM = re.compile(r"\\\|(.+?)\\\||\\lVert(.+?)\\rVert")


def _matrix_repl(m):
    rows = [row.strip() for row in _ROW_SEPARATOR.split(m.group(2)) if row.strip()]
    cells = ("(" + ", ".join(cell.strip() for cell in row.split("&")) + ")" for row in rows)
    matrix = "matrix(" + ", ".join(cells) + ")"
    # vmatrix is the determinant bar notation.
    return f"det({matrix})" if m.group(1) == "vmatrix" else matrix


def _matrix_literal_repl(m):
    return "matrix((" + m.group(1).replace("[", "(").replace("]", ")") + "))"


def _superscript_repl(m):
    exponent = m.group(1).strip()
    if _SINGLE_TOKEN.fullmatch(exponent):
        return "^" + exponent
    return f"^({exponent})"


def _rewrite_structures(s: str) -> str:
    s = _MATRIX_ENVIRONMENT.sub(_matrix_repl, s)
    s = _MATRIX_LITERAL.sub(_matrix_literal_repl, s)
    s = _VECTOR.sub(r"\1", s)
    s = _NORM.sub(lambda m: f"norm({(m.group(1) or m.group(2)).strip()})", s)
    s = _DEFINITE_INTEGRAL.sub(
        lambda m: f"integral({m.group(3).strip()}, {m.group(4)}, {m.group(1)}, {m.group(2)})", s)
    s = _INDEFINITE_INTEGRAL.sub("∫ ", s)
    s = _LIMIT.sub(lambda m: f"limit({m.group(3).strip()}, {m.group(1)}, {m.group(2)})", s)
    s = _SUM.sub(
        lambda m: f"summation({m.group(4).strip()}, ({m.group(1)}, {m.group(2)}, {m.group(3)}))", s)

    for _ in range(20):
        before = s
        for pattern, repl in _NESTED_RULES:
            s = pattern.sub(repl, s)
        s = _SUPERSCRIPT.sub(_superscript_repl, s)
        if s == before:
            break

    s = _EMPTY_BRACES.sub("", s)
    s = s.replace("{", "(").replace("}", ")")
    s = s.replace("[", "(").replace("]", ")")
    return _ABS_BARS.sub(r"abs(\1)", s)


# ── Stage 3: named functions ─────────────────────────────────────────────

FUNCTION_NAMES = (
    "arcsin", "arccos", "arctan", "asin", "acos", "atan",
    "sinh", "cosh", "tanh", "sin", "cos", "tan", "cot", "sec", "csc",
    "log", "ln", "exp", "sqrt", "cbrt", "abs",
)

_LATEX_FUNCTION = re.compile(
    r"\\(arcsin|arccos|arctan|sinh|cosh|tanh|sin|cos|tan|cot|sec|csc|log|ln|exp|sqrt)(?![A-Za-z])"
)
_ARC_FUNCTION = re.compile(r"(?<![A-Za-z])arc(sin|cos|tan)(?![A-Za-z])")
_LOG_BASE_CALL = re.compile(r"(?<![A-Za-z])log_\(?([A-Za-z0-9.]+)\)?\s*\(([^()]*)\)")
_LOG_BASE_TOKEN = re.compile(r"(?<![A-Za-z])log_\(?([A-Za-z0-9.]+)\)?\s*([A-Za-z0-9.]+)")
# The operand runs to the next whitespace, comma, closing parenthesis or
# "="; glued to the name it must start with a digit or be x, y or z.
_BARE_ARGUMENT = re.compile(
    r"(?<![A-Za-z])(" + "|".join(sorted(FUNCTION_NAMES, key=len, reverse=True)) + r")"
    r"(?:\s+([^\s(),=]+)|(-?\d[^\s(),=]*|[xyz](?![A-Za-z])[^\s(),=]*))(?=[\s),=]|$)"
)
# Connecting words that follow a function name in prose, never operands.
_PROSE_WORDS = frozenset({
    "of", "is", "and", "by", "to", "the", "from", "with", "equals", "equal",
    "plus", "minus", "times", "over", "squared", "cubed", "divided", "multiplied",
})
_LATEX_COMMAND = re.compile(r"\\([A-Za-z]+)")


def _bare_argument_repl(m):
    name, arg = m.group(1), m.group(2) or m.group(3)
    if arg.lower() in _PROSE_WORDS:
        return m.group(0)
    return f"{name}({arg})"


def _normalize_functions(s: str) -> str:
    s = _LATEX_FUNCTION.sub(r"\1", s)
    s = _ARC_FUNCTION.sub(r"a\1", s)
    s = _LOG_BASE_CALL.sub(r"log(\2, \1)", s)
    s = _LOG_BASE_TOKEN.sub(r"log(\2, \1)", s)
    s = _BARE_ARGUMENT.sub(_bare_argument_repl, s)
    return _LATEX_COMMAND.sub(r"\1", s)


# ── Stage 4: number words ────────────────────────────────────────────────

_UNIT_WORDS = (
    "zero", "one", "two", "three", "four", "five", "six", "seven", "eight",
    "nine", "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen",
    "sixteen", "seventeen", "eighteen", "nineteen",
)
_TENS_WORDS = ("twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety")
_SCALE_WORDS = ("hundred", "thousand", "million", "billion")


def _word_alternation(words) -> str:
    return "(?:" + "|".join(sorted(words, key=len, reverse=True)) + r")(?![A-Za-z])"


_NUMBER_WORD = _word_alternation(_UNIT_WORDS + _TENS_WORDS + _SCALE_WORDS)
_UNIT_WORD = _word_alternation(_UNIT_WORDS)
_NUMBER_SPAN = re.compile(
    r"(?<![A-Za-z])" + _NUMBER_WORD
    + r"(?:(?:[\s-]+|(?<=hundred)\s+and\s+|(?<=thousand)\s+and\s+|(?<=million)\s+and\s+)"
    + _NUMBER_WORD + r")*"
    + r"(?:\s+point(?:\s+" + _UNIT_WORD + r")+)?",
    _FLAGS,
)


def _number_span_repl(m):
    span = m.group(0)
    try:
        value = w2n.word_to_num(span)
    except (ValueError, IndexError):
        logger.debug("Leaving number phrase %r unconverted", span)
        return span
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _convert_number_words(s: str) -> str:
    return _NUMBER_SPAN.sub(_number_span_repl, s)


# ── Stage 5: idiomatic phrase templates ──────────────────────────────────

_OPERAND = r"(\([^()]*\)|[A-Za-z0-9.^]+)"
_NUMBER = r"(\d+(?:\.\d+)?)"

_SPOKEN_FUNCTIONS = {
    "sine": "sin", "cosine": "cos", "tangent": "tan",
    "natural log": "ln", "natural logarithm": "ln",
    "logarithm": "log", "absolute value": "abs",
}


def _spoken_function_repl(m):
    name = re.sub(r"\s+", " ", m.group(1).lower())
    return f"{_SPOKEN_FUNCTIONS.get(name, name)}({m.group(2)})"


def _derivative_repl(m):
    body = m.group(1).strip()
    var = m.group(2) or detect_main_variable(body)
    return f"d/d{var}({body})"


def _integral_repl(m):
    body = m.group(1).strip()
    if m.group(2):
        return f"∫ {body} d{m.group(2)}"
    return f"∫ {body}"


_PHRASE_RULES = tuple((re.compile(p, _FLAGS), r) for p, r in (
    (r"\s*\?+\s*$", ""),
    (r"^\s*solve\s+for\s+[A-Za-z]\w*\s*:?\s*", ""),
    (r"^\s*(?:what\s+is|what's|calculate|compute|evaluate|find|simplify|solve)\b\s*:?\s*", ""),
    (r"\bthe\s+(?=(?:sum|difference|product|quotient|square|cube|derivative|integral"
     r"|antiderivative|natural|absolute|sine|cosine|tangent|logarithm)\b)", ""),
    (r"\bsubtract\s+" + _OPERAND + r"\s+from\s+" + _OPERAND, r"\2 - \1"),
    (_NUMBER + r"\s*(?:percent|%)\s+of\s+" + _OPERAND, r"(\1/100)*(\2)"),
    (_NUMBER + r"\s*(?:percent\b|%)", r"(\1/100)"),
    (r"\badd\s+" + _OPERAND + r"\s+to\s+" + _OPERAND, r"\1 + \2"),
    (r"\bmultiply\s+" + _OPERAND + r"\s+by\s+" + _OPERAND, r"\1 * \2"),
    (r"\bdivide\s+" + _OPERAND + r"\s+by\s+" + _OPERAND, r"\1 / \2"),
    (r"\bsum\s+of\s+" + _OPERAND + r"\s+and\s+" + _OPERAND, r"\1 + \2"),
    (r"\bdifference\s+(?:of|between)\s+" + _OPERAND + r"\s+and\s+" + _OPERAND, r"\1 - \2"),
    (r"\bproduct\s+of\s+" + _OPERAND + r"\s+and\s+" + _OPERAND, r"(\1)*(\2)"),
    (r"\bquotient\s+of\s+" + _OPERAND + r"\s+and\s+" + _OPERAND, r"(\1)/(\2)"),
    (r"\bsquare\s+root\s+of\s+" + _OPERAND, r"sqrt(\1)"),
    (r"\bcube\s+root\s+of\s+" + _OPERAND, r"cbrt(\1)"),
    (r"\b(natural\s+log(?:arithm)?|absolute\s+value|sine|cosine|tangent|logarithm"
     r"|sin|cos|tan|log|ln|exp|abs)\s+of\s+" + _OPERAND, _spoken_function_repl),
    (r"\b(?:derivative|differentiate)\s+(?:of\s+)?(.+?)"
     r"(?:\s+with\s+respect\s+to\s+([A-Za-z]))?\s*$", _derivative_repl),
    (r"\b(?:integral|antiderivative|integrate)(?!\s*\()\s+(?:of\s+)?(.+?)"
     r"(?:\s+with\s+respect\s+to\s+([A-Za-z]))?\s*$", _integral_repl),
))


def _rewrite_phrases(s: str) -> str:
    for pattern, repl in _PHRASE_RULES:
        s = pattern.sub(repl, s)
    return s


# ── Stage 6: spoken-word synonyms ────────────────────────────────────────

SYNONYMS = (
    ("raised to the power of", " ^ "),
    ("to the power of", " ^ "),
    ("is equal to", " = "),
    ("square root of", " sqrt("),
    ("cube root of", " cbrt("),
    ("antiderivative of", " ∫ "),
    ("derivative of", " d/dx "),
    ("integral of", " ∫ "),
    ("integrate", " ∫ "),
    ("multiplied by", " * "),
    ("divided by", " / "),
    ("product of", " * "),
    ("equal to", " = "),
    ("equals", " = "),
    ("squared", "^2"),
    ("cubed", "^3"),
    ("negative", " -"),
    ("subtract", " - "),
    ("minus", " - "),
    ("plus", " + "),
    ("times", " * "),
    ("over", " / "),
    ("add", " + "),
    ("sum", " + "),
    ("is", " = "),
)


def _phrase_pattern(phrase: str):
    body = r"\s+".join(re.escape(word) for word in phrase.split())
    return re.compile(r"(?<![A-Za-z])" + body + r"(?![A-Za-z])", _FLAGS)


# Longest phrases first so "is equal to" wins over "is".
_SYNONYM_RULES = tuple(
    (_phrase_pattern(phrase), repl)
    for phrase, repl in sorted(SYNONYMS, key=lambda item: len(item[0]), reverse=True)
)


def _substitute_words(s: str) -> str:
    for pattern, repl in _SYNONYM_RULES:
        s = pattern.sub(repl, s)
    return s


# ── Stage 7: implicit multiplication ─────────────────────────────────────

_IMPLICIT_MULTIPLICATION = tuple(re.compile(p) for p in (
    r"(?<=\d)(?=[A-Za-z])",      # 2x     -> 2*x
    r"(?<=[A-Za-z])(?=\d)",      # x2     -> x*2
    r"(?<=\))(?=[A-Za-z0-9])",   # (x+1)2 -> (x+1)*2
    r"(?<=\d)(?=\()",            # 2(x+1) -> 2*(x+1)
))


# Names containing digits are swapped for a placeholder while "*" is inserted.
_DIGIT_NAMES = tuple((re.compile(r"(?<![A-Za-z])" + name + r"(?=\s*\()"), name, chr(0xE000 + i))
                     for i, name in enumerate(("log10", "atan2")))


def _insert_multiplication(s: str) -> str:
    for pattern, _, placeholder in _DIGIT_NAMES:
        s = pattern.sub(placeholder, s)
    for pattern in _IMPLICIT_MULTIPLICATION:
        s = pattern.sub("*", s)
    for _, name, placeholder in _DIGIT_NAMES:
        s = s.replace(placeholder, name)
    return s


# ── Stage 8: operator spacing ────────────────────────────────────────────

_OPERATOR_SPACING = re.compile(r"\s*([-+*/^=±])\s*")
_PAREN_SPACING = re.compile(r"(?<=\()\s+|\s+(?=\))")
_WHITESPACE = re.compile(r"\s+")


def _compact_operators(s: str) -> str:
    s = _OPERATOR_SPACING.sub(r"\1", s)
    s = _PAREN_SPACING.sub("", s)
    return _WHITESPACE.sub(" ", s).strip()


# ── Character whitelist ──────────────────────────────────────────────────

_DISALLOWED = re.compile(r"[^A-Za-z0-9\s+\-*/^().,=±∫'_]")


def _filter_characters(s: str) -> str:
    return _WHITESPACE.sub(" ", _DISALLOWED.sub("", s)).strip()


def normalize(raw: str, compact: bool = True) -> str:
    """Convert *raw* input into a canonical infix formula.

    When *compact* is true, spaces around binary operators are removed as
    the final stage.  Never raises.
    """
    if not isinstance(raw, str):
        return ""
    s = raw.strip()
    try:
        s = _desugar_markup(s)
        s = _rewrite_structures(s)
        s = _normalize_functions(s)
        s = _convert_number_words(s)
        s = _rewrite_phrases(s)
        s = _substitute_words(s)
        s = _insert_multiplication(s)
        s = _filter_characters(s)
        if compact:
            s = _compact_operators(s)
    except Exception:
        logger.warning("Normalization failed for %r; falling back to character filter",
                       raw, exc_info=True)
        return _filter_characters(raw)
    return s
