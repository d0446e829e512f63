import logging
import time
from typing import Any, List, Optional, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from algenova.engine import solve_problem
from algenova.settings import get_settings

logger = logging.getLogger(__name__)

app = FastAPI(title="AlgeNova API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings()["cors_origins"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

EXAMPLE_REQUEST = {"formula": "2x + 5 = 13"}

HELP_CATALOG = {
    "supported_operations": [
        "Linear, quadratic, polynomial equations",
        "Equations with sqrt, log, sin, cos, tan",
        "Equations with ± (both branches solved)",
        "Expression evaluation (simplify + calculate)",
        "Derivatives (d/dx)",
        "Integrals (antiderivatives and definite integrals)",
        "Taylor series (series(f, x, point, order)) and matrices (bmatrix, det, norm)",
        "Spoken input (\"two plus three\") and LaTeX input (\\frac{1}{2})",
        "Named formulas (quadratic formula, Pythagorean theorem, ...)",
    ],
    "examples": [
        {"type": "Linear Equation", "input": "2x + 5 = 13"},
        {"type": "Quadratic Equation", "input": "x^2 - 4 = 0"},
        {"type": "Square Root Equation", "input": "sqrt(x+4) = 6"},
        {"type": "Logarithmic Equation", "input": "log(x) = 2"},
        {"type": "Trigonometric Equation", "input": "sin(x) = 0.5"},
        {"type": "Plus-Minus Equation", "input": "x ± 1 = 5"},
        {"type": "Expression", "input": "\\frac{1}{2} + \\frac{1}{3}"},
        {"type": "Spoken Expression", "input": "what is five percent of two hundred?"},
        {"type": "Derivative", "input": "d/dx(x^2 + 3x)"},
        {"type": "Integral", "input": "∫x^2"},
        {"type": "Definite Integral", "input": "\\int_{0}^{1} x^{2} dx"},
        {"type": "Series", "input": "series(exp(x), x, 0, 4)"},
        {"type": "Determinant", "input": "\\begin{vmatrix} 1 & 2 \\\\ 3 & 4 \\end{vmatrix}"},
        {"type": "Special Formula", "input": "quadratic formula"},
    ],
}


class SolveRequest(BaseModel):
    formula: Any = None


class StepInfo(BaseModel):
    step_number: int
    description: str
    expression: str
    explanation: str
    expression_latex: Optional[str] = None


class VerificationInfo(BaseModel):
    candidate: str
    left_value: Optional[Union[float, str]] = None
    right_value: Optional[Union[float, str]] = None
    is_correct: bool
    parameter_sample: Optional[int] = None
    error: Optional[str] = None


class ValidationInfo(BaseModel):
    is_valid: bool
    errors: List[str]


class SummaryInfo(BaseModel):
    runtime_ms: float
    total_steps: int
    verification_checks: int
    timestamp: str
    library: str


class SolveResponse(BaseModel):
    original_formula: str
    parsed_formula: str
    type: str
    steps: List[StepInfo]
    final_answer: Union[str, List[str]]
    final_answer_latex: Optional[Union[str, List[str]]] = None
    verification: List[VerificationInfo]
    explanation: str
    validation: ValidationInfo
    summary: SummaryInfo
    special_name: Optional[str] = None


def _missing_formula() -> JSONResponse:
    return JSONResponse(status_code=400, content={
        "error": "No formula provided. Please provide a mathematical expression to solve.",
        "example": EXAMPLE_REQUEST,
    })


@app.exception_handler(RequestValidationError)
async def _invalid_request(request: Request, exc: RequestValidationError):
    logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return _missing_formula()


@app.middleware("http")
async def _log_requests(request: Request, call_next):
    t_start = time.perf_counter()
    response = await call_next(request)
    logger.info("%s %s %d %.2fms", request.method, request.url.path, response.status_code,
                (time.perf_counter() - t_start) * 1000)
    return response


@app.post("/api/math/solve", response_model=SolveResponse)
def solve(req: SolveRequest):
    formula = req.formula
    if not isinstance(formula, str) or not formula.strip():
        return _missing_formula()

    try:
        result = solve_problem(formula, settings=get_settings())
    except ValueError as e:
        logger.warning("Could not solve %r: %s", formula, e)
        return _unsupported_formula(formula, e)
    except Exception as e:
        logger.exception("Solver error for %r", formula)
        return _unsupported_formula(formula, e)

    return result


def _unsupported_formula(formula: str, error: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={
        "error": "Invalid or unsupported formula.",
        "details": str(error),
        "formula": formula,
    })


@app.get("/api/math/help")
def math_help():
    return HELP_CATALOG


@app.get("/", response_class=PlainTextResponse)
def root():
    return "AlgeNova API is running..."


@app.get("/ping", response_class=PlainTextResponse)
def ping():
    return "pong"
