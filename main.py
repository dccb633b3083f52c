import logging
import json
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from typing import Optional, List, Literal

from Equations.equation import compute_derivative, compute_evaluation, parse
from Equations.errors import EquationError
from Equations.iteration import iterate
from Equations.lexer import tokenize

from generate_expression import generate_random_expression

# -------------------------------------------------------------------
# Setup
# -------------------------------------------------------------------
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:4000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

BENCHMARK_TOTAL_RUNS = 30
BENCHMARK_WARMUP_RUNS = 10
MAX_ITERATIONS = 8

# -------------------------------------------------------------------
# Symbol Normalization (φ → phi, ** → ^)
# -------------------------------------------------------------------
def normalize_expression(expr: str):
    if not expr:
        return expr
    expr = expr.replace("φ", "phi")
    expr = expr.replace("**", "^")
    expr = expr.replace("×", "*")
    expr = expr.replace("·", "*")
    return expr

# -------------------------------------------------------------------
# Health Endpoints
# -------------------------------------------------------------------
@app.get("/ping")
async def ping():
    logger.info("🔔 Uptime ping received")
    return {"status": "ok", "message": "Backend is alive"}

@app.get("/uptime")
async def uptime():
    logger.info("🟢 UptimeRobot pinged this server.")
    return {"status": "alive"}

# -------------------------------------------------------------------
# Pydantic Models
# -------------------------------------------------------------------
Variable = Literal["xi", "mi", "di"]


class ExpressionInput(BaseModel):
    expression: str


class EvaluationInput(BaseModel):
    expression: str
    parameter: float


class DerivativeInput(BaseModel):
    expression: str
    variable: Variable = 'xi'
    depth: int = Field(0, ge=0)


class IterationInput(BaseModel):
    iterations: int = Field(2, ge=0, le=MAX_ITERATIONS)
    parameter: Literal["m", "d"] = 'm'
    shared_parameters: bool = False


class GenerationInput(BaseModel):
    num_terms: Optional[int] = 3
    max_depth: Optional[int] = 2
    variables: Optional[List[Variable]] = ['xi']

# -------------------------------------------------------------------
# Streaming Benchmark Engine
# -------------------------------------------------------------------
async def benchmark_generator(expression: str, variable: str, depth: int):

    expression = normalize_expression(expression)

    measured_runs = BENCHMARK_TOTAL_RUNS - BENCHMARK_WARMUP_RUNS
    times = []
    memories = []
    result = {}

    try:
        for run_index in range(BENCHMARK_TOTAL_RUNS):

            try:
                result_data = compute_derivative(expression, variable, depth)

            except EquationError as e:
                err = {
                    'type': 'error',
                    'detail': f"Derivative calculation failed: {str(e)}"
                }
                yield f"data: {json.dumps(err)}\n\n"
                return

            if run_index >= BENCHMARK_WARMUP_RUNS:
                times.append(result_data['execution_time_ms'])
                memories.append(result_data['peak_memory_bytes'])

                if run_index == BENCHMARK_WARMUP_RUNS:
                    result = {
                        'equation': result_data['equation'],
                        'derivative': result_data['derivative'],
                    }

        final_msg = {
            'type': 'complete',
            'results': {
                **result,
                'avgTime': sum(times) / measured_runs,
                'avgMemory': sum(memories) / measured_runs,
            }
        }
        yield f"data: {json.dumps(final_msg)}\n\n"

    except Exception as e:
        logger.error("Unexpected benchmark error", exc_info=True)
        err = {
            'type': 'error',
            'detail': f"Unexpected server error: {str(e)}"
        }
        yield f"data: {json.dumps(err)}\n\n"

# -------------------------------------------------------------------
# API Endpoints
# -------------------------------------------------------------------
@app.post("/parse")
async def parse_endpoint(input_data: ExpressionInput):
    expression = normalize_expression(input_data.expression)
    try:
        equation = parse(expression)
        return {"equation": str(equation), "tokens": len(tokenize(expression))}
    except EquationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/evaluate")
async def evaluate_endpoint(input_data: EvaluationInput):
    try:
        return compute_evaluation(normalize_expression(input_data.expression), input_data.parameter)
    except EquationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/derivative")
async def derivative_endpoint(input_data: DerivativeInput):
    expression = normalize_expression(input_data.expression)
    logger.debug(f"Derivative request (normalized): {expression} by {input_data.variable}")
    try:
        return compute_derivative(expression, input_data.variable, input_data.depth)
    except EquationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/derivative_stream")
async def derivative_stream(expression: str, variable: Variable = 'xi', depth: int = Query(0, ge=0)):

    logger.debug(f"Stream request: {expression}")
    return StreamingResponse(
        benchmark_generator(expression, variable, depth),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )


@app.post("/iterate")
async def iterate_endpoint(input_data: IterationInput):
    try:
        return iterate(input_data.iterations, input_data.parameter, input_data.shared_parameters)
    except EquationError as e:
        logger.error("Iteration error", exc_info=True)
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/generate")
async def generate_expression_endpoint(input_data: GenerationInput):
    try:
        expr_sym, expr_str = generate_random_expression(
            variables=input_data.variables,
            num_terms=input_data.num_terms,
            max_depth=input_data.max_depth
        )

        return {
            "expression_string": expr_str,
        }

    except Exception as e:
        logger.error("Generation error", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Generation failed: {str(e)}"
        )
