import math
import time
import tracemalloc
import logging
from typing import Optional, Union

from Equations.builder import build_tree
from Equations.errors import EquationError, EvaluationError
from Equations.lexer import tokenize
from Equations.operators import CalculationContext, Operator
from Equations.reducer import reduce_tokens
from Equations.tokens import TokenType

# --- Logger Setup ---
logger = logging.getLogger(__name__)

SYMBOLS = {
    'xi': TokenType.XI,
    'mi': TokenType.MI,
    'di': TokenType.DI,
}


def resolve_symbol(name: Union[str, TokenType]) -> TokenType:
    if isinstance(name, TokenType):
        return name
    try:
        return SYMBOLS[name]
    except KeyError:
        raise ValueError(f"Unknown variable '{name}'. Only xi, mi, di allowed.") from None


class Equation:
    """Parses one iteration's equation, optionally bound to the previous iteration's tree.

    With ``shift`` set, the bound tree is a copy of ``previous`` with every
    variable moved one iteration further back; ``previous`` itself is left
    untouched, so other equations holding it are unaffected.
    """

    def __init__(self, previous: Optional[Operator] = None, shift: bool = False):
        if shift and previous is None:
            raise ValueError("Cannot shift: no previous iteration is bound")
        self.previous = previous.shifted() if shift else previous
        self.root: Optional[Operator] = None

    def parse(self, text: str) -> Operator:
        tokens = tokenize(text)
        group = reduce_tokens(tokens)
        self.root = build_tree(group, self.previous)
        logger.debug(f"Parsed '{text}' as '{self.root}'")
        return self.root

    def _require_root(self) -> Operator:
        if self.root is None:
            raise EquationError("Equation has not been parsed yet")
        return self.root

    def evaluate(self, parameter: float) -> float:
        root = self._require_root()
        try:
            value = root.evaluate(CalculationContext(parameter))
        except (ArithmeticError, ValueError) as e:
            raise EvaluationError(f"Cannot evaluate '{root}' at {parameter}: {e}") from e
        # Float arithmetic overflows to inf or nan without raising
        if not math.isfinite(value):
            raise EvaluationError(f"Cannot evaluate '{root}' at {parameter}: result is {value}")
        return value

    def derivative(self, symbol: Union[str, TokenType], depth: int = 0) -> Optional[Operator]:
        return self._require_root().derivative(resolve_symbol(symbol), depth)

    def is_parametric_in(self, symbol: Union[str, TokenType], depth: int = 0) -> bool:
        return self._require_root().is_parametric_in(resolve_symbol(symbol), depth)

    def __str__(self):
        return self._require_root().to_string()


def parse(text: str, previous: Optional[Operator] = None, shift: bool = False) -> Equation:
    equation = Equation(previous, shift)
    equation.parse(text)
    return equation


# --- Main Compute Functions ---
def compute_derivative(expression_str, variable_str, depth=0):
    tracemalloc.start()
    start_time = time.perf_counter()

    try:
        equation = parse(expression_str)
        derivative = equation.derivative(variable_str, depth)
        equation_str = str(equation)
        derivative_str = derivative.to_string() if derivative is not None else None
    except EquationError as e:
        logger.error(f"Error computing derivative for '{expression_str}': {e}", exc_info=True)
        raise
    finally:
        end_time = time.perf_counter()
        _, peak_memory = tracemalloc.get_traced_memory()
        tracemalloc.stop()

    return {
        "equation": equation_str,
        "derivative": derivative_str,
        "is_zero": derivative_str is None,
        "execution_time_ms": (end_time - start_time) * 1000,
        "peak_memory_bytes": peak_memory,
    }


def compute_evaluation(expression_str, parameter):
    try:
        equation = parse(expression_str)
        value = equation.evaluate(parameter)
    except EquationError as e:
        logger.error(f"Error evaluating '{expression_str}' at {parameter}: {e}", exc_info=True)
        raise

    return {"equation": str(equation), "value": value}
