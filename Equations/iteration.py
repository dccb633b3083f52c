import logging
from typing import List

from Equations.equation import Equation, resolve_symbol
from Equations.tokens import LITERAL_TOKENS, TokenType

# --- Logger Setup ---
logger = logging.getLogger(__name__)

# Gaussian membership and its recurrent step
PHI_ZERO = "exp((-(xi-mi)^2)/(2*di^2))"
PHI_STEP = "exp((-(xi-mi)^2)/(2*di^2))+exp((-(phi(i-1)-mi)^2)/(2*di^2))"

# Short names accepted for the differentiation parameter
PARAMETERS = {
    'm': TokenType.MI,
    'd': TokenType.DI,
    'x': TokenType.XI,
}


def parameter_label(symbol: TokenType, depth: int = 0) -> str:
    literal = LITERAL_TOKENS[symbol]
    if not depth:
        return literal
    return f"{literal[0]}(i-{depth})"


def build_iterations(iterations: int, shared_parameters: bool,
                     phi_zero: str = PHI_ZERO, phi_step: str = PHI_STEP) -> List[Equation]:
    """Chains ``iterations`` step equations onto ``phi_zero``.

    When parameters differ per iteration, every step binds a shifted copy of
    the previous tree, so after ``n`` steps the innermost ``phi_zero`` sees
    its variables at depth ``n``.
    """
    if iterations < 0:
        raise ValueError(f"Number of iterations must be nonnegative, got {iterations}")

    first = Equation()
    first.parse(phi_zero)
    equations = [first]

    for i in range(iterations):
        step = Equation(equations[-1].root, shift=not shared_parameters)
        step.parse(phi_step)
        logger.debug(f"Iteration {i}: {len(str(step))} characters")
        equations.append(step)

    return equations


def iterate(iterations: int, parameter, shared_parameters: bool,
            phi_zero: str = PHI_ZERO, phi_step: str = PHI_STEP):
    symbol = PARAMETERS[parameter] if parameter in PARAMETERS else resolve_symbol(parameter)
    equations = build_iterations(iterations, shared_parameters, phi_zero, phi_step)
    logger.info(f"Computing gradients by {parameter_label(symbol)} over {iterations} iterations "
                f"({'same' if shared_parameters else 'separate'} parameters)")

    if shared_parameters:
        steps = []
        for i, equation in enumerate(equations[1:]):
            derivative = equation.derivative(symbol)
            steps.append({
                "iteration": i,
                "equation": str(equation),
                "derivative": derivative.to_string() if derivative is not None else None,
            })
        return {
            "shared_parameters": True,
            "phi_zero": str(equations[0]),
            "steps": steps,
        }

    final = equations[-1]
    derivatives = []
    for depth in range(iterations + 1):
        derivative = final.derivative(symbol, depth)
        derivatives.append({
            "parameter": parameter_label(symbol, depth),
            "depth": depth,
            "derivative": derivative.to_string() if derivative is not None else None,
        })
    return {
        "shared_parameters": False,
        "equation": str(final),
        "derivatives": derivatives,
    }
