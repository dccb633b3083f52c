import math
import logging
import operator
from enum import Enum
from typing import Optional

from Equations.errors import DifferentiationError
from Equations.tokens import LITERAL_TOKENS, TokenType

# --- Logger Setup ---
logger = logging.getLogger(__name__)

# Constants closer than this to 1 are dropped by the '*' and '**' combinators
TOLERANCE = 1e-6


class OperatorKind(Enum):
    CONSTANT = 'constant'
    ONE_VALUE = 'one_value'
    SQUARE = 'square'
    VARIABLE = 'variable'
    UNARY = 'unary'
    BINARY = 'binary'
    FUNCTIONAL = 'functional'


CONSTANT_KINDS = (OperatorKind.CONSTANT, OperatorKind.ONE_VALUE, OperatorKind.SQUARE)

# --- Numeric Operations ---
UNARY_ACTIONS = {
    TokenType.BRACKET_GROUP: lambda v: v,
    TokenType.EXP: math.exp,
    TokenType.MINUS: operator.neg,
}

BINARY_ACTIONS = {
    TokenType.POWER: math.pow,
    TokenType.MULTIPLY: operator.mul,
    TokenType.DIVIDE: operator.truediv,
    TokenType.PLUS: operator.add,
    TokenType.MINUS: operator.sub,
}

# Operator precedence for parenthesis insertion
PRECEDENCE = {
    TokenType.PLUS: 1,
    TokenType.MINUS: 1,
    TokenType.MULTIPLY: 2,
    TokenType.DIVIDE: 2,
    TokenType.POWER: 3,
}
ATOM_PRECEDENCE = 4


class CalculationContext:
    """The single scalar every variable evaluates to, whatever its symbol or depth."""

    def __init__(self, parameter: float):
        self.parameter = float(parameter)


class Operator:
    kind: OperatorKind

    def evaluate(self, context: CalculationContext) -> float:
        raise NotImplementedError

    def to_string(self) -> str:
        raise NotImplementedError

    def is_parametric_in(self, symbol: TokenType, depth: int = 0) -> bool:
        raise NotImplementedError

    def is_constant(self) -> bool:
        """True when no variable of any symbol or depth occurs in the subtree."""
        raise NotImplementedError

    def clone(self) -> 'Operator':
        raise NotImplementedError

    def shifted(self, offset: int = 1) -> 'Operator':
        """A copy of the subtree with every variable moved ``offset`` iterations back."""
        raise NotImplementedError

    def derivative(self, symbol: TokenType, depth: int = 0) -> Optional['Operator']:
        """Partial derivative by the variable ``symbol`` at ``depth``; None is an exact zero."""
        raise NotImplementedError

    def is_near_one(self) -> bool:
        return False

    @property
    def precedence(self) -> int:
        return ATOM_PRECEDENCE

    # --- Algebraic combinators, simplifying at construction time ---
    def __add__(self, other):
        return Binary(TokenType.PLUS, self, other)

    def __sub__(self, other):
        return Binary(TokenType.MINUS, self, other)

    def __mul__(self, other):
        if self.is_near_one():
            return other
        if other.is_near_one():
            return self
        return Binary(TokenType.MULTIPLY, self, other)

    def __truediv__(self, other):
        return Binary(TokenType.DIVIDE, self, other)

    def __pow__(self, other):
        if other.is_near_one():
            return self
        return Binary(TokenType.POWER, self, other)

    def __neg__(self):
        return Unary(TokenType.MINUS, self)

    def __str__(self):
        return self.to_string()

    def __repr__(self):
        return f"{type(self).__name__}({self.to_string()})"


class Constant(Operator):
    kind = OperatorKind.CONSTANT

    def __init__(self, value: float):
        self.value = float(value)

    def is_near_one(self):
        return abs(1.0 - self.value) <= TOLERANCE

    def evaluate(self, context):
        return self.value

    def to_string(self):
        if math.isfinite(self.value) and abs(round(self.value) - self.value) <= TOLERANCE:
            return str(int(round(self.value)))
        return f"{self.value:f}"

    def is_parametric_in(self, symbol, depth=0):
        return False

    def is_constant(self):
        return True

    def clone(self):
        return Constant(self.value)

    def shifted(self, offset=1):
        return self.clone()

    def derivative(self, symbol, depth=0):
        return None


class OneValue(Constant):
    kind = OperatorKind.ONE_VALUE

    def __init__(self):
        super().__init__(1.0)

    def is_near_one(self):
        return True

    def to_string(self):
        return '1'

    def clone(self):
        return OneValue()


class Square(Constant):
    kind = OperatorKind.SQUARE

    def __init__(self):
        super().__init__(2.0)

    def to_string(self):
        return '2'

    def clone(self):
        return Square()


def make_constant(value: float) -> Constant:
    if value == 1.0:
        return OneValue()
    if value == 2.0:
        return Square()
    return Constant(value)


class Variable(Operator):
    kind = OperatorKind.VARIABLE

    def __init__(self, symbol: TokenType, depth: int = 0):
        if depth < 0:
            raise ValueError(f"Variable depth must be nonnegative, got {depth}")
        self.symbol = symbol
        self.depth = depth

    def evaluate(self, context):
        return context.parameter

    def to_string(self):
        token = LITERAL_TOKENS[self.symbol]
        if not self.depth:
            return token
        return f"{token[0]}(i-{self.depth})"

    def is_parametric_in(self, symbol, depth=0):
        return self.symbol is symbol and self.depth == depth

    def is_constant(self):
        return False

    def clone(self):
        return Variable(self.symbol, self.depth)

    def shifted(self, offset=1):
        return Variable(self.symbol, self.depth + offset)

    def derivative(self, symbol, depth=0):
        if self.is_parametric_in(symbol, depth):
            return OneValue()
        return None


def _unwrapped(node: Operator) -> Operator:
    while node.kind is OperatorKind.FUNCTIONAL:
        node = node.root
    return node


def _is_bracket(node: Operator) -> bool:
    node = _unwrapped(node)
    return node.kind is OperatorKind.UNARY and node.op is TokenType.BRACKET_GROUP


class Unary(Operator):
    kind = OperatorKind.UNARY

    def __init__(self, op: TokenType, child: Operator):
        if op not in UNARY_ACTIONS:
            raise ValueError(f"Unsupported unary operator: {op}")
        self.op = op
        self.child = child

    def evaluate(self, context):
        return UNARY_ACTIONS[self.op](self.child.evaluate(context))

    def to_string(self):
        text = self.child.to_string()
        if self.op is TokenType.BRACKET_GROUP:
            return f"({text})"
        if self.op is TokenType.EXP:
            return f"exp{text}" if _is_bracket(self.child) else f"exp({text})"

        child = _unwrapped(self.child)
        if child.kind is OperatorKind.BINARY:
            # (a)^2 reads the same with or without the minus in front
            if child.op is not TokenType.POWER or not _is_bracket(child.left):
                return f"-({text})"
        return f"-{text}"

    def is_parametric_in(self, symbol, depth=0):
        return self.child.is_parametric_in(symbol, depth)

    def is_constant(self):
        return self.child.is_constant()

    def clone(self):
        return Unary(self.op, self.child.clone())

    def shifted(self, offset=1):
        return Unary(self.op, self.child.shifted(offset))

    def derivative(self, symbol, depth=0):
        if not self.child.is_parametric_in(symbol, depth):
            return None

        d_child = self.child.derivative(symbol, depth)
        if d_child is None:
            return None
        if self.op is TokenType.BRACKET_GROUP:
            return d_child
        if self.op is TokenType.EXP:
            # Chain rule: d(e^u) = e^u * du
            return self.clone() * d_child
        return -d_child


class Binary(Operator):
    kind = OperatorKind.BINARY

    def __init__(self, op: TokenType, left: Operator, right: Operator):
        if op not in BINARY_ACTIONS:
            raise ValueError(f"Unsupported binary operator: {op}")
        self.op = op
        self.left = left
        self.right = right

    @property
    def precedence(self):
        return PRECEDENCE[self.op]

    def evaluate(self, context):
        return BINARY_ACTIONS[self.op](self.left.evaluate(context), self.right.evaluate(context))

    def _format_child(self, child, is_left_child):
        text = child.to_string()
        op_prec = self.precedence
        child_prec = child.precedence

        if child_prec < op_prec:
            return f"({text})"
        if child_prec == op_prec:
            if self.op is TokenType.POWER and is_left_child:
                return f"({text})"
            if self.op in (TokenType.MINUS, TokenType.DIVIDE) and not is_left_child:
                return f"({text})"
        if self.op is TokenType.POWER and is_left_child:
            base = _unwrapped(child)
            if base.kind is OperatorKind.UNARY and base.op is TokenType.MINUS:
                return f"({text})"
            if base.kind in CONSTANT_KINDS and base.value < 0:
                return f"({text})"
        return text

    def to_string(self):
        left = self._format_child(self.left, True)
        right = self._format_child(self.right, False)
        return f"{left}{LITERAL_TOKENS[self.op]}{right}"

    def is_parametric_in(self, symbol, depth=0):
        return self.left.is_parametric_in(symbol, depth) or self.right.is_parametric_in(symbol, depth)

    def is_constant(self):
        return self.left.is_constant() and self.right.is_constant()

    def clone(self):
        return Binary(self.op, self.left.clone(), self.right.clone())

    def shifted(self, offset=1):
        return Binary(self.op, self.left.shifted(offset), self.right.shifted(offset))

    def derivative(self, symbol, depth=0):
        dl = self.left.derivative(symbol, depth) if self.left.is_parametric_in(symbol, depth) else None
        dr = self.right.derivative(symbol, depth) if self.right.is_parametric_in(symbol, depth) else None

        if self.op is TokenType.POWER:
            return self._power_rule(dl, symbol, depth)
        if self.op is TokenType.PLUS:
            if dl is None:
                return dr
            if dr is None:
                return dl
            return dl + dr
        if self.op is TokenType.MINUS:
            if dl is None:
                return None if dr is None else -dr
            if dr is None:
                return dl
            return dl - dr
        if self.op is TokenType.MULTIPLY:
            return self._product_rule(dl, dr)
        if self.op is TokenType.DIVIDE:
            return self._quotient_rule(dl, dr)

        raise DifferentiationError(f"Unsupported operator for derivative: '{LITERAL_TOKENS[self.op]}'")

    def _product_rule(self, dl, dr):
        if dl is None:
            if dr is None:
                return None
            return self.left.clone() * dr
        if dr is None:
            return dl * self.right.clone()
        return (dl * self.right.clone()) + (self.left.clone() * dr)

    def _quotient_rule(self, dl, dr):
        if dl is None:
            if dr is None:
                return None
            top = -(self.left.clone() * dr)
        elif dr is None:
            top = dl * self.right.clone()
        else:
            top = (dl * self.right.clone()) - (self.left.clone() * dr)
        return top / (self.right.clone() ** Square())

    def _power_rule(self, d_base, symbol, depth):
        if self.right.is_parametric_in(symbol, depth):
            raise DifferentiationError(f"Variable in exponent is not supported: '{self}'")
        if d_base is None:
            return None
        if not self.right.is_constant():
            raise DifferentiationError(f"Only constant exponents are supported: '{self}'")

        exponent = self.right
        if exponent.kind in CONSTANT_KINDS:
            value = exponent.value
            factor = exponent.clone()
        else:
            try:
                value = exponent.evaluate(CalculationContext(0.0))
            except (ArithmeticError, ValueError) as e:
                raise DifferentiationError(f"Cannot evaluate exponent '{exponent}': {e}") from e
            factor = make_constant(value)

        if abs(value - 1.0) <= TOLERANCE:
            return d_base

        if exponent.kind is OperatorKind.SQUARE:
            expanded = self._binomial_expansion()
            if expanded is not None:
                logger.debug(f"Expanding '{self}' before differentiating")
                return expanded.derivative(symbol, depth)

        # Power rule: d(u^c) = c * u^(c-1) * du
        return factor * (self.left.clone() ** Constant(value - 1.0)) * d_base

    def _binomial_expansion(self) -> Optional[Operator]:
        """Rewrites (u+v)^2 as u^2+2*u*v+v^2 (and (u-v)^2 likewise); None for any other base."""
        if not (self.left.kind is OperatorKind.UNARY and self.left.op is TokenType.BRACKET_GROUP):
            return None
        inner = self.left.child
        if inner.kind is not OperatorKind.BINARY or inner.op not in (TokenType.PLUS, TokenType.MINUS):
            return None

        u = inner.left.clone()
        v = inner.right.clone()
        two_uv = Square() * u * v
        if inner.op is TokenType.PLUS:
            head = (u ** Square()) + two_uv
        else:
            head = (u ** Square()) - two_uv
        return head + (v ** Square())


class Functional(Operator):
    """The previous iteration's tree standing in for the placeholder."""

    kind = OperatorKind.FUNCTIONAL

    def __init__(self, root: Operator):
        self.root = root

    @property
    def precedence(self):
        return self.root.precedence

    def evaluate(self, context):
        return self.root.evaluate(context)

    def to_string(self):
        return self.root.to_string()

    def is_parametric_in(self, symbol, depth=0):
        return self.root.is_parametric_in(symbol, depth)

    def is_constant(self):
        return self.root.is_constant()

    def clone(self):
        return self.root.clone()

    def shifted(self, offset=1):
        return Functional(self.root.shifted(offset))

    def derivative(self, symbol, depth=0):
        return self.root.derivative(symbol, depth)
