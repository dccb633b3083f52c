import logging
from typing import List, Optional, Tuple

from Equations.errors import ReduceError
from Equations.tokens import BINARY_GROUPS, LITERAL_TOKENS, Token, TokenType

# --- Logger Setup ---
logger = logging.getLogger(__name__)

OPERAND_TOKENS = (TokenType.VALUE, TokenType.XI, TokenType.MI, TokenType.DI, TokenType.PREVIOUS)


def _describe(token: Optional[Token]) -> str:
    if token is None:
        return 'end of equation'
    if token.type is TokenType.VALUE:
        return f"'{token.value:g}'"
    return f"'{LITERAL_TOKENS.get(token.type, token.type.value)}'"


# --- Reducer: Collapsing the Token Stream into Nested Groups ---
class GroupReducer:
    """Collapses a flat token sequence into a single nested group token.

    Precedence, from the tightest binding:
      1. ``( ... )``                      -> bracket group
      2. ``exp`` + bracket group          -> exp group
      3. bracket group ``^`` operand      -> power group (bound before unary minus)
      4. leading / post-operator ``-``    -> negate group
      5. remaining ``^``                  -> power group, right-associative
      6. ``* /`` then ``+ -``             -> product/quotient, sum/difference groups

    Levels 3 and 4 make ``-(a)^2`` read as ``-((a)^2)`` while ``-a^2`` reads
    as ``(-a)^2``.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = list(tokens)
        self.index = 0

    def _peek(self, offset=0) -> Optional[Token]:
        pos = self.index + offset
        if pos < len(self.tokens):
            return self.tokens[pos]
        return None

    def _peek_type(self, offset=0) -> Optional[TokenType]:
        token = self._peek(offset)
        return token.type if token is not None else None

    def _eat(self, token_type: TokenType) -> Token:
        token = self._peek()
        if token is None or token.type is not token_type:
            raise ReduceError(f"Expected '{LITERAL_TOKENS[token_type]}', but got {_describe(token)}")
        self.index += 1
        return token

    def reduce(self) -> Token:
        if not self.tokens:
            raise ReduceError("Mistaken equation: nothing to reduce")
        result = self._sum()
        if self.index != len(self.tokens):
            raise ReduceError(f"Mistaken equation: unexpected {_describe(self._peek())} at token {self.index}")
        logger.debug(f"Reduced {len(self.tokens)} tokens into {result.type.name}")
        return result

    def _binary_level(self, operators, operand):
        node = operand()
        while self._peek_type() in operators:
            op = self._eat(self._peek_type())
            right = operand()
            node = Token(BINARY_GROUPS[op.type], children=[node, op, right])
        return node

    def _sum(self):  # Handles Addition (+) and Subtraction (-)
        return self._binary_level((TokenType.PLUS, TokenType.MINUS), self._product)

    def _product(self):  # Handles Multiplication (*) and Division (/)
        return self._binary_level((TokenType.MULTIPLY, TokenType.DIVIDE), self._power)

    def _power(self):  # Handles the remaining exponentiation (^)
        base = self._negate()
        if self._peek_type() is TokenType.POWER:
            op = self._eat(TokenType.POWER)
            exponent = self._power()  # Right-associativity
            return Token(TokenType.POWER_GROUP, children=[base, op, exponent])
        return base

    def _negate(self):
        if self._peek_type() is TokenType.MINUS:
            op = self._eat(TokenType.MINUS)
            return Token(TokenType.NEGATE_GROUP, children=[op, self._negate()])
        return self._bracket_power()

    def _bracket_power(self):
        base = self._atom()
        if base.type is TokenType.BRACKET_GROUP and self._bracket_chain_ahead():
            op = self._eat(TokenType.POWER)
            return Token(TokenType.POWER_GROUP, children=[base, op, self._bracket_power()])
        return base

    def _bracket_chain_ahead(self) -> bool:
        # '^' operand ('^' operand)* where every operand but the last is a bracket group
        pos = self.index
        while pos < len(self.tokens) and self.tokens[pos].type is TokenType.POWER:
            end, kind = self._scan_operand(pos + 1)
            if end is None:
                return False
            if end >= len(self.tokens) or self.tokens[end].type is not TokenType.POWER:
                return True
            if kind is not TokenType.BRACKET_GROUP:
                return False
            pos = end
        return False

    def _scan_operand(self, pos) -> Tuple[Optional[int], Optional[TokenType]]:
        if pos >= len(self.tokens):
            return None, None
        ttype = self.tokens[pos].type
        if ttype in OPERAND_TOKENS:
            return pos + 1, ttype
        if ttype is TokenType.EXP:
            end, kind = self._scan_operand(pos + 1)
            if kind is not TokenType.BRACKET_GROUP:
                return None, None
            return end, TokenType.EXP_GROUP
        if ttype is TokenType.LEFT_BRACKET:
            depth = 0
            for end in range(pos, len(self.tokens)):
                if self.tokens[end].type is TokenType.LEFT_BRACKET:
                    depth += 1
                elif self.tokens[end].type is TokenType.RIGHT_BRACKET:
                    depth -= 1
                    if not depth:
                        return end + 1, TokenType.BRACKET_GROUP
        return None, None

    def _atom(self):
        token = self._peek()
        if token is None:
            raise ReduceError("Mistaken equation: missing operand at end of equation")
        if token.type in OPERAND_TOKENS:
            self.index += 1
            return token
        if token.type is TokenType.LEFT_BRACKET:
            return self._bracket()
        if token.type is TokenType.EXP:
            self.index += 1
            if self._peek_type() is not TokenType.LEFT_BRACKET:
                raise ReduceError(f"Expected '(' after 'exp', but got {_describe(self._peek())}")
            return Token(TokenType.EXP_GROUP, children=[token, self._bracket()])
        raise ReduceError(f"Mistaken equation: unexpected {_describe(token)} at token {self.index}")

    def _bracket(self):
        self._eat(TokenType.LEFT_BRACKET)
        if self._peek_type() is TokenType.RIGHT_BRACKET:
            self._eat(TokenType.RIGHT_BRACKET)
            # Left for the tree builder to reject
            return Token(TokenType.BRACKET_GROUP)
        inner = self._sum()
        self._eat(TokenType.RIGHT_BRACKET)
        return Token(TokenType.BRACKET_GROUP, children=[inner])


def reduce_tokens(tokens: List[Token]) -> Token:
    return GroupReducer(tokens).reduce()
