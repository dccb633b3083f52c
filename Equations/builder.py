import logging
from typing import Optional

from Equations.errors import BuildError
from Equations.operators import Binary, Functional, Operator, Unary, Variable, make_constant
from Equations.tokens import BINARY_GROUPS, VARIABLES, Token, TokenType

# --- Logger Setup ---
logger = logging.getLogger(__name__)

BINARY_GROUP_TYPES = frozenset(BINARY_GROUPS.values())


# --- Tree Builder: Turning Group Tokens into Operators ---
class TreeBuilder:
    def __init__(self, previous: Optional[Operator] = None):
        # Tree bound to the 'phi(i-1)' placeholder
        self.previous = previous

    def build(self, token: Token) -> Operator:
        if token is None:
            raise BuildError("Parser error: no token to build")

        if token.type is TokenType.VALUE:
            return make_constant(token.value)
        if token.type in VARIABLES:
            return Variable(token.type)
        if token.type is TokenType.PREVIOUS:
            if self.previous is None:
                raise BuildError("'phi(i-1)' used but no previous iteration is bound")
            return Functional(self.previous)

        if not token.is_group:
            raise BuildError(f"Undefined token: {token.type.name}")
        if not token.children:
            raise BuildError(f"Parser error: empty {token.type.name}")

        children = token.children
        if token.type is TokenType.BRACKET_GROUP:
            return Unary(TokenType.BRACKET_GROUP, self.build(children[0]))
        if token.type is TokenType.EXP_GROUP:
            return Unary(TokenType.EXP, self.build(children[-1]))
        if token.type is TokenType.NEGATE_GROUP:
            return Unary(TokenType.MINUS, self.build(children[-1]))
        if token.type in BINARY_GROUP_TYPES:
            if len(children) != 3:
                raise BuildError(f"Parser error: {token.type.name} needs 3 parts, got {len(children)}")
            if children[1].type not in BINARY_GROUPS:
                raise BuildError(f"Parser error: {children[1].type.name} is not a binary operator")
            return Binary(children[1].type, self.build(children[0]), self.build(children[-1]))

        raise BuildError(f"Parser error: unexpected group {token.type.name}")


def build_tree(token: Token, previous: Optional[Operator] = None) -> Operator:
    return TreeBuilder(previous).build(token)
