from enum import Enum
from typing import List, Optional


class TokenType(Enum):
    # lexical kinds
    EXP = 'exp'
    POWER = '^'
    PLUS = '+'
    MINUS = '-'
    MULTIPLY = '*'
    DIVIDE = '/'
    LEFT_BRACKET = '('
    RIGHT_BRACKET = ')'
    VALUE = 'value'
    XI = 'xi'
    MI = 'mi'
    DI = 'di'
    PREVIOUS = 'phi(i-1)'

    # group kinds produced by the reducer
    BRACKET_GROUP = 'bracket_gr'
    EXP_GROUP = 'exp_gr'
    POWER_GROUP = 'power_gr'
    PLUS_GROUP = 'plus_gr'
    MINUS_GROUP = 'minus_gr'
    MULTIPLY_GROUP = 'multiply_gr'
    DIVIDE_GROUP = 'divide_gr'
    NEGATE_GROUP = 'negate_gr'


# Literal text -> token kind, case-sensitive.
TOKEN_LITERALS = {
    'exp': TokenType.EXP,
    '^': TokenType.POWER,
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.MULTIPLY,
    '/': TokenType.DIVIDE,
    '(': TokenType.LEFT_BRACKET,
    ')': TokenType.RIGHT_BRACKET,
    'xi': TokenType.XI,
    'mi': TokenType.MI,
    'di': TokenType.DI,
    'phi(i-1)': TokenType.PREVIOUS,
}

LITERAL_TOKENS = {ttype: literal for literal, ttype in TOKEN_LITERALS.items()}

VARIABLES = (TokenType.XI, TokenType.MI, TokenType.DI)

BINARY_GROUPS = {
    TokenType.POWER: TokenType.POWER_GROUP,
    TokenType.MULTIPLY: TokenType.MULTIPLY_GROUP,
    TokenType.DIVIDE: TokenType.DIVIDE_GROUP,
    TokenType.PLUS: TokenType.PLUS_GROUP,
    TokenType.MINUS: TokenType.MINUS_GROUP,
}


class Token:
    def __init__(self, type: TokenType, value: Optional[float] = None,
                 children: Optional[List['Token']] = None):
        self.type = type
        self.value = value
        self.children = children or []

    @property
    def is_group(self) -> bool:
        return self.type.value.endswith('_gr')

    def shape(self):
        """Nested (kind, ...) tuples describing the grouping, used to pin reducer output."""
        if self.type is TokenType.VALUE:
            return self.value
        if not self.is_group:
            return self.type.value
        return (self.type.value,) + tuple(child.shape() for child in self.children)

    def __repr__(self):
        if self.type is TokenType.VALUE:
            return f"Token({self.type.name}, {self.value})"
        if self.children:
            return f"Token({self.type.name}, {self.children})"
        return f"Token({self.type.name})"
