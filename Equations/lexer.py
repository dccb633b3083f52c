import re
import logging
from typing import List

from Equations.errors import LexError
from Equations.tokens import TOKEN_LITERALS, Token, TokenType

# --- Logger Setup ---
logger = logging.getLogger(__name__)


def _literal_pattern():
    # Longest literal first so 'phi(i-1)' is never split into '(' ... ')'
    literals = sorted(TOKEN_LITERALS, key=len, reverse=True)
    return '|'.join(re.escape(literal) for literal in literals)


class Lexer:
    TOKEN_SPECS = [
        (r'[0-9.,]+', TokenType.VALUE),
        (_literal_pattern(), 'LITERAL'),
        (r'\s+', None),  # Skip whitespace
    ]
    _COMPILED_SPECS = [(re.compile(pattern), ttype) for pattern, ttype in TOKEN_SPECS]

    def __init__(self, text: str):
        self.text = text
        self.tokens = self._tokenize()

    def _tokenize(self) -> List[Token]:
        tokens = []
        pos = 0
        while pos < len(self.text):
            for regex, ttype in self._COMPILED_SPECS:
                match = regex.match(self.text, pos)
                if not match:
                    continue
                lexeme = match.group(0)
                if ttype is TokenType.VALUE:
                    tokens.append(Token(TokenType.VALUE, self._to_number(lexeme, pos)))
                elif ttype == 'LITERAL':
                    tokens.append(Token(TOKEN_LITERALS[lexeme]))
                pos = match.end()
                break
            else:
                raise LexError(f"Undefined symbol at position {pos}: '{self.text[pos:]}'")

        logger.debug(f"Tokenized '{self.text}' into {len(tokens)} tokens")
        return tokens

    @staticmethod
    def _to_number(lexeme, pos):
        try:
            return float(lexeme.replace(',', '.'))
        except ValueError:
            raise LexError(f"Malformed number at position {pos}: '{lexeme}'") from None


def tokenize(text: str) -> List[Token]:
    return Lexer(text).tokens
