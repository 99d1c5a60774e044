from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional


class LLError(Exception):
    """Base class for interpreter errors."""


class LLParseError(LLError):
    """Raised when a source line fails validation."""

    def __init__(self, message: str, *, line: Optional[int] = None, source_line: Optional[int] = None) -> None:
        shown = line if line is not None else source_line
        super().__init__(f"Error at line {shown}: {message}" if shown is not None else f"Error: {message}")
        self.message = message
        self.line = line
        self.source_line = source_line


class LLLoadError(LLParseError):
    """Raised when the program as a whole cannot be loaded."""


@dataclass
class Token:
    type: str
    value: str
    line: int
    column: int


SEPARATORS = " \t"


def is_integer_literal(text: str) -> bool:
    digits = text[1:] if text.startswith("-") else text
    return digits != "" and digits.isascii() and digits.isdigit()


class Lexer:
    def __init__(self, text: str) -> None:
        self.text = text
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        _advance = self._advance
        text = self.text
        n = len(text)

        while self.index < n:
            ch: str = text[self.index]
            if ch in SEPARATORS or ch == "\r":
                _advance()
                continue
            if ch == "\n":
                tokens_append(Token("NEWLINE", "\n", self.line, self.column))
                _advance()
                continue
            tokens_append(self._consume_word())
        tokens_append(Token("EOF", "", self.line, self.column))
        return tokens

    def _consume_word(self) -> Token:
        line, col = self.line, self.column
        chars: List[str] = []
        while not self._eof:
            ch = self._peek()
            if ch in SEPARATORS or ch in "\r\n":
                break
            chars.append(ch)
            self._advance()
        value = "".join(chars)
        # Integer-looking words are tagged, but every word keeps its source text.
        token_type = "NUMBER" if is_integer_literal(value) else "WORD"
        return Token(token_type, value, line, col)

    @property
    def _eof(self) -> bool:
        return self.index >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.index]

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1
