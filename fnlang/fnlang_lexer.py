"""
Character cursor and tokenizer for fnlang source text.

`InputStream` walks the raw characters and keeps line/column counters for
diagnostics. `TokenStream` turns that into a stream of `Token`s with exactly
one token of lookahead.
"""

from typing import Callable, Optional, Tuple

from fnlang.fnlang_datatypes import KEYWORDS, LexicalError, Token, TokenKind

EOF_MARKER = "\0"

PUNCTUATION = frozenset(",;(){}[]")
OPERATOR_CHARS = frozenset("+-*/%=|&<>!")
DIGITS = frozenset("0123456789")


def is_identifier_start(c: str) -> bool:
    return c.isalpha() or c == "_"


def is_identifier_char(c: str) -> bool:
    return c.isalnum() or c == "_"


class InputStream:
    """Character-level cursor over source text."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 0  # characters consumed on the current line

    def next(self) -> str:
        """Consumes one character, or returns EOF_MARKER at end of input."""
        if self.pos >= len(self.source):
            return EOF_MARKER
        c = self.source[self.pos]
        self.pos += 1
        if c == "\n":
            self.line += 1
            self.col = 0
        else:
            self.col += 1
        return c

    def peek(self) -> str:
        if self.pos >= len(self.source):
            return EOF_MARKER
        return self.source[self.pos]

    def eof(self) -> bool:
        return self.pos >= len(self.source)

    def position(self) -> Tuple[int, int]:
        """(line, col) of the next unread character, both 1-based."""
        return self.line, self.col + 1

    def croak(self, message: str) -> LexicalError:
        line, col = self.position()
        return LexicalError(message, line, col)


class TokenStream:
    """One-token-lookahead tokenizer over an InputStream."""

    def __init__(self, input_stream: InputStream):
        self.input = input_stream
        self._current: Optional[Token] = None

    def peek(self) -> Optional[Token]:
        if self._current is None:
            self._current = self._read_next()
        return self._current

    def next(self) -> Optional[Token]:
        token = self._current
        self._current = None
        if token is not None:
            return token
        return self._read_next()

    def eof(self) -> bool:
        return self.peek() is None

    def position(self) -> Tuple[int, int]:
        """Location of the buffered token if any, else of the input cursor."""
        if self._current is not None:
            return self._current.line, self._current.col
        return self.input.position()

    # ------------------------------------------------------------------ scanning

    def _read_while(self, predicate: Callable[[str], bool]) -> str:
        chars = []
        while not self.input.eof() and predicate(self.input.peek()):
            chars.append(self.input.next())
        return "".join(chars)

    def _read_next(self) -> Optional[Token]:
        while True:
            self._read_while(str.isspace)
            if self.input.eof():
                return None
            if self.input.peek() != "#":
                break
            self._skip_comment()

        line, col = self.input.position()
        c = self.input.peek()
        if c == '"':
            return Token(TokenKind.STRING, self._read_escaped('"'), line, col)
        if c in DIGITS:
            return Token(TokenKind.NUMBER, self._read_number(), line, col)
        if is_identifier_start(c):
            return self._read_identifier(line, col)
        if c in PUNCTUATION:
            return Token(TokenKind.PUNCTUATION, self.input.next(), line, col)
        if c in OPERATOR_CHARS:
            return Token(TokenKind.OPERATOR, self._read_while(OPERATOR_CHARS.__contains__), line, col)
        raise self.input.croak(f"Cannot handle char: {c!r}")

    def _skip_comment(self):
        self._read_while(lambda c: c != "\n")

    def _read_number(self) -> float:
        has_dot = False

        def accept(c: str) -> bool:
            nonlocal has_dot
            if c == ".":
                if has_dot:
                    return False
                has_dot = True
                return True
            return c in DIGITS

        text = self._read_while(accept)
        try:
            return float(text)
        except ValueError:
            raise self.input.croak(f"Malformed number literal: {text!r}") from None

    def _read_identifier(self, line: int, col: int) -> Token:
        text = self._read_while(is_identifier_char)
        keyword = KEYWORDS.get(text)
        if keyword is not None:
            return Token(TokenKind.KEYWORD, keyword, line, col)
        return Token(TokenKind.IDENTIFIER, text, line, col)

    def _read_escaped(self, end: str) -> str:
        # Escapes are copied through uncooked: \n yields a plain "n".
        escaped = False
        chars = []
        self.input.next()
        while not self.input.eof():
            c = self.input.next()
            if escaped:
                chars.append(c)
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == end:
                break
            else:
                chars.append(c)
        return "".join(chars)


def tokenize(source: str) -> list:
    """Lexes a whole source string into a list of tokens."""
    stream = TokenStream(InputStream(source))
    tokens = []
    while not stream.eof():
        tokens.append(stream.next())
    return tokens
