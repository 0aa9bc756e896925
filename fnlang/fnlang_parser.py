"""
Recursive-descent parser for fnlang.

Consumes a TokenStream and builds the AST defined in fnlang_datatypes,
folding binary and assignment operators with precedence climbing.
"""

from typing import Callable, Dict, List, Optional, TypeVar

from fnlang.fnlang_datatypes import (
    Assign, Binary, Boolean, Call, Function, If, Keyword, Node, Number,
    ParseError, Program, String, Token, TokenKind, Variable
)
from fnlang.fnlang_lexer import InputStream, TokenStream

T = TypeVar("T")

PRECEDENCE: Dict[str, int] = {
    "=": 1,
    "||": 2,
    "&&": 3,
    "<": 7, ">": 7, "<=": 7, ">=": 7, "==": 7, "!=": 7,
    "+": 10, "-": 10,
    "*": 20, "/": 20, "%": 20,
}

ASSIGN_OPERATORS = frozenset({"="})


class Parser:
    def __init__(self, token_stream: TokenStream):
        self.tokens = token_stream

    # ------------------------------------------------------------------ helpers

    def _attach_loc(self, node: Node, token: Optional[Token]) -> Node:
        if token is not None and node.loc is None:
            node.loc = {'line': token.line, 'col': token.col}
        return node

    def _croak(self, message: str, token: Optional[Token] = None) -> ParseError:
        if token is not None:
            return ParseError(message, token.line, token.col)
        line, col = self.tokens.position()
        return ParseError(message, line, col)

    def _is_punctuation(self, punc: str) -> bool:
        tok = self.tokens.peek()
        return tok is not None and tok.kind is TokenKind.PUNCTUATION and tok.value == punc

    def _is_keyword(self, keyword: Keyword) -> bool:
        tok = self.tokens.peek()
        return tok is not None and tok.kind is TokenKind.KEYWORD and tok.value is keyword

    def _peek_operator(self) -> Optional[Token]:
        tok = self.tokens.peek()
        if tok is not None and tok.kind is TokenKind.OPERATOR:
            return tok
        return None

    def _skip_punctuation(self, punc: str) -> Token:
        if not self._is_punctuation(punc):
            raise self._croak(f"Expected punctuation '{punc}', got {self._describe(self.tokens.peek())}",
                              self.tokens.peek())
        return self.tokens.next()

    def _skip_keyword(self, keyword: Keyword) -> Token:
        if not self._is_keyword(keyword):
            raise self._croak(f"Expected keyword '{keyword.value}', got {self._describe(self.tokens.peek())}",
                              self.tokens.peek())
        return self.tokens.next()

    @staticmethod
    def _describe(token: Optional[Token]) -> str:
        return "end of input" if token is None else repr(token)

    def _precedence(self, token: Token) -> int:
        try:
            return PRECEDENCE[token.value]
        except KeyError:
            raise self._croak(f"Unknown operator: {token.value}", token) from None

    # ------------------------------------------------------------------ public

    def parse(self) -> Program:
        """program := (expression ';')* expression? -- the last ';' is optional."""
        start = self.tokens.peek()
        statements: List[Node] = []
        while not self.tokens.eof():
            statements.append(self.parse_expression())
            if not self.tokens.eof():
                self._skip_punctuation(";")
        program = Program(statements)
        program.loc = {'line': start.line if start else 1, 'col': start.col if start else 1}
        return program

    # ------------------------------------------------------------------ expressions

    def parse_expression(self) -> Node:
        result = self._maybe_binary(self._parse_atom(), 0)
        if self._is_punctuation("("):
            return self._parse_call(result)
        return result

    def _maybe_binary(self, left: Node, left_prec: int) -> Node:
        op_tok = self._peek_operator()
        if op_tok is None:
            return left
        op_prec = self._precedence(op_tok)
        if op_prec <= left_prec:
            return left
        self.tokens.next()
        operator = op_tok.value
        # '=' climbs one level lower so chains nest to the right.
        right_prec = op_prec - 1 if operator in ASSIGN_OPERATORS else op_prec
        right = self._maybe_binary(self._parse_atom(), right_prec)
        if operator in ASSIGN_OPERATORS:
            node = Assign(operator, left, right)
        else:
            node = Binary(operator, left, right)
        node.loc = left.loc or {'line': op_tok.line, 'col': op_tok.col}
        return self._maybe_binary(node, left_prec)

    def _parse_atom(self) -> Node:
        start = self.tokens.peek()
        if self._is_punctuation("("):
            self.tokens.next()
            result = self.parse_expression()
            self._skip_punctuation(")")
        elif self._is_punctuation("{"):
            result = self._parse_block()
        elif self._is_keyword(Keyword.IF):
            result = self._parse_if()
        elif self._is_keyword(Keyword.TRUE) or self._is_keyword(Keyword.FALSE):
            result = self._parse_boolean()
        elif self._is_keyword(Keyword.FN):
            self.tokens.next()
            result = self._parse_function()
        else:
            token = self.tokens.next()
            match token:
                case Token(kind=TokenKind.IDENTIFIER, value=name):
                    result = Variable(name)
                case Token(kind=TokenKind.NUMBER, value=number):
                    result = Number(number)
                case Token(kind=TokenKind.STRING, value=text):
                    result = String(text)
                case None:
                    raise self._croak("Unexpected end of input")
                case _:
                    raise self._croak(f"Unexpected token: {token!r}", token)
        self._attach_loc(result, start)
        # Chained application: f(1)(2)
        while self._is_punctuation("("):
            result = self._parse_call(result)
        return result

    def _parse_block(self) -> Node:
        start = self.tokens.peek()
        statements = self._delimited("{", "}", ";", self.parse_expression)
        match len(statements):
            case 0:
                block = self._attach_loc(Boolean(False), start)
            case 1:
                block = statements[0]
            case _:
                block = self._attach_loc(Program(statements), start)
        block.scoped = True
        return block

    def _parse_call(self, function: Node) -> Call:
        start = self.tokens.peek()
        call = Call(function, self._delimited("(", ")", ",", self.parse_expression))
        call.loc = function.loc or {'line': start.line, 'col': start.col}
        return call

    def _parse_boolean(self) -> Boolean:
        token = self.tokens.next()
        match token:
            case Token(kind=TokenKind.KEYWORD, value=Keyword.TRUE):
                return Boolean(True)
            case Token(kind=TokenKind.KEYWORD, value=Keyword.FALSE):
                return Boolean(False)
            case _:
                raise self._croak(f"Unknown bool {self._describe(token)}", token)

    def _parse_if(self) -> If:
        self._skip_keyword(Keyword.IF)
        condition = self.parse_expression()
        self._skip_keyword(Keyword.THEN)
        then = self.parse_expression()
        otherwise = None
        if self._is_keyword(Keyword.ELSE):
            self.tokens.next()
            otherwise = self.parse_expression()
        return If(condition, then, otherwise)

    def _parse_function(self) -> Function:
        parameters = self._delimited("(", ")", ",", self._parse_variable_name)
        return Function(parameters, self.parse_expression())

    def _parse_variable_name(self) -> str:
        token = self.tokens.next()
        if token is None or token.kind is not TokenKind.IDENTIFIER:
            raise self._croak(f"Expected variable name, got {self._describe(token)}", token)
        return token.value

    def _delimited(self, start: str, end: str, separator: str, parse_item: Callable[[], T]) -> List[T]:
        """Parses `start item (separator item)* separator? end`, allowing zero items."""
        items: List[T] = []
        first = True
        self._skip_punctuation(start)
        while not self.tokens.eof():
            if self._is_punctuation(end):
                break
            if first:
                first = False
            else:
                self._skip_punctuation(separator)
            if self._is_punctuation(end):
                break
            items.append(parse_item())
        self._skip_punctuation(end)
        return items


def parse_source(source: str) -> Program:
    """Runs source text through InputStream -> TokenStream -> Parser."""
    return Parser(TokenStream(InputStream(source))).parse()
