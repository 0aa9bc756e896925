import pytest

from fnlang.fnlang_datatypes import Keyword, LexicalError, Token, TokenKind
from fnlang.fnlang_lexer import EOF_MARKER, InputStream, TokenStream, tokenize


# --- InputStream ---

def test_input_stream_next_peek_eof():
    stream = InputStream("ab")
    assert stream.peek() == "a"
    assert stream.next() == "a"
    assert stream.peek() == "b"
    assert not stream.eof()
    assert stream.next() == "b"
    assert stream.eof()
    assert stream.next() == EOF_MARKER
    assert stream.peek() == EOF_MARKER


def test_input_stream_tracks_line_and_column():
    stream = InputStream("ab\ncd")
    assert stream.position() == (1, 1)
    stream.next()
    stream.next()
    assert stream.position() == (1, 3)
    stream.next()  # newline
    assert stream.position() == (2, 1)
    stream.next()
    assert stream.position() == (2, 2)


def test_input_stream_croak_is_tagged_with_position():
    stream = InputStream("x\ny")
    stream.next()
    stream.next()
    err = stream.croak("boom")
    assert isinstance(err, LexicalError)
    assert (err.line, err.col) == (2, 1)
    assert str(err) == "boom (2:1)"


# --- TokenStream ---

def kinds_and_values(source):
    return [(t.kind, t.value) for t in tokenize(source)]


TOKEN_CASES = [
    ("identifier", "foo_1", [(TokenKind.IDENTIFIER, "foo_1")]),
    ("integer", "42", [(TokenKind.NUMBER, 42.0)]),
    ("decimal", "3.25", [(TokenKind.NUMBER, 3.25)]),
    ("string", '"hi there"', [(TokenKind.STRING, "hi there")]),
    ("punctuation", "(){};,", [(TokenKind.PUNCTUATION, c) for c in "(){};,"]),
    ("operator_run", "<=", [(TokenKind.OPERATOR, "<=")]),
    ("not_equal", "a != b", [
        (TokenKind.IDENTIFIER, "a"), (TokenKind.OPERATOR, "!="), (TokenKind.IDENTIFIER, "b"),
    ]),
    ("keywords", "if then else fn true false", [
        (TokenKind.KEYWORD, Keyword.IF),
        (TokenKind.KEYWORD, Keyword.THEN),
        (TokenKind.KEYWORD, Keyword.ELSE),
        (TokenKind.KEYWORD, Keyword.FN),
        (TokenKind.KEYWORD, Keyword.TRUE),
        (TokenKind.KEYWORD, Keyword.FALSE),
    ]),
    ("keyword_prefix_is_identifier", "iffy", [(TokenKind.IDENTIFIER, "iffy")]),
    ("assignment", 'x = 12.5 + "s"', [
        (TokenKind.IDENTIFIER, "x"),
        (TokenKind.OPERATOR, "="),
        (TokenKind.NUMBER, 12.5),
        (TokenKind.OPERATOR, "+"),
        (TokenKind.STRING, "s"),
    ]),
    ("comment_skipped", "# a comment\n1 # trailing\n", [(TokenKind.NUMBER, 1.0)]),
    ("only_whitespace", "  \n\t ", []),
]


@pytest.mark.parametrize("source, expected", [c[1:] for c in TOKEN_CASES], ids=[c[0] for c in TOKEN_CASES])
def test_tokenize(source, expected):
    assert kinds_and_values(source) == expected


def test_string_escapes_are_copied_uncooked():
    [tok] = tokenize(r'"a\"b\n\\"')
    assert tok.value == 'a"bn\\'


def test_unterminated_string_reads_to_end_of_input():
    [tok] = tokenize('"abc')
    assert tok == Token(TokenKind.STRING, "abc")


def test_token_positions():
    a, b = tokenize("a\n  b")
    assert (a.line, a.col) == (1, 1)
    assert (b.line, b.col) == (2, 3)


def test_token_equality_ignores_position():
    assert Token(TokenKind.NUMBER, 1.0, 1, 1) == Token(TokenKind.NUMBER, 1.0, 9, 9)
    assert Token(TokenKind.NUMBER, 1.0) != Token(TokenKind.STRING, "1")


def test_peek_does_not_consume():
    stream = TokenStream(InputStream("a b"))
    assert stream.peek() == stream.peek()
    assert stream.next().value == "a"
    assert stream.next().value == "b"
    assert stream.next() is None
    assert stream.eof()


def test_unhandled_character_raises_with_position():
    with pytest.raises(LexicalError) as excinfo:
        tokenize("a @")
    assert "Cannot handle char: '@'" in excinfo.value.message
    assert (excinfo.value.line, excinfo.value.col) == (1, 3)


def test_arithmetic_token_sequence():
    assert tokenize("2 + 3 * 4") == [
        Token(TokenKind.NUMBER, 2.0),
        Token(TokenKind.OPERATOR, "+"),
        Token(TokenKind.NUMBER, 3.0),
        Token(TokenKind.OPERATOR, "*"),
        Token(TokenKind.NUMBER, 4.0),
    ]


def test_second_dot_ends_number():
    stream = TokenStream(InputStream("1.2.3"))
    assert stream.next() == Token(TokenKind.NUMBER, 1.2)
    with pytest.raises(LexicalError) as excinfo:
        stream.next()
    assert "Cannot handle char: '.'" in excinfo.value.message
    assert (excinfo.value.line, excinfo.value.col) == (1, 4)
