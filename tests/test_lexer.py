import pytest

from kestrel.errors import ScanError
from kestrel.lexer import Scanner, TokenType


def token_types(source):
    return [t.type for t in Scanner(source).scan_tokens()]


def test_operators_prefer_longest_match():
    assert token_types("++ -- && || == != <= >=") == [
        TokenType.PLUS_PLUS, TokenType.MINUS_MINUS, TokenType.AND_AND,
        TokenType.OR_OR, TokenType.EQUAL_EQUAL, TokenType.BANG_EQUAL,
        TokenType.LESS_EQUAL, TokenType.GREATER_EQUAL, TokenType.EOF,
    ]


def test_numeric_literal_suffixes():
    tokens=Scanner("12 12L 1.5 1.5f 2d").scan_tokens()
    assert [(t.type, t.literal) for t in tokens[:-1]] == [
        (TokenType.INT_LITERAL, 12),
        (TokenType.LONG_LITERAL, 12),
        (TokenType.DOUBLE_LITERAL, 1.5),
        (TokenType.FLOAT_LITERAL, 1.5),
        (TokenType.DOUBLE_LITERAL, 2.0),
    ]


def test_keywords_and_identifiers():
    assert token_types("class Dog extends Animal var string x") == [
        TokenType.CLASS, TokenType.IDENTIFIER, TokenType.EXTENDS,
        TokenType.IDENTIFIER, TokenType.VAR, TokenType.STRING_TYPE,
        TokenType.IDENTIFIER, TokenType.EOF,
    ]


def test_string_escapes():
    token=Scanner(r'"a\tb\n\"c\""').scan_tokens()[0]
    assert token.type == TokenType.STRING
    assert token.literal == 'a\tb\n"c"'


def test_comments_are_skipped_and_lines_counted():
    tokens=Scanner("// one\n/* two\nthree */ x").scan_tokens()
    assert tokens[0].type == TokenType.IDENTIFIER
    assert tokens[0].line == 3


@pytest.mark.parametrize("source", ['"open', "a & b", "#", "/* never closed"])
def test_scan_errors(source):
    with pytest.raises(ScanError):
        Scanner(source).scan_tokens()
