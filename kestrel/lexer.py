from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List
import enum

from .errors import ScanError


class TokenType(enum.Enum):
    LEFT_PAREN="("
    RIGHT_PAREN=")"
    LEFT_BRACE="{"
    RIGHT_BRACE="}"
    COMMA=","
    DOT="."
    SEMICOLON=";"
    COLON=":"
    MINUS="-"
    MINUS_MINUS="--"
    PLUS="+"
    PLUS_PLUS="++"
    SLASH="/"
    STAR="*"

    BANG="!"
    BANG_EQUAL="!="
    EQUAL="="
    EQUAL_EQUAL="=="
    GREATER=">"
    GREATER_EQUAL=">="
    LESS="<"
    LESS_EQUAL="<="
    AND_AND="&&"
    OR_OR="||"

    IDENTIFIER="IDENT"
    STRING="STRING"
    INT_LITERAL="INT"
    LONG_LITERAL="LONG"
    FLOAT_LITERAL="FLOAT"
    DOUBLE_LITERAL="DOUBLE"

    CLASS="class"
    EXTENDS="extends"
    FUNCTION="function"
    VAR="var"
    IF="if"
    ELSE="else"
    WHILE="while"
    FOR="for"
    BREAK="break"
    RETURN="return"
    TRUE="true"
    FALSE="false"
    NULL="null"
    THIS="this"
    SUPER="super"

    INT="int"
    LONG="long"
    SHORT="short"
    FLOAT="float"
    DOUBLE="double"
    BOOLEAN="boolean"
    STRING_TYPE="string"
    VOID="void"

    EOF="EOF"

TYPE_KEYWORDS=(
    TokenType.INT, TokenType.LONG, TokenType.SHORT, TokenType.FLOAT,
    TokenType.DOUBLE, TokenType.BOOLEAN, TokenType.STRING_TYPE, TokenType.VOID,
)

KEYWORDS={t.value:t for t in [
    TokenType.CLASS, TokenType.EXTENDS, TokenType.FUNCTION, TokenType.VAR,
    TokenType.IF, TokenType.ELSE, TokenType.WHILE, TokenType.FOR, TokenType.BREAK,
    TokenType.RETURN, TokenType.TRUE, TokenType.FALSE, TokenType.NULL,
    TokenType.THIS, TokenType.SUPER, *TYPE_KEYWORDS,
]}

ESCAPES={"n":"\n", "t":"\t", "r":"\r", "\"":"\"", "\\":"\\", "0":"\0"}

@dataclass
class Token:
    type: TokenType
    lexeme: str
    literal: Any
    line: int

class Scanner:
    def __init__(self, source:str):
        self.source=source
        self.tokens: List[Token]=[]
        self.start=0
        self.current=0
        self.line=1

    def scan_tokens(self)->List[Token]:
        while not self.is_at_end():
            self.start=self.current
            self.scan_token()
        self.tokens.append(Token(TokenType.EOF,"",None,self.line))
        return self.tokens

    def is_at_end(self)->bool:
        return self.current>=len(self.source)

    def advance(self)->str:
        ch=self.source[self.current]
        self.current+=1
        return ch

    def add_token(self, type_:TokenType, literal:Any=None):
        text=self.source[self.start:self.current]
        self.tokens.append(Token(type_, text, literal, self.line))

    def match(self, expected:str)->bool:
        if self.is_at_end(): return False
        if self.source[self.current]!=expected: return False
        self.current+=1
        return True

    def peek(self)->str:
        if self.is_at_end(): return "\0"
        return self.source[self.current]

    def peek_next(self)->str:
        if self.current+1>=len(self.source): return "\0"
        return self.source[self.current+1]

    def scan_token(self):
        c=self.advance()
        if c=="(":
            self.add_token(TokenType.LEFT_PAREN)
        elif c==")":
            self.add_token(TokenType.RIGHT_PAREN)
        elif c=="{":
            self.add_token(TokenType.LEFT_BRACE)
        elif c=="}":
            self.add_token(TokenType.RIGHT_BRACE)
        elif c==",":
            self.add_token(TokenType.COMMA)
        elif c==".":
            self.add_token(TokenType.DOT)
        elif c==";":
            self.add_token(TokenType.SEMICOLON)
        elif c==":":
            self.add_token(TokenType.COLON)
        elif c=="-":
            self.add_token(TokenType.MINUS_MINUS if self.match("-") else TokenType.MINUS)
        elif c=="+":
            self.add_token(TokenType.PLUS_PLUS if self.match("+") else TokenType.PLUS)
        elif c=="*":
            self.add_token(TokenType.STAR)
        elif c=="!":
            self.add_token(TokenType.BANG_EQUAL if self.match("=") else TokenType.BANG)
        elif c=="=":
            self.add_token(TokenType.EQUAL_EQUAL if self.match("=") else TokenType.EQUAL)
        elif c=="<":
            self.add_token(TokenType.LESS_EQUAL if self.match("=") else TokenType.LESS)
        elif c==">":
            self.add_token(TokenType.GREATER_EQUAL if self.match("=") else TokenType.GREATER)
        elif c=="&":
            if not self.match("&"):
                raise ScanError(f"[line {self.line}] Unexpected character: '&' (did you mean '&&'?)")
            self.add_token(TokenType.AND_AND)
        elif c=="|":
            if not self.match("|"):
                raise ScanError(f"[line {self.line}] Unexpected character: '|' (did you mean '||'?)")
            self.add_token(TokenType.OR_OR)
        elif c=="/":
            if self.match("/"):
                while self.peek()!="\n" and not self.is_at_end():
                    self.advance()
            elif self.match("*"):
                self.block_comment()
            else:
                self.add_token(TokenType.SLASH)
        elif c in (" ", "\r", "\t"):
            return
        elif c=="\n":
            self.line+=1
        elif c=="\"":
            self.string()
        else:
            if c.isdigit():
                self.number()
            elif c.isalpha() or c=="_":
                self.identifier()
            else:
                raise ScanError(f"[line {self.line}] Unexpected character: {c!r}")

    def block_comment(self):
        start_line=self.line
        while not (self.peek()=="*" and self.peek_next()=="/"):
            if self.is_at_end():
                raise ScanError(f"[line {start_line}] Unterminated comment.")
            if self.advance()=="\n":
                self.line+=1
        self.current+=2

    def string(self):
        chars=[]
        while self.peek()!="\"" and not self.is_at_end():
            ch=self.advance()
            if ch=="\n":
                self.line+=1
            elif ch=="\\":
                if self.is_at_end():
                    break
                escaped=self.advance()
                if escaped not in ESCAPES:
                    raise ScanError(f"[line {self.line}] Invalid escape sequence: '\\{escaped}'.")
                ch=ESCAPES[escaped]
            chars.append(ch)
        if self.is_at_end():
            raise ScanError(f"[line {self.line}] Unterminated string.")
        self.advance() # closing "
        self.add_token(TokenType.STRING, "".join(chars))

    def number(self):
        while self.peek().isdigit():
            self.advance()
        is_fraction=False
        if self.peek()=="." and self.peek_next().isdigit():
            is_fraction=True
            self.advance()
            while self.peek().isdigit():
                self.advance()
        digits=self.source[self.start:self.current]
        suffix=self.peek()
        if suffix in ("f", "F"):
            self.advance()
            self.add_token(TokenType.FLOAT_LITERAL, float(digits))
        elif suffix in ("d", "D"):
            self.advance()
            self.add_token(TokenType.DOUBLE_LITERAL, float(digits))
        elif suffix in ("l", "L") and not is_fraction:
            self.advance()
            self.add_token(TokenType.LONG_LITERAL, int(digits))
        elif is_fraction:
            self.add_token(TokenType.DOUBLE_LITERAL, float(digits))
        else:
            self.add_token(TokenType.INT_LITERAL, int(digits))

    def identifier(self):
        while self.peek().isalnum() or self.peek()=="_":
            self.advance()
        text=self.source[self.start:self.current]
        type_=KEYWORDS.get(text, TokenType.IDENTIFIER)
        self.add_token(type_)
