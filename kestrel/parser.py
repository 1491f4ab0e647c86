from __future__ import annotations
from typing import List, Union

from .errors import ParseError
from .lexer import Token, TokenType, TYPE_KEYWORDS
from .nodes import (
    Assign, Binary, BlockStmt, BreakStmt, Call, ClassStmt, Declarator, Expr,
    ExpressionStmt, ForEachStmt, ForStmt, FunctionStmt, Get, Grouping, IfStmt,
    Invoke, Literal, Logical, Name, Param, Postfix, Program, ReturnStmt, Stmt,
    Super, This, TypeRef, Unary, VarStmt, WhileStmt,
)
from .types import PrimitiveType

LITERAL_TYPES={
    TokenType.INT_LITERAL: PrimitiveType.INTEGER,
    TokenType.LONG_LITERAL: PrimitiveType.LONG,
    TokenType.FLOAT_LITERAL: PrimitiveType.FLOAT,
    TokenType.DOUBLE_LITERAL: PrimitiveType.DOUBLE,
    TokenType.STRING: PrimitiveType.STRING,
}

MAX_ARGUMENTS=255


class Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens=tokens
        self.current=0

    def parse(self)->Program:
        statements=[]
        while not self.is_at_end():
            statements.append(self.declaration())
        return Program(statements)

    # ---------------------------
    # Declarations
    # ---------------------------

    def declaration(self)->Stmt:
        if self.match(TokenType.CLASS):
            return self.class_declaration()
        if self.starts_function():
            self.advance()
            return self.function()
        if self.starts_var_declaration():
            return self.var_declaration()
        return self.statement()

    def starts_function(self)->bool:
        # function f(...) or function int f(...); "function f = g;" is a variable
        if not self.check(TokenType.FUNCTION):
            return False
        if self.peek_at(1).type==TokenType.IDENTIFIER and self.peek_at(2).type==TokenType.LEFT_PAREN:
            return True
        return (self.peek_at(1).type in (*TYPE_KEYWORDS, TokenType.IDENTIFIER, TokenType.FUNCTION)
                and self.peek_at(2).type==TokenType.IDENTIFIER
                and self.peek_at(3).type==TokenType.LEFT_PAREN)

    def starts_var_declaration(self)->bool:
        if self.check(TokenType.VAR):
            return True
        if self.check(*TYPE_KEYWORDS) or self.check(TokenType.FUNCTION):
            return True
        # "Dog d" : class-typed declaration
        return self.check(TokenType.IDENTIFIER) and self.peek_at(1).type==TokenType.IDENTIFIER

    def class_declaration(self)->Stmt:
        name=self.consume(TokenType.IDENTIFIER, "Expect class name.")
        superclass=None
        if self.match(TokenType.EXTENDS):
            superclass=self.consume(TokenType.IDENTIFIER, "Expect superclass name.")
        self.consume(TokenType.LEFT_BRACE, "Expect '{' before class body.")
        members=[]
        while not self.check(TokenType.RIGHT_BRACE) and not self.is_at_end():
            if self.starts_function():
                self.advance()
                members.append(self.function())
            elif self.starts_var_declaration():
                members.append(self.var_declaration())
            else:
                raise self.error(self.peek(), "Expect field or method declaration.")
        self.consume(TokenType.RIGHT_BRACE, "Expect '}' after class body.")
        return ClassStmt(name, superclass, members, line=name.line)

    def function(self)->FunctionStmt:
        keyword=self.previous()
        return_type=None
        # 'function int add(...)': a return type precedes the name
        if not self.check_next(TokenType.LEFT_PAREN):
            return_type=self.type_ref("Expect return type.")
        name=self.consume(TokenType.IDENTIFIER, "Expect function name.")
        self.consume(TokenType.LEFT_PAREN, "Expect '(' after function name.")
        params=[]
        if not self.check(TokenType.RIGHT_PAREN):
            while True:
                if len(params)>=MAX_ARGUMENTS:
                    raise self.error(self.peek(), f"Can't have more than {MAX_ARGUMENTS} parameters.")
                params.append(self.param())
                if not self.match(TokenType.COMMA):
                    break
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after parameters.")
        brace=self.consume(TokenType.LEFT_BRACE, "Expect '{' before function body.")
        body=BlockStmt(self.block(), line=brace.line)
        return FunctionStmt(return_type, name, params, body, line=keyword.line)

    def param(self)->Param:
        type_ref=None
        if self.match(TokenType.VAR):
            pass
        elif not self.check_next(TokenType.COMMA, TokenType.RIGHT_PAREN):
            type_ref=self.type_ref("Expect parameter type.")
        name=self.consume(TokenType.IDENTIFIER, "Expect parameter name.")
        return Param(type_ref, name, line=name.line)

    def type_ref(self, message:str)->TypeRef:
        if self.match(*TYPE_KEYWORDS) or self.match(TokenType.FUNCTION, TokenType.IDENTIFIER):
            token=self.previous()
            return TypeRef(token, line=token.line)
        raise self.error(self.peek(), message)

    def var_declaration(self)->VarStmt:
        start=self.peek()
        type_ref=None
        if not self.match(TokenType.VAR):
            type_ref=self.type_ref("Expect type or 'var'.")
        declarators=[]
        while True:
            name=self.consume(TokenType.IDENTIFIER, "Expect variable name.")
            initializer=None
            if self.match(TokenType.EQUAL):
                initializer=self.expression()
            declarators.append(Declarator(name, initializer, line=name.line))
            if not self.match(TokenType.COMMA):
                break
        self.consume(TokenType.SEMICOLON, "Expect ';' after variable declaration.")
        return VarStmt(type_ref, declarators, line=start.line)

    # ---------------------------
    # Statements
    # ---------------------------

    def statement(self)->Stmt:
        if self.match(TokenType.LEFT_BRACE):
            brace=self.previous()
            return BlockStmt(self.block(), line=brace.line)
        if self.match(TokenType.IF):
            return self.if_statement()
        if self.match(TokenType.WHILE):
            return self.while_statement()
        if self.match(TokenType.FOR):
            return self.for_statement()
        if self.match(TokenType.BREAK):
            keyword=self.previous()
            self.consume(TokenType.SEMICOLON, "Expect ';' after 'break'.")
            return BreakStmt(keyword, line=keyword.line)
        if self.match(TokenType.RETURN):
            return self.return_statement()
        if self.match(TokenType.SEMICOLON):
            return BlockStmt([], line=self.previous().line)
        return self.expression_statement()

    def return_statement(self)->Stmt:
        keyword=self.previous()
        value=None
        if not self.check(TokenType.SEMICOLON):
            value=self.expression()
        self.consume(TokenType.SEMICOLON, "Expect ';' after return value.")
        return ReturnStmt(keyword, value, line=keyword.line)

    def if_statement(self)->Stmt:
        keyword=self.previous()
        self.consume(TokenType.LEFT_PAREN, "Expect '(' after 'if'.")
        condition=self.expression()
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after if condition.")
        then_branch=self.statement()
        else_branch=None
        if self.match(TokenType.ELSE):
            else_branch=self.statement()
        return IfStmt(condition, then_branch, else_branch, line=keyword.line)

    def while_statement(self)->Stmt:
        keyword=self.previous()
        self.consume(TokenType.LEFT_PAREN, "Expect '(' after 'while'.")
        condition=self.expression()
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after condition.")
        body=self.statement()
        return WhileStmt(condition, body, line=keyword.line)

    def for_statement(self)->Stmt:
        keyword=self.previous()
        self.consume(TokenType.LEFT_PAREN, "Expect '(' after 'for'.")
        if self.starts_enhanced_for():
            return self.enhanced_for(keyword)
        initializer: Union[VarStmt, List[Expr], None]=None
        if self.match(TokenType.SEMICOLON):
            pass
        elif self.starts_var_declaration():
            initializer=self.var_declaration()
        else:
            initializer=self.expression_list()
            self.consume(TokenType.SEMICOLON, "Expect ';' after loop initializer.")
        condition=None
        if not self.check(TokenType.SEMICOLON):
            condition=self.expression()
        self.consume(TokenType.SEMICOLON, "Expect ';' after loop condition.")
        updates=[]
        if not self.check(TokenType.RIGHT_PAREN):
            updates=self.expression_list()
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after for clauses.")
        body=self.statement()
        return ForStmt(initializer, condition, updates, body, line=keyword.line)

    def starts_enhanced_for(self)->bool:
        # for (var x : items) / for (int x : items)
        if not self.starts_var_declaration():
            return False
        return self.peek_at(1).type==TokenType.IDENTIFIER and self.peek_at(2).type==TokenType.COLON

    def enhanced_for(self, keyword:Token)->Stmt:
        type_ref=None
        if not self.match(TokenType.VAR):
            type_ref=self.type_ref("Expect type or 'var'.")
        name=self.consume(TokenType.IDENTIFIER, "Expect loop variable name.")
        self.consume(TokenType.COLON, "Expect ':' after loop variable.")
        iterable=self.expression()
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after for clauses.")
        body=self.statement()
        return ForEachStmt(type_ref, name, iterable, body, line=keyword.line)

    def block(self)->List[Stmt]:
        statements=[]
        while not self.check(TokenType.RIGHT_BRACE) and not self.is_at_end():
            statements.append(self.declaration())
        self.consume(TokenType.RIGHT_BRACE, "Expect '}' after block.")
        return statements

    def expression_statement(self)->Stmt:
        expr=self.expression()
        self.consume(TokenType.SEMICOLON, "Expect ';' after expression.")
        return ExpressionStmt(expr, line=expr.line)

    def expression_list(self)->List[Expr]:
        exprs=[self.expression()]
        while self.match(TokenType.COMMA):
            exprs.append(self.expression())
        return exprs

    # ---------------------------
    # Expressions
    # ---------------------------

    def expression(self)->Expr:
        return self.assignment()

    def assignment(self)->Expr:
        expr=self.or_()
        if self.match(TokenType.EQUAL):
            equals=self.previous()
            value=self.assignment()
            if isinstance(expr, (Name, Get)):
                return Assign(expr, value, line=equals.line)
            raise self.error(equals, "Invalid assignment target.")
        return expr

    def or_(self)->Expr:
        expr=self.and_()
        while self.match(TokenType.OR_OR):
            op=self.previous()
            right=self.and_()
            expr=Logical(expr, op, right, line=op.line)
        return expr

    def and_(self)->Expr:
        expr=self.equality()
        while self.match(TokenType.AND_AND):
            op=self.previous()
            right=self.equality()
            expr=Logical(expr, op, right, line=op.line)
        return expr

    def equality(self)->Expr:
        expr=self.comparison()
        while self.match(TokenType.BANG_EQUAL, TokenType.EQUAL_EQUAL):
            op=self.previous()
            right=self.comparison()
            expr=Binary(expr, op, right, line=op.line)
        return expr

    def comparison(self)->Expr:
        expr=self.term()
        while self.match(TokenType.GREATER, TokenType.GREATER_EQUAL, TokenType.LESS, TokenType.LESS_EQUAL):
            op=self.previous()
            right=self.term()
            expr=Binary(expr, op, right, line=op.line)
        return expr

    def term(self)->Expr:
        expr=self.factor()
        while self.match(TokenType.MINUS, TokenType.PLUS):
            op=self.previous()
            right=self.factor()
            expr=Binary(expr, op, right, line=op.line)
        return expr

    def factor(self)->Expr:
        expr=self.unary()
        while self.match(TokenType.SLASH, TokenType.STAR):
            op=self.previous()
            right=self.unary()
            expr=Binary(expr, op, right, line=op.line)
        return expr

    def unary(self)->Expr:
        if self.match(TokenType.BANG, TokenType.MINUS, TokenType.PLUS_PLUS, TokenType.MINUS_MINUS):
            op=self.previous()
            operand=self.unary()
            if op.type in (TokenType.PLUS_PLUS, TokenType.MINUS_MINUS) and not isinstance(operand, (Name, Get)):
                raise self.error(op, f"Invalid operand for '{op.lexeme}'.")
            return Unary(op, operand, line=op.line)
        return self.postfix()

    def postfix(self)->Expr:
        expr=self.call()
        while self.match(TokenType.PLUS_PLUS, TokenType.MINUS_MINUS):
            op=self.previous()
            if not isinstance(expr, (Name, Get)):
                raise self.error(op, f"Invalid operand for '{op.lexeme}'.")
            expr=Postfix(expr, op, line=op.line)
        return expr

    def call(self)->Expr:
        expr=self.primary()
        while self.match(TokenType.DOT):
            name=self.consume(TokenType.IDENTIFIER, "Expect property name after '.'.")
            if self.match(TokenType.LEFT_PAREN):
                expr=Invoke(expr, self.finish_call(name), line=name.line)
            else:
                expr=Get(expr, name, line=name.line)
        if self.check(TokenType.LEFT_PAREN):
            raise self.error(self.peek(), "Can only call functions by name.")
        return expr

    def finish_call(self, name:Token)->Call:
        args=[]
        if not self.check(TokenType.RIGHT_PAREN):
            while True:
                if len(args)>=MAX_ARGUMENTS:
                    raise self.error(self.peek(), f"Can't have more than {MAX_ARGUMENTS} arguments.")
                args.append(self.expression())
                if not self.match(TokenType.COMMA):
                    break
        self.consume(TokenType.RIGHT_PAREN, "Expect ')' after arguments.")
        return Call(name, args, line=name.line)

    def primary(self)->Expr:
        token=self.peek()
        if self.match(TokenType.FALSE):
            return Literal(False, PrimitiveType.BOOLEAN, line=token.line)
        if self.match(TokenType.TRUE):
            return Literal(True, PrimitiveType.BOOLEAN, line=token.line)
        if self.match(TokenType.NULL):
            return Literal(None, PrimitiveType.NULL, line=token.line)
        if token.type in LITERAL_TYPES:
            self.advance()
            return Literal(token.literal, LITERAL_TYPES[token.type], line=token.line)
        if self.match(TokenType.THIS):
            return This(token, line=token.line)
        if self.match(TokenType.SUPER):
            return Super(token, line=token.line)
        if self.match(TokenType.IDENTIFIER):
            if self.match(TokenType.LEFT_PAREN):
                return self.finish_call(token)
            return Name(token, line=token.line)
        if self.match(TokenType.LEFT_PAREN):
            expr=self.expression()
            self.consume(TokenType.RIGHT_PAREN, "Expect ')' after expression.")
            return Grouping(expr, line=token.line)
        raise self.error(token, "Expect expression.")

    # helpers
    def match(self, *types:TokenType)->bool:
        for t in types:
            if self.check(t):
                self.advance()
                return True
        return False

    def consume(self, type_:TokenType, message:str)->Token:
        if self.check(type_):
            return self.advance()
        raise self.error(self.peek(), message)

    def check(self, *types:TokenType)->bool:
        if self.is_at_end(): return False
        return self.peek().type in types

    def check_next(self, *types:TokenType)->bool:
        return self.peek_at(1).type in types

    def advance(self)->Token:
        if not self.is_at_end():
            self.current+=1
        return self.previous()

    def is_at_end(self)->bool:
        return self.peek().type==TokenType.EOF

    def peek(self)->Token:
        return self.tokens[self.current]

    def peek_at(self, offset:int)->Token:
        index=min(self.current+offset, len(self.tokens)-1)
        return self.tokens[index]

    def previous(self)->Token:
        return self.tokens[self.current-1]

    def error(self, token:Token, message:str)->ParseError:
        where="end" if token.type==TokenType.EOF else f"'{token.lexeme}'"
        return ParseError(f"[line {token.line}] Error at {where}: {message}")


def parse(tokens:List[Token])->Program:
    return Parser(tokens).parse()
