"""plox parser — recursive descent, one method per grammar production."""

from __future__ import annotations

from .ast import (
    Assign,
    Binary,
    BlockStmt,
    Call,
    ClassDecl,
    Expr,
    ExprStmt,
    FieldDecl,
    FunDecl,
    Get,
    Grouping,
    IfStmt,
    LetStmt,
    Literal,
    Logical,
    Param,
    Pos,
    PrintStmt,
    Program,
    ReturnStmt,
    Set,
    Stmt,
    Super,
    This,
    Unary,
    Variable,
    WhileStmt,
)
from .tokens import TK_EOF, TK_IDENT, TK_NUMBER, TK_OP, TK_STRING, Token

MAX_ARGS = 255

EQUALITY_OPS: set[str] = {"==", "!="}

COMPARE_OPS: set[str] = {">", ">=", "<", "<="}

TERM_OPS: set[str] = {"+", "-", "<>"}

FACTOR_OPS: set[str] = {"*", "/"}

# Tokens that begin a declaration or statement; recovery stops in front of them.
SYNC_KEYWORDS: set[str] = {
    "class",
    "fun",
    "let",
    "for",
    "if",
    "while",
    "print",
    "return",
}


class ParseError(Exception):
    """Parse error with location info."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


def _describe(tok: Token) -> str:
    if tok.type == TK_EOF:
        return "end of input"
    return "'" + tok.value + "'"


class Parser:
    """Recursive descent parser for plox.

    Syntax errors are collected in ``errors``; after each one the parser skips
    to the next statement boundary and keeps going.
    """

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0
        self.errors: list[ParseError] = []

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def previous(self) -> Token:
        return self.tokens[self.pos - 1]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type != TK_EOF:
            self.pos += 1
        return tok

    def at(self, value: str) -> bool:
        tok = self.current()
        return tok.value == value and tok.type not in (TK_STRING, TK_IDENT)

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def expect(self, value: str) -> Token:
        if not self.at(value):
            raise self.error(
                "expected '" + value + "', got " + _describe(self.current())
            )
        return self.advance()

    def expect_ident(self) -> Token:
        tok = self.current()
        if tok.type != TK_IDENT:
            raise self.error("expected identifier, got " + _describe(tok))
        return self.advance()

    def error(self, msg: str) -> ParseError:
        tok = self.current()
        return ParseError(msg, tok.line, tok.col)

    def report(self, msg: str, tok: Token) -> None:
        """Record an error without unwinding the current production."""
        self.errors.append(ParseError(msg, tok.line, tok.col))

    def _pos(self) -> Pos:
        tok = self.current()
        return Pos(tok.line, tok.col)

    def _tok_pos(self, tok: Token) -> Pos:
        return Pos(tok.line, tok.col)

    def synchronize(self) -> None:
        """Discard tokens up to the next likely statement boundary."""
        self.advance()
        while not self.at_type(TK_EOF):
            prev = self.previous()
            if prev.type == TK_OP and prev.value == ";":
                return
            if self.current().type in SYNC_KEYWORDS:
                return
            self.advance()

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> Program:
        stmts: list[Stmt] = []
        while not self.at_type(TK_EOF):
            stmt = self.parse_decl()
            if stmt is not None:
                stmts.append(stmt)
        return Program(stmts)

    def parse_repl_input(self) -> tuple[Program, Expr | None]:
        """Parse one REPL entry.

        A lone expression (trailing ';' optional) comes back as the second
        element so the caller can echo its value.
        """
        start = self.pos
        try:
            expr = self.parse_expr()
            if self.at(";"):
                self.advance()
            if self.at_type(TK_EOF) and not self.errors:
                return Program([ExprStmt(expr.pos, expr)]), expr
        except ParseError:
            pass
        self.pos = start
        self.errors = []
        return self.parse_program(), None

    def parse_decl(self) -> Stmt | None:
        try:
            if self.at("class"):
                return self.parse_class_decl()
            if self.at("fun"):
                self.advance()
                return self.parse_function(pub=False)
            if self.at("let"):
                return self.parse_let_stmt()
            return self.parse_stmt()
        except ParseError as e:
            self.errors.append(e)
            self.synchronize()
            return None

    def parse_class_decl(self) -> ClassDecl:
        """class Name ( expands Parent )? { field* method* }"""
        pos = self._pos()
        self.expect("class")
        name_tok = self.expect_ident()
        superclass: Variable | None = None
        if self.at("expands"):
            self.advance()
            parent_tok = self.expect_ident()
            superclass = Variable(self._tok_pos(parent_tok), parent_tok.value)
        self.expect("{")
        fields: list[FieldDecl] = []
        methods: list[FunDecl] = []
        while not self.at("}") and not self.at_type(TK_EOF):
            pub = False
            if self.at("pub"):
                self.advance()
                pub = True
            if self.at_type(TK_IDENT) and self.tokens[self.pos + 1].value == "(":
                methods.append(self.parse_function(pub=pub))
                continue
            member_tok = self.expect_ident()
            if methods:
                self.report("fields must be declared before methods", member_tok)
            value: Expr | None = None
            if self.at("="):
                self.advance()
                value = self.parse_expr()
            self.expect(";")
            fields.append(
                FieldDecl(self._tok_pos(member_tok), member_tok.value, value, pub)
            )
        self.expect("}")
        return ClassDecl(pos, name_tok.value, superclass, fields, methods)

    def parse_function(self, *, pub: bool) -> FunDecl:
        """IDENT ( params? ) block. Any leading 'fun' keyword is already consumed."""
        name_tok = self.expect_ident()
        self.expect("(")
        params = self.parse_param_list()
        self.expect(")")
        if not self.at("{"):
            raise self.error(
                "expected '{' before function body, got " + _describe(self.current())
            )
        body = self.parse_block()
        return FunDecl(self._tok_pos(name_tok), name_tok.value, params, body, pub)

    def parse_param_list(self) -> list[Param]:
        params: list[Param] = []
        if self.at(")"):
            return params
        while True:
            if len(params) >= MAX_ARGS:
                self.report(
                    "can't have more than " + str(MAX_ARGS) + " parameters",
                    self.current(),
                )
            tok = self.expect_ident()
            params.append(Param(self._tok_pos(tok), tok.value))
            if not self.at(","):
                return params
            self.advance()

    def parse_block(self) -> list[Stmt]:
        self.expect("{")
        stmts: list[Stmt] = []
        while not self.at("}") and not self.at_type(TK_EOF):
            stmt = self.parse_decl()
            if stmt is not None:
                stmts.append(stmt)
        self.expect("}")
        return stmts

    # ── Statements ───────────────────────────────────────────

    def parse_let_stmt(self) -> LetStmt:
        pos = self._pos()
        self.expect("let")
        name_tok = self.expect_ident()
        value: Expr | None = None
        if self.at("="):
            self.advance()
            value = self.parse_expr()
        self.expect(";")
        return LetStmt(pos, name_tok.value, value)

    def parse_stmt(self) -> Stmt:
        if self.at("print"):
            return self.parse_print_stmt()
        if self.at("return"):
            return self.parse_return_stmt()
        if self.at("if"):
            return self.parse_if_stmt()
        if self.at("while"):
            return self.parse_while_stmt()
        if self.at("for"):
            return self.parse_for_stmt()
        if self.at("{"):
            pos = self._pos()
            return BlockStmt(pos, self.parse_block())
        return self.parse_expr_stmt()

    def parse_print_stmt(self) -> PrintStmt:
        pos = self._pos()
        self.expect("print")
        expr = self.parse_expr()
        self.expect(";")
        return PrintStmt(pos, expr)

    def parse_return_stmt(self) -> ReturnStmt:
        pos = self._pos()
        self.expect("return")
        value: Expr | None = None
        if not self.at(";"):
            value = self.parse_expr()
        self.expect(";")
        return ReturnStmt(pos, value)

    def parse_if_stmt(self) -> IfStmt:
        pos = self._pos()
        self.expect("if")
        cond = self.parse_expr()
        then_body = self.parse_stmt()
        else_body: Stmt | None = None
        if self.at("else"):
            self.advance()
            else_body = self.parse_stmt()
        return IfStmt(pos, cond, then_body, else_body)

    def parse_while_stmt(self) -> WhileStmt:
        pos = self._pos()
        self.expect("while")
        cond = self.parse_expr()
        body = self.parse_stmt()
        return WhileStmt(pos, cond, body)

    def parse_for_stmt(self) -> Stmt:
        """For = 'for' '(' Init Cond? ';' Incr? ')' Stmt | 'for' Init Cond? ';' Incr? Block

        Desugars into { init; while (cond) { body; incr; } }.
        """
        pos = self._pos()
        self.expect("for")
        parens = self.at("(")
        if parens:
            self.advance()
        init: Stmt | None = None
        if self.at(";"):
            self.advance()
        elif self.at("let"):
            init = self.parse_let_stmt()
        else:
            init = self.parse_expr_stmt()
        cond: Expr | None = None
        if not self.at(";"):
            cond = self.parse_expr()
        self.expect(";")
        incr: Expr | None = None
        if parens:
            if not self.at(")"):
                incr = self.parse_expr()
            self.expect(")")
            body = self.parse_stmt()
        else:
            if not self.at("{"):
                incr = self.parse_expr()
            block_pos = self._pos()
            body = BlockStmt(block_pos, self.parse_block())
        if incr is not None:
            body = BlockStmt(body.pos, [body, ExprStmt(incr.pos, incr)])
        if cond is None:
            cond = Literal(pos, True)
        loop: Stmt = WhileStmt(pos, cond, body)
        if init is not None:
            loop = BlockStmt(pos, [init, loop])
        return loop

    def parse_expr_stmt(self) -> ExprStmt:
        pos = self._pos()
        expr = self.parse_expr()
        self.expect(";")
        return ExprStmt(pos, expr)

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> Expr:
        return self.parse_assignment()

    def parse_assignment(self) -> Expr:
        """Assignment = ( Call '.' )? IDENT '=' Assignment | Or"""
        expr = self.parse_or()
        if self.at("="):
            eq_tok = self.advance()
            value = self.parse_assignment()
            if isinstance(expr, Variable):
                return Assign(expr.pos, expr.name, value)
            if isinstance(expr, Get):
                return Set(expr.pos, expr.obj, expr.name, value)
            self.report("invalid assignment target", eq_tok)
        return expr

    def parse_or(self) -> Expr:
        """Or = And ( 'or' And )*"""
        left = self.parse_and()
        while self.at("or"):
            self.advance()
            right = self.parse_and()
            left = Logical(left.pos, "or", left, right)
        return left

    def parse_and(self) -> Expr:
        """And = Equality ( 'and' Equality )*"""
        left = self.parse_equality()
        while self.at("and"):
            self.advance()
            right = self.parse_equality()
            left = Logical(left.pos, "and", left, right)
        return left

    def parse_equality(self) -> Expr:
        """Equality = Comparison ( ( '==' | '!=' ) Comparison )*"""
        left = self.parse_comparison()
        while self.at_type(TK_OP) and self.current().value in EQUALITY_OPS:
            op_tok = self.advance()
            right = self.parse_comparison()
            left = Binary(self._tok_pos(op_tok), op_tok.value, left, right)
        return left

    def parse_comparison(self) -> Expr:
        """Comparison = Term ( ( '>' | '>=' | '<' | '<=' ) Term )*"""
        left = self.parse_term()
        while self.at_type(TK_OP) and self.current().value in COMPARE_OPS:
            op_tok = self.advance()
            right = self.parse_term()
            left = Binary(self._tok_pos(op_tok), op_tok.value, left, right)
        return left

    def parse_term(self) -> Expr:
        """Term = Factor ( ( '+' | '-' | '<>' ) Factor )*"""
        left = self.parse_factor()
        while self.at_type(TK_OP) and self.current().value in TERM_OPS:
            op_tok = self.advance()
            right = self.parse_factor()
            left = Binary(self._tok_pos(op_tok), op_tok.value, left, right)
        return left

    def parse_factor(self) -> Expr:
        """Factor = Unary ( ( '*' | '/' ) Unary )*"""
        left = self.parse_unary()
        while self.at_type(TK_OP) and self.current().value in FACTOR_OPS:
            op_tok = self.advance()
            right = self.parse_unary()
            left = Binary(self._tok_pos(op_tok), op_tok.value, left, right)
        return left

    def parse_unary(self) -> Expr:
        """Unary = ( 'not' | '-' ) Unary | Call"""
        if self.at("not") or self.at("-"):
            pos = self._pos()
            op = self.advance().value
            operand = self.parse_unary()
            return Unary(pos, op, operand)
        return self.parse_call()

    def parse_call(self) -> Expr:
        """Call = Primary ( '(' Args? ')' | '.' IDENT )*"""
        expr = self.parse_primary()
        while True:
            if self.at("("):
                paren = self.advance()
                args = self.parse_arg_list()
                self.expect(")")
                expr = Call(self._tok_pos(paren), expr, args)
            elif self.at("."):
                self.advance()
                name_tok = self.expect_ident()
                expr = Get(self._tok_pos(name_tok), expr, name_tok.value)
            else:
                break
        return expr

    def parse_arg_list(self) -> list[Expr]:
        args: list[Expr] = []
        if self.at(")"):
            return args
        while True:
            if len(args) >= MAX_ARGS:
                self.report(
                    "can't have more than " + str(MAX_ARGS) + " arguments",
                    self.current(),
                )
            args.append(self.parse_expr())
            if not self.at(","):
                return args
            self.advance()

    def parse_primary(self) -> Expr:
        tok = self.current()
        pos = self._pos()
        if tok.type == TK_NUMBER or tok.type == TK_STRING:
            self.advance()
            return Literal(pos, tok.literal)
        if tok.type == TK_IDENT:
            self.advance()
            return Variable(pos, tok.value)
        if self.at("true"):
            self.advance()
            return Literal(pos, True)
        if self.at("false"):
            self.advance()
            return Literal(pos, False)
        if self.at("nil"):
            self.advance()
            return Literal(pos, None)
        if self.at("this"):
            self.advance()
            return This(pos)
        if self.at("super"):
            self.advance()
            self.expect(".")
            method_tok = self.expect_ident()
            return Super(pos, method_tok.value)
        if self.at("("):
            self.advance()
            inner = self.parse_expr()
            self.expect(")")
            return Grouping(pos, inner)
        raise self.error("expected expression, got " + _describe(tok))
