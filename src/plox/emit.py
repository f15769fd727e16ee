"""plox emitter — converts a parsed Program back into canonical source text.

Parentheses appear only where the AST has a Grouping or where precedence
requires them, so emitting a parsed program and parsing the result again yields
the same tree. `for` loops come out in their desugared block/while form.
"""

from __future__ import annotations

from .ast import (
    Assign,
    Binary,
    BlockStmt,
    Call,
    ClassDecl,
    Expr,
    ExprStmt,
    FunDecl,
    Get,
    Grouping,
    IfStmt,
    LetStmt,
    Literal,
    Logical,
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
from .runtime import format_number


def to_source(program: Program) -> str:
    """Render a `Program` back into plox source text."""
    return _Emitter().emit_program(program)


class _Emitter:
    _INDENT: str = "    "

    # Expression precedence (higher binds tighter)
    _PREC_ASSIGN: int = 1
    _PREC_OR: int = 2
    _PREC_AND: int = 3
    _PREC_EQUALITY: int = 4
    _PREC_COMPARE: int = 5
    _PREC_TERM: int = 6
    _PREC_FACTOR: int = 7
    _PREC_UNARY: int = 8
    _PREC_CALL: int = 9
    _PREC_PRIMARY: int = 10

    _BIN_PREC: dict[str, int] = {
        "or": _PREC_OR,
        "and": _PREC_AND,
        "==": _PREC_EQUALITY,
        "!=": _PREC_EQUALITY,
        "<": _PREC_COMPARE,
        "<=": _PREC_COMPARE,
        ">": _PREC_COMPARE,
        ">=": _PREC_COMPARE,
        "+": _PREC_TERM,
        "-": _PREC_TERM,
        "<>": _PREC_TERM,
        "*": _PREC_FACTOR,
        "/": _PREC_FACTOR,
    }

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._indent_level: int = 0

    # ── Public ──────────────────────────────────────────────

    def emit_program(self, program: Program) -> str:
        self._lines = []
        self._indent_level = 0
        for stmt in program.stmts:
            self._emit_stmt(stmt)
        text = "\n".join(self._lines)
        if text == "":
            return ""
        return text + "\n"

    # ── Lines / Blocks ──────────────────────────────────────

    def _emit_line(self, line: str) -> None:
        self._lines.append(self._INDENT * self._indent_level + line)

    def _emit_stmt_block(self, stmts: list[Stmt]) -> None:
        self._indent_level += 1
        for stmt in stmts:
            self._emit_stmt(stmt)
        self._indent_level -= 1

    def _emit_body(self, header: str, body: Stmt) -> None:
        """Emit `header { ... }`, or the header and an indented single statement."""
        if isinstance(body, BlockStmt):
            self._emit_line(header + " {")
            self._emit_stmt_block(body.body)
            self._emit_line("}")
            return
        self._emit_line(header)
        self._emit_stmt_block([body])

    # ── Stmts ───────────────────────────────────────────────

    def _emit_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, ExprStmt):
            self._emit_line(self._render_expr(stmt.expr, self._PREC_ASSIGN) + ";")
            return
        if isinstance(stmt, PrintStmt):
            self._emit_line(
                "print " + self._render_expr(stmt.expr, self._PREC_ASSIGN) + ";"
            )
            return
        if isinstance(stmt, LetStmt):
            line = "let " + stmt.name
            if stmt.value is not None:
                line += " = " + self._render_expr(stmt.value, self._PREC_ASSIGN)
            self._emit_line(line + ";")
            return
        if isinstance(stmt, BlockStmt):
            self._emit_line("{")
            self._emit_stmt_block(stmt.body)
            self._emit_line("}")
            return
        if isinstance(stmt, IfStmt):
            self._emit_if(stmt, "if ")
            return
        if isinstance(stmt, WhileStmt):
            self._emit_body(
                "while " + self._render_expr(stmt.cond, self._PREC_ASSIGN), stmt.body
            )
            return
        if isinstance(stmt, FunDecl):
            self._emit_fun_decl(stmt, "fun ")
            return
        if isinstance(stmt, ReturnStmt):
            if stmt.value is None:
                self._emit_line("return;")
            else:
                self._emit_line(
                    "return " + self._render_expr(stmt.value, self._PREC_ASSIGN) + ";"
                )
            return
        if isinstance(stmt, ClassDecl):
            self._emit_class_decl(stmt)
            return
        raise TypeError("unhandled stmt type")

    def _emit_if(self, stmt: IfStmt, keyword: str) -> None:
        self._emit_body(
            keyword + self._render_expr(stmt.cond, self._PREC_ASSIGN), stmt.then_body
        )
        if stmt.else_body is None:
            return
        if isinstance(stmt.else_body, IfStmt):
            self._emit_if(stmt.else_body, "else if ")
            return
        self._emit_body("else", stmt.else_body)

    def _emit_fun_decl(self, decl: FunDecl, keyword: str) -> None:
        params = ", ".join(p.name for p in decl.params)
        self._emit_line(keyword + decl.name + "(" + params + ") {")
        self._emit_stmt_block(decl.body)
        self._emit_line("}")

    def _emit_class_decl(self, decl: ClassDecl) -> None:
        header = "class " + decl.name
        if decl.superclass is not None:
            header += " expands " + decl.superclass.name
        self._emit_line(header + " {")
        self._indent_level += 1
        for field in decl.fields:
            line = ("pub " if field.pub else "") + field.name
            if field.value is not None:
                line += " = " + self._render_expr(field.value, self._PREC_ASSIGN)
            self._emit_line(line + ";")
        for method in decl.methods:
            self._emit_fun_decl(method, "pub " if method.pub else "")
        self._indent_level -= 1
        self._emit_line("}")

    # ── Exprs ───────────────────────────────────────────────

    def _render_expr(self, expr: Expr, min_prec: int) -> str:
        text, prec = self._render(expr)
        if prec < min_prec:
            return "(" + text + ")"
        return text

    def _render(self, expr: Expr) -> tuple[str, int]:
        if isinstance(expr, Literal):
            return self._render_literal(expr.value), self._PREC_PRIMARY
        if isinstance(expr, Variable):
            return expr.name, self._PREC_PRIMARY
        if isinstance(expr, This):
            return "this", self._PREC_PRIMARY
        if isinstance(expr, Super):
            return "super." + expr.method, self._PREC_PRIMARY
        if isinstance(expr, Grouping):
            return (
                "(" + self._render_expr(expr.expr, self._PREC_ASSIGN) + ")",
                self._PREC_PRIMARY,
            )
        if isinstance(expr, Assign):
            value = self._render_expr(expr.value, self._PREC_ASSIGN)
            return expr.name + " = " + value, self._PREC_ASSIGN
        if isinstance(expr, Set):
            obj = self._render_expr(expr.obj, self._PREC_CALL)
            value = self._render_expr(expr.value, self._PREC_ASSIGN)
            return obj + "." + expr.name + " = " + value, self._PREC_ASSIGN
        if isinstance(expr, (Binary, Logical)):
            prec = self._BIN_PREC[expr.op]
            left = self._render_expr(expr.left, prec)
            right = self._render_expr(expr.right, prec + 1)
            return left + " " + expr.op + " " + right, prec
        if isinstance(expr, Unary):
            operand = self._render_expr(expr.operand, self._PREC_UNARY)
            if expr.op == "not":
                return "not " + operand, self._PREC_UNARY
            return expr.op + operand, self._PREC_UNARY
        if isinstance(expr, Call):
            callee = self._render_expr(expr.callee, self._PREC_CALL)
            args = ", ".join(self._render_expr(a, self._PREC_ASSIGN) for a in expr.args)
            return callee + "(" + args + ")", self._PREC_CALL
        if isinstance(expr, Get):
            obj = self._render_expr(expr.obj, self._PREC_CALL)
            return obj + "." + expr.name, self._PREC_CALL
        raise TypeError("unhandled expr type")

    def _render_literal(self, value: float | str | bool | None) -> str:
        if value is None:
            return "nil"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            return format_number(value)
        return '"' + value + '"'
