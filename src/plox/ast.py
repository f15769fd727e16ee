"""plox AST — parse-time node definitions.

Nodes use identity equality (``eq=False``) so that the resolver can key its
depth table on the expression objects themselves.
"""

from __future__ import annotations

from dataclasses import dataclass


# ============================================================
# POSITION
# ============================================================


@dataclass
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(eq=False)
class Expr:
    """Base for all expressions."""

    pos: Pos


@dataclass(eq=False)
class Literal(Expr):
    """nil, true, false, a number or a string. nil is stored as None."""

    value: float | str | bool | None


@dataclass(eq=False)
class Variable(Expr):
    name: str


@dataclass(eq=False)
class Assign(Expr):
    """name = value."""

    name: str
    value: Expr


@dataclass(eq=False)
class Logical(Expr):
    """Short-circuiting 'and' / 'or'."""

    op: str
    left: Expr
    right: Expr


@dataclass(eq=False)
class Binary(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(eq=False)
class Unary(Expr):
    """'not' or '-'."""

    op: str
    operand: Expr


@dataclass(eq=False)
class Call(Expr):
    callee: Expr
    args: list[Expr]


@dataclass(eq=False)
class Get(Expr):
    """obj.name."""

    obj: Expr
    name: str


@dataclass(eq=False)
class Set(Expr):
    """obj.name = value."""

    obj: Expr
    name: str
    value: Expr


@dataclass(eq=False)
class This(Expr):
    pass


@dataclass(eq=False)
class Super(Expr):
    """super.method."""

    method: str


@dataclass(eq=False)
class Grouping(Expr):
    expr: Expr


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(eq=False)
class Stmt:
    """Base for all statements."""

    pos: Pos


@dataclass(eq=False)
class ExprStmt(Stmt):
    expr: Expr


@dataclass(eq=False)
class PrintStmt(Stmt):
    expr: Expr


@dataclass(eq=False)
class LetStmt(Stmt):
    """let name = value; value is None when omitted."""

    name: str
    value: Expr | None


@dataclass(eq=False)
class BlockStmt(Stmt):
    body: list[Stmt]


@dataclass(eq=False)
class IfStmt(Stmt):
    cond: Expr
    then_body: Stmt
    else_body: Stmt | None


@dataclass(eq=False)
class WhileStmt(Stmt):
    cond: Expr
    body: Stmt


@dataclass(eq=False)
class Param:
    pos: Pos
    name: str


@dataclass(eq=False)
class FunDecl(Stmt):
    """fun name(params) { body }, or a method when nested in a class."""

    name: str
    params: list[Param]
    body: list[Stmt]
    pub: bool = False


@dataclass(eq=False)
class ReturnStmt(Stmt):
    value: Expr | None


@dataclass(eq=False)
class FieldDecl:
    """Class field: pub? name ( = value )?;"""

    pos: Pos
    name: str
    value: Expr | None
    pub: bool


@dataclass(eq=False)
class ClassDecl(Stmt):
    """class Name expands Parent { fields then methods }."""

    name: str
    superclass: Variable | None
    fields: list[FieldDecl]
    methods: list[FunDecl]


# ============================================================
# PROGRAM
# ============================================================


@dataclass(eq=False)
class Program:
    stmts: list[Stmt]
