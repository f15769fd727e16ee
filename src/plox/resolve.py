"""plox resolver — binds every local variable reference to its scope depth.

The interpreter consults the resulting table instead of searching scopes by
name, so the two must agree on exactly which constructs open a scope:

- a block,
- a function call (parameters and body share one scope),
- the ``this`` scope wrapped around a class's fields and methods,
- the ``super`` scope wrapped around that when the class expands another.

Names declared at top level are globals: they get no depth entry and are
looked up dynamically at runtime.
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

FN_NONE = "none"
FN_FUNCTION = "function"
FN_METHOD = "method"
FN_INITIALIZER = "initializer"

CLASS_NONE = "none"
CLASS_CLASS = "class"
CLASS_SUBCLASS = "subclass"


class ResolveError(Exception):
    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


# ============================================================
# RESOLVER
# ============================================================


class Resolver:
    """Static scope pass.

    One instance can resolve several programs in turn (the REPL does this);
    globals seen earlier stay known and the depth table keeps growing.
    """

    def __init__(self) -> None:
        self.errors: list[ResolveError] = []
        self.locals: dict[Expr, int] = {}
        # name -> True once its initializer has been resolved
        self.scopes: list[dict[str, bool]] = []
        self.globals: set[str] = set()
        self.current_fn: str = FN_NONE
        self.current_class: str = CLASS_NONE

    def error(self, msg: str, pos: Pos) -> None:
        self.errors.append(ResolveError(msg, pos.line, pos.col))

    def resolve(self, program: Program) -> dict[Expr, int]:
        self.errors = []
        for stmt in program.stmts:
            self.resolve_stmt(stmt)
        return self.locals

    # ── Scope management ──────────────────────────────────────

    def enter_scope(self) -> None:
        self.scopes.append({})

    def exit_scope(self) -> None:
        self.scopes.pop()

    def declare(self, name: str, pos: Pos) -> None:
        if len(self.scopes) == 0:
            self.globals.add(name)
            return
        scope = self.scopes[-1]
        if name in scope:
            self.error("'" + name + "' already declared in this scope", pos)
            return
        scope[name] = False

    def define(self, name: str) -> None:
        if len(self.scopes) == 0:
            return
        self.scopes[-1][name] = True

    def resolve_local(self, expr: Expr, name: str, skip: int = 0) -> None:
        i = len(self.scopes) - 1 - skip
        while i >= 0:
            if name in self.scopes[i]:
                self.locals[expr] = len(self.scopes) - 1 - i
                return
            i -= 1
        # Not found: global

    def _declared_outside(self, name: str) -> bool:
        i = len(self.scopes) - 2
        while i >= 0:
            if name in self.scopes[i]:
                return True
            i -= 1
        return name in self.globals

    # ── Statements ────────────────────────────────────────────

    def resolve_stmts(self, stmts: list[Stmt]) -> None:
        for stmt in stmts:
            self.resolve_stmt(stmt)

    def resolve_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, BlockStmt):
            self.enter_scope()
            self.resolve_stmts(stmt.body)
            self.exit_scope()
            return
        if isinstance(stmt, LetStmt):
            self.declare(stmt.name, stmt.pos)
            if stmt.value is not None:
                self.resolve_expr(stmt.value)
            self.define(stmt.name)
            return
        if isinstance(stmt, FunDecl):
            self.declare(stmt.name, stmt.pos)
            self.define(stmt.name)
            self.resolve_function(stmt, FN_FUNCTION)
            return
        if isinstance(stmt, ClassDecl):
            self.resolve_class(stmt)
            return
        if isinstance(stmt, ExprStmt):
            self.resolve_expr(stmt.expr)
            return
        if isinstance(stmt, PrintStmt):
            self.resolve_expr(stmt.expr)
            return
        if isinstance(stmt, IfStmt):
            self.resolve_expr(stmt.cond)
            self.resolve_stmt(stmt.then_body)
            if stmt.else_body is not None:
                self.resolve_stmt(stmt.else_body)
            return
        if isinstance(stmt, WhileStmt):
            self.resolve_expr(stmt.cond)
            self.resolve_stmt(stmt.body)
            return
        if isinstance(stmt, ReturnStmt):
            self.resolve_return(stmt)
            return
        raise TypeError("unhandled stmt type: " + type(stmt).__name__)

    def resolve_return(self, stmt: ReturnStmt) -> None:
        if self.current_fn == FN_NONE:
            self.error("can't return from top-level code", stmt.pos)
        if stmt.value is None:
            return
        if self.current_fn == FN_INITIALIZER:
            self.error("can't return a value from an initializer", stmt.pos)
        self.resolve_expr(stmt.value)

    def resolve_function(self, decl: FunDecl, kind: str) -> None:
        enclosing = self.current_fn
        self.current_fn = kind
        self.enter_scope()
        for param in decl.params:
            self.declare(param.name, param.pos)
            self.define(param.name)
        self.resolve_stmts(decl.body)
        self.exit_scope()
        self.current_fn = enclosing

    def resolve_class(self, decl: ClassDecl) -> None:
        enclosing = self.current_class
        self.current_class = CLASS_CLASS
        self.declare(decl.name, decl.pos)
        self.define(decl.name)

        if decl.superclass is not None:
            if decl.superclass.name == decl.name:
                self.error("a class can't expand itself", decl.superclass.pos)
            self.current_class = CLASS_SUBCLASS
            self.resolve_expr(decl.superclass)
            self.enter_scope()
            self.scopes[-1]["super"] = True

        self.enter_scope()
        self.scopes[-1]["this"] = True

        members: set[str] = set()
        for field in decl.fields:
            if field.name in members:
                self.error(
                    "duplicate member '" + field.name + "' in class " + decl.name,
                    field.pos,
                )
            members.add(field.name)
            if field.value is not None:
                self.resolve_expr(field.value)
        for method in decl.methods:
            if method.name in members:
                self.error(
                    "duplicate member '" + method.name + "' in class " + decl.name,
                    method.pos,
                )
            members.add(method.name)
            kind = FN_INITIALIZER if method.name == "init" else FN_METHOD
            self.resolve_function(method, kind)

        self.exit_scope()
        if decl.superclass is not None:
            self.exit_scope()
        self.current_class = enclosing

    # ── Expressions ───────────────────────────────────────────

    def resolve_expr(self, expr: Expr) -> None:
        if isinstance(expr, Variable):
            self.resolve_variable(expr)
            return
        if isinstance(expr, Assign):
            self.resolve_expr(expr.value)
            self.resolve_local(expr, expr.name)
            return
        if isinstance(expr, (Binary, Logical)):
            self.resolve_expr(expr.left)
            self.resolve_expr(expr.right)
            return
        if isinstance(expr, Unary):
            self.resolve_expr(expr.operand)
            return
        if isinstance(expr, Call):
            self.resolve_expr(expr.callee)
            for arg in expr.args:
                self.resolve_expr(arg)
            return
        if isinstance(expr, Get):
            self.resolve_expr(expr.obj)
            return
        if isinstance(expr, Set):
            self.resolve_expr(expr.value)
            self.resolve_expr(expr.obj)
            return
        if isinstance(expr, Grouping):
            self.resolve_expr(expr.expr)
            return
        if isinstance(expr, Literal):
            return
        if isinstance(expr, This):
            if self.current_class == CLASS_NONE:
                self.error("can't use 'this' outside of a class", expr.pos)
                return
            self.resolve_local(expr, "this")
            return
        if isinstance(expr, Super):
            if self.current_class == CLASS_NONE:
                self.error("can't use 'super' outside of a class", expr.pos)
                return
            if self.current_class != CLASS_SUBCLASS:
                self.error("can't use 'super' in a class with no superclass", expr.pos)
                return
            self.resolve_local(expr, "super")
            return
        raise TypeError("unhandled expr type: " + type(expr).__name__)

    def resolve_variable(self, expr: Variable) -> None:
        if len(self.scopes) > 0 and self.scopes[-1].get(expr.name) is False:
            # Inside its own initializer: the new binding is not visible yet,
            # so the name refers to an outer one if there is any.
            if self._declared_outside(expr.name):
                self.resolve_local(expr, expr.name, skip=1)
                return
            self.error(
                "can't read local variable '" + expr.name + "' in its own initializer",
                expr.pos,
            )
            return
        self.resolve_local(expr, expr.name)
