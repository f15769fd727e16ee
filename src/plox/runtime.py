"""plox runtime — values, environments and the tree-walking interpreter.

Expects a program that already passed the resolver: every local variable
reference has a depth entry in the table handed to ``Interpreter.interpret``.
"""

from __future__ import annotations

import math
import sys
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, TextIO

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


def _isnan(x: float) -> bool:
    return x != x


def _isinf(x: float) -> bool:
    return x == float("inf") or x == float("-inf")


MAX_TRACE_LINES = 12

# Host limits for plox recursion, roughly 8000 plox calls deep
RECURSION_LIMIT = 50_000
THREAD_STACK_SIZE = 512 * 1024 * 1024


# ============================================================
# Diagnostics
# ============================================================


class PloxRuntimeError(Exception):
    """Runtime fault: type mismatch, bad call, undefined name, private access...

    ``trace`` collects one entry per plox function call the error unwinds
    through, innermost first.
    """

    def __init__(self, msg: str, pos: Pos | None = None):
        if pos is None:
            super().__init__(msg)
        else:
            super().__init__(f"{msg} at line {pos.line} col {pos.col}")
        self.msg = msg
        self.pos = pos
        self.trace: list[str] = []


def format_trace(err: PloxRuntimeError) -> list[str]:
    """Render the call trace of a runtime error, eliding the middle of deep ones."""
    lines = ["  in " + entry for entry in err.trace]
    if len(lines) <= MAX_TRACE_LINES:
        return lines
    half = MAX_TRACE_LINES // 2
    skipped = len(lines) - 2 * half
    return lines[:half] + [f"  ... {skipped} more calls"] + lines[-half:]


# ============================================================
# Values
# ============================================================


class Value:
    """A runtime value; the concrete subclass is its type tag."""

    def to_string(self) -> str:
        raise NotImplementedError


@dataclass
class VNil(Value):
    def to_string(self) -> str:
        return "nil"


@dataclass
class VBool(Value):
    value: bool

    def to_string(self) -> str:
        return "true" if self.value else "false"


@dataclass
class VNumber(Value):
    value: float

    def to_string(self) -> str:
        return format_number(self.value)


@dataclass
class VString(Value):
    value: str

    def to_string(self) -> str:
        return self.value


@dataclass(eq=False)
class VFunction(Value):
    decl: FunDecl
    closure: Environment
    is_initializer: bool = False
    # Class whose body declared this function (or the method a nested
    # function was created in); None for plain top-level functions.
    owner: VClass | None = None
    receiver: VInstance | None = None

    @property
    def name(self) -> str:
        return self.decl.name

    def arity(self) -> int:
        return len(self.decl.params)

    def bind(self, instance: VInstance) -> VFunction:
        env = Environment(self.closure)
        env.define("this", instance)
        return VFunction(self.decl, env, self.is_initializer, self.owner, instance)

    def to_string(self) -> str:
        return f"<fn {self.decl.name}>"


@dataclass(eq=False)
class VClass(Value):
    name: str
    superclass: VClass | None
    # Environment the methods close over; holds 'super' when there is a superclass.
    closure: Environment
    methods: dict[str, VFunction] = field(default_factory=dict)
    fields: list[FieldDecl] = field(default_factory=list)

    def find_method(self, name: str) -> VFunction | None:
        klass: VClass | None = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name]
            klass = klass.superclass
        return None

    def find_field(self, name: str) -> tuple[VClass, FieldDecl] | None:
        """Most-derived declaration of a field, with the class that declared it."""
        klass: VClass | None = self
        while klass is not None:
            for decl in klass.fields:
                if decl.name == name:
                    return klass, decl
            klass = klass.superclass
        return None

    def lineage(self) -> list[VClass]:
        """The inheritance chain, root class first."""
        chain: list[VClass] = []
        klass: VClass | None = self
        while klass is not None:
            chain.append(klass)
            klass = klass.superclass
        chain.reverse()
        return chain

    def arity(self) -> int:
        init = self.find_method("init")
        if init is None:
            return 0
        return init.arity()

    def to_string(self) -> str:
        return f"<class {self.name}>"


@dataclass(eq=False)
class VInstance(Value):
    klass: VClass
    fields: dict[str, Value] = field(default_factory=dict)

    def to_string(self) -> str:
        return f"<{self.klass.name} instance>"


NIL = VNil()
TRUE = VBool(True)
FALSE = VBool(False)


def format_number(x: float) -> str:
    """Shortest decimal text for x, never in exponent form.

    The result lexes back as a plox number literal when x is finite and
    non-negative; the emitter relies on that.
    """
    if _isnan(x):
        return "nan"
    if _isinf(x):
        return "inf" if x > 0 else "-inf"
    if x == int(x):
        return str(int(x))
    text = repr(x)
    if "e" in text:
        # repr picks the shortest digits; Decimal only moves the point.
        text = format(Decimal(text), "f")
    return text


def is_truthy(v: Value) -> bool:
    if isinstance(v, VNil):
        return False
    if isinstance(v, VBool):
        return v.value
    return True


def values_equal(a: Value, b: Value) -> bool:
    if isinstance(a, VNil) or isinstance(b, VNil):
        return isinstance(a, VNil) and isinstance(b, VNil)
    if isinstance(a, VBool) and isinstance(b, VBool):
        return a.value == b.value
    if isinstance(a, VNumber) and isinstance(b, VNumber):
        return a.value == b.value
    if isinstance(a, VString) and isinstance(b, VString):
        return a.value == b.value
    return a is b


def _bool(b: bool) -> VBool:
    return TRUE if b else FALSE


def _divide(left: float, right: float) -> float:
    if right == 0.0:
        if left == 0.0 or _isnan(left):
            return float("nan")
        return math.copysign(float("inf"), left) * math.copysign(1.0, right)
    return left / right


# ============================================================
# Environments
# ============================================================


class Environment:
    """One lexical scope. Closures share environments by reference."""

    def __init__(self, enclosing: Environment | None = None) -> None:
        self.values: dict[str, Value] = {}
        self.enclosing = enclosing

    def define(self, name: str, value: Value) -> None:
        self.values[name] = value

    def ancestor(self, distance: int) -> Environment:
        env = self
        for _ in range(distance):
            if env.enclosing is None:
                raise PloxRuntimeError(
                    f"internal error: depth {distance} exceeds the scope chain"
                )
            env = env.enclosing
        return env

    def get_at(self, distance: int, name: str) -> Value:
        return self.ancestor(distance).values[name]

    def assign_at(self, distance: int, name: str, value: Value) -> None:
        self.ancestor(distance).values[name] = value

    def get(self, name: str, pos: Pos) -> Value:
        if name in self.values:
            return self.values[name]
        raise PloxRuntimeError(f"undefined variable '{name}'", pos)

    def assign(self, name: str, value: Value, pos: Pos) -> None:
        if name not in self.values:
            raise PloxRuntimeError(f"undefined variable '{name}'", pos)
        self.values[name] = value


# ============================================================
# Control flow signals (internal)
# ============================================================


@dataclass
class _Return(Exception):
    value: Value


@dataclass
class RunResult:
    exit_code: int
    stdout: str
    errors: list[str]


# ============================================================
# Host stack
# ============================================================


class _DeepStackThread(threading.Thread):
    """Runs one interpreter entry point; the caller re-raises its error."""

    def __init__(self, fn: Callable[..., Any], args: tuple[Any, ...]):
        super().__init__(name="plox-interpreter", daemon=True)
        self.fn = fn
        self.args = args
        self.result: Any = None
        self.error: BaseException | None = None

    def run(self) -> None:
        try:
            self.result = self.fn(*self.args)
        except BaseException as e:
            self.error = e


def _run_deep(fn: Callable[..., Any], *args: Any) -> Any:
    """Call fn(*args) with room for deep plox recursion.

    The tree walker spends several Python frames per plox call, so the
    interpreter runs on a thread with a large stack and a raised recursion
    limit. Exhausting even that still surfaces as RecursionError.
    """
    worker = _DeepStackThread(fn, args)
    saved_limit = sys.getrecursionlimit()
    saved_size = threading.stack_size()
    sys.setrecursionlimit(max(saved_limit, RECURSION_LIMIT))
    try:
        threading.stack_size(THREAD_STACK_SIZE)
        try:
            worker.start()
        finally:
            threading.stack_size(saved_size)
        worker.join()
    finally:
        sys.setrecursionlimit(saved_limit)
    if worker.error is not None:
        raise worker.error
    return worker.result


# ============================================================
# Interpreter
# ============================================================


class Interpreter:
    """Executes resolved programs against one persistent global environment."""

    def __init__(self, stdout: TextIO | None = None) -> None:
        self.globals = Environment()
        self.locals: dict[Expr, int] = {}
        self.stdout: TextIO = stdout if stdout is not None else sys.stdout
        # Class whose code is currently running; gates private member access.
        self._context: VClass | None = None

    # ---- Entry points ------------------------------------------------------

    def interpret(self, program: Program, locals_: dict[Expr, int]) -> None:
        self.locals.update(locals_)
        _run_deep(self._exec_program, program)

    def evaluate(self, expr: Expr, locals_: dict[Expr, int]) -> Value:
        self.locals.update(locals_)
        return _run_deep(self._eval_top, expr)

    def _exec_program(self, program: Program) -> None:
        for st in program.stmts:
            try:
                self._exec(st, self.globals)
            except RecursionError:
                raise PloxRuntimeError("stack overflow", st.pos) from None

    def _eval_top(self, expr: Expr) -> Value:
        try:
            return self._eval(expr, self.globals)
        except RecursionError:
            raise PloxRuntimeError("stack overflow", expr.pos) from None

    # ---- Statements --------------------------------------------------------

    def _exec_block(self, stmts: list[Stmt], env: Environment) -> None:
        for st in stmts:
            self._exec(st, env)

    def _exec(self, st: Stmt, env: Environment) -> None:
        if isinstance(st, ExprStmt):
            self._eval(st.expr, env)
            return

        if isinstance(st, PrintStmt):
            value = self._eval(st.expr, env)
            self.stdout.write(value.to_string() + "\n")
            return

        if isinstance(st, LetStmt):
            value: Value = NIL
            if st.value is not None:
                value = self._eval(st.value, env)
            env.define(st.name, value)
            return

        if isinstance(st, BlockStmt):
            self._exec_block(st.body, Environment(env))
            return

        if isinstance(st, IfStmt):
            if is_truthy(self._eval(st.cond, env)):
                self._exec(st.then_body, env)
            elif st.else_body is not None:
                self._exec(st.else_body, env)
            return

        if isinstance(st, WhileStmt):
            while is_truthy(self._eval(st.cond, env)):
                self._exec(st.body, env)
            return

        if isinstance(st, FunDecl):
            env.define(st.name, VFunction(st, env, False, self._context))
            return

        if isinstance(st, ReturnStmt):
            if st.value is None:
                raise _Return(NIL)
            raise _Return(self._eval(st.value, env))

        if isinstance(st, ClassDecl):
            self._exec_class(st, env)
            return

        raise PloxRuntimeError("unsupported statement", st.pos)

    def _exec_class(self, st: ClassDecl, env: Environment) -> None:
        superclass: VClass | None = None
        if st.superclass is not None:
            sc = self._eval(st.superclass, env)
            if not isinstance(sc, VClass):
                raise PloxRuntimeError("superclass must be a class", st.superclass.pos)
            superclass = sc
        env.define(st.name, NIL)

        closure = env
        if superclass is not None:
            closure = Environment(env)
            closure.define("super", superclass)

        klass = VClass(st.name, superclass, closure, {}, list(st.fields))
        for method in st.methods:
            klass.methods[method.name] = VFunction(
                method, closure, method.name == "init", klass
            )
        env.define(st.name, klass)

    # ---- Expressions -------------------------------------------------------

    def _eval(self, expr: Expr, env: Environment) -> Value:
        if isinstance(expr, Literal):
            return self._literal(expr.value)

        if isinstance(expr, Grouping):
            return self._eval(expr.expr, env)

        if isinstance(expr, Variable):
            return self._lookup(expr.name, expr, env)

        if isinstance(expr, Assign):
            value = self._eval(expr.value, env)
            distance = self.locals.get(expr)
            if distance is None:
                self.globals.assign(expr.name, value, expr.pos)
            else:
                env.assign_at(distance, expr.name, value)
            return value

        if isinstance(expr, Logical):
            left = self._eval(expr.left, env)
            if expr.op == "or":
                if is_truthy(left):
                    return left
            elif not is_truthy(left):
                return left
            return self._eval(expr.right, env)

        if isinstance(expr, Binary):
            left = self._eval(expr.left, env)
            right = self._eval(expr.right, env)
            return self._binary(expr.op, left, right, expr.pos)

        if isinstance(expr, Unary):
            operand = self._eval(expr.operand, env)
            if expr.op == "not":
                return _bool(not is_truthy(operand))
            if not isinstance(operand, VNumber):
                raise PloxRuntimeError("operand must be a number", expr.pos)
            return VNumber(-operand.value)

        if isinstance(expr, Call):
            callee = self._eval(expr.callee, env)
            args = [self._eval(a, env) for a in expr.args]
            return self._call(callee, args, expr.pos)

        if isinstance(expr, Get):
            obj = self._eval(expr.obj, env)
            if not isinstance(obj, VInstance):
                raise PloxRuntimeError("only instances have properties", expr.pos)
            return self._get_property(obj, expr.name, expr.pos)

        if isinstance(expr, Set):
            obj = self._eval(expr.obj, env)
            if not isinstance(obj, VInstance):
                raise PloxRuntimeError("only instances have fields", expr.pos)
            found = obj.klass.find_field(expr.name)
            if found is not None:
                self._check_access(found[0], found[1].pub, expr.name, expr.pos)
            value = self._eval(expr.value, env)
            obj.fields[expr.name] = value
            return value

        if isinstance(expr, This):
            return self._lookup("this", expr, env)

        if isinstance(expr, Super):
            return self._super(expr, env)

        raise PloxRuntimeError("unsupported expression", expr.pos)

    def _literal(self, value: float | str | bool | None) -> Value:
        if value is None:
            return NIL
        if isinstance(value, bool):
            return _bool(value)
        if isinstance(value, float):
            return VNumber(value)
        return VString(value)

    def _lookup(self, name: str, expr: Expr, env: Environment) -> Value:
        distance = self.locals.get(expr)
        if distance is None:
            return self.globals.get(name, expr.pos)
        return env.get_at(distance, name)

    def _binary(self, op: str, left: Value, right: Value, pos: Pos) -> Value:
        if op == "==":
            return _bool(values_equal(left, right))
        if op == "!=":
            return _bool(not values_equal(left, right))
        if op == "<>":
            return VString(self._concat_piece(left, pos) + self._concat_piece(right, pos))
        if not isinstance(left, VNumber) or not isinstance(right, VNumber):
            raise PloxRuntimeError(f"operands of '{op}' must be numbers", pos)
        a = left.value
        b = right.value
        if op == "+":
            return VNumber(a + b)
        if op == "-":
            return VNumber(a - b)
        if op == "*":
            return VNumber(a * b)
        if op == "/":
            return VNumber(_divide(a, b))
        if op == ">":
            return _bool(a > b)
        if op == ">=":
            return _bool(a >= b)
        if op == "<":
            return _bool(a < b)
        if op == "<=":
            return _bool(a <= b)
        raise PloxRuntimeError(f"unknown operator '{op}'", pos)

    def _concat_piece(self, v: Value, pos: Pos) -> str:
        if isinstance(v, VString):
            return v.value
        if isinstance(v, VNumber):
            return v.to_string()
        raise PloxRuntimeError("operands of '<>' must be strings or numbers", pos)

    # ---- Calls -------------------------------------------------------------

    def _call(self, callee: Value, args: list[Value], pos: Pos) -> Value:
        if isinstance(callee, VFunction):
            self._check_arity(callee.arity(), len(args), pos)
            return self._call_function(callee, args, pos)
        if isinstance(callee, VClass):
            self._check_arity(callee.arity(), len(args), pos)
            return self._instantiate(callee, args, pos)
        raise PloxRuntimeError(f"'{callee.to_string()}' is not callable", pos)

    def _check_arity(self, expected: int, got: int, pos: Pos) -> None:
        if expected != got:
            raise PloxRuntimeError(
                f"expected {expected} arguments but got {got}", pos
            )

    def _call_function(self, fn: VFunction, args: list[Value], pos: Pos) -> Value:
        env = Environment(fn.closure)
        for param, arg in zip(fn.decl.params, args):
            env.define(param.name, arg)
        saved = self._context
        self._context = fn.owner
        try:
            self._exec_block(fn.decl.body, env)
        except _Return as r:
            if fn.is_initializer:
                return fn.closure.get_at(0, "this")
            return r.value
        except RecursionError:
            raise PloxRuntimeError("stack overflow", pos) from None
        except PloxRuntimeError as e:
            e.trace.append(f"{fn.name}() called at line {pos.line}")
            raise
        finally:
            self._context = saved
        if fn.is_initializer:
            return fn.closure.get_at(0, "this")
        return NIL

    def _instantiate(self, klass: VClass, args: list[Value], pos: Pos) -> VInstance:
        instance = VInstance(klass)
        saved = self._context
        try:
            for cls in klass.lineage():
                if len(cls.fields) == 0:
                    continue
                env = Environment(cls.closure)
                env.define("this", instance)
                self._context = cls
                for decl in cls.fields:
                    value: Value = NIL
                    if decl.value is not None:
                        value = self._eval(decl.value, env)
                    instance.fields[decl.name] = value
        except PloxRuntimeError as e:
            e.trace.append(f"{klass.name}() called at line {pos.line}")
            raise
        finally:
            self._context = saved
        init = klass.find_method("init")
        if init is not None:
            self._call_function(init.bind(instance), args, pos)
        return instance

    # ---- Properties --------------------------------------------------------

    def _check_access(self, owner: VClass, pub: bool, name: str, pos: Pos) -> None:
        if pub or owner is self._context:
            return
        raise PloxRuntimeError(f"'{name}' is private to class {owner.name}", pos)

    def _get_property(self, instance: VInstance, name: str, pos: Pos) -> Value:
        if name in instance.fields:
            found = instance.klass.find_field(name)
            if found is not None:
                self._check_access(found[0], found[1].pub, name, pos)
            return instance.fields[name]
        # Methods are callable from anywhere; 'pub' only gates fields.
        method = instance.klass.find_method(name)
        if method is not None:
            return method.bind(instance)
        raise PloxRuntimeError(f"undefined property '{name}'", pos)

    def _super(self, expr: Super, env: Environment) -> Value:
        distance = self.locals[expr]
        superclass = env.get_at(distance, "super")
        instance = env.get_at(distance - 1, "this")
        if not isinstance(superclass, VClass) or not isinstance(instance, VInstance):
            raise PloxRuntimeError(
                "internal error: 'super' is not bound to a class and an instance",
                expr.pos,
            )
        method = superclass.find_method(expr.method)
        if method is None:
            raise PloxRuntimeError(f"undefined property '{expr.method}'", expr.pos)
        return method.bind(instance)
