"""Tests for parser tree shapes and error recovery."""

import pytest

from plox import SyntaxErrors, parse, parse_with_errors
from plox.ast import (
    Assign,
    Binary,
    BlockStmt,
    Call,
    ClassDecl,
    ExprStmt,
    FunDecl,
    Get,
    Grouping,
    Literal,
    Logical,
    PrintStmt,
    Set,
    Unary,
    Variable,
    WhileStmt,
)
from plox.parse import MAX_ARGS


def _expr(source: str):
    """Parse a single expression statement and return its expression."""
    program = parse(source)
    assert len(program.stmts) == 1
    stmt = program.stmts[0]
    assert isinstance(stmt, (ExprStmt, PrintStmt))
    return stmt.expr


# ── Precedence and associativity ──


def test_factor_binds_tighter_than_term():
    e = _expr("1 + 2 * 3;")
    assert isinstance(e, Binary) and e.op == "+"
    assert isinstance(e.right, Binary) and e.right.op == "*"


def test_term_is_left_associative():
    e = _expr("1 - 2 - 3;")
    assert isinstance(e, Binary) and e.op == "-"
    assert isinstance(e.left, Binary) and e.left.op == "-"
    assert isinstance(e.right, Literal) and e.right.value == 3.0


def test_concat_shares_term_precedence():
    e = _expr('"a" <> 1 + 2;')
    assert e.op == "+"
    assert isinstance(e.left, Binary) and e.left.op == "<>"


def test_and_binds_tighter_than_or():
    e = _expr("a or b and c;")
    assert isinstance(e, Logical) and e.op == "or"
    assert isinstance(e.right, Logical) and e.right.op == "and"


def test_assignment_is_right_associative():
    e = _expr("a = b = 1;")
    assert isinstance(e, Assign) and e.name == "a"
    assert isinstance(e.value, Assign) and e.value.name == "b"


def test_unary_nests():
    e = _expr("not -x;")
    assert isinstance(e, Unary) and e.op == "not"
    assert isinstance(e.operand, Unary) and e.operand.op == "-"


def test_grouping_is_kept():
    e = _expr("(1 + 2) * 3;")
    assert isinstance(e.left, Grouping)


# ── Calls and properties ──


def test_call_and_get_chain():
    e = _expr("a.b(1).c;")
    assert isinstance(e, Get) and e.name == "c"
    assert isinstance(e.obj, Call) and len(e.obj.args) == 1
    assert isinstance(e.obj.callee, Get) and e.obj.callee.name == "b"


def test_property_assignment_becomes_set():
    e = _expr("a.b.c = 1;")
    assert isinstance(e, Set) and e.name == "c"
    assert isinstance(e.obj, Get) and e.obj.name == "b"


def test_call_position_is_the_paren():
    e = _expr("foo(1);")
    assert isinstance(e, Call)
    assert (e.pos.line, e.pos.col) == (1, 4)


def test_too_many_arguments():
    args = ", ".join("1" for _ in range(MAX_ARGS + 1))
    _, errors = parse_with_errors("f(" + args + ");")
    assert any("can't have more than 255 arguments" in str(e) for e in errors)


def test_max_arguments_is_fine():
    args = ", ".join("1" for _ in range(MAX_ARGS))
    e = _expr("f(" + args + ");")
    assert len(e.args) == MAX_ARGS


def test_too_many_parameters():
    params = ", ".join("p" + str(i) for i in range(MAX_ARGS + 1))
    _, errors = parse_with_errors("fun f(" + params + ") {}")
    assert any("can't have more than 255 parameters" in str(e) for e in errors)


# ── Declarations ──


def test_class_members():
    program = parse("class B expands A { pub x = 1; y; f() {} pub g(a) {} }")
    decl = program.stmts[0]
    assert isinstance(decl, ClassDecl)
    assert decl.superclass is not None and decl.superclass.name == "A"
    assert [(f.name, f.pub) for f in decl.fields] == [("x", True), ("y", False)]
    assert decl.fields[1].value is None
    assert [(m.name, m.pub) for m in decl.methods] == [("f", False), ("g", True)]
    assert [p.name for p in decl.methods[1].params] == ["a"]


def test_for_desugars_to_block_and_while():
    program = parse("for (let i = 0; i < 3; i = i + 1) print i;")
    outer = program.stmts[0]
    assert isinstance(outer, BlockStmt)
    assert len(outer.body) == 2
    loop = outer.body[1]
    assert isinstance(loop, WhileStmt)
    assert isinstance(loop.body, BlockStmt)
    assert isinstance(loop.body.body[0], PrintStmt)
    assert isinstance(loop.body.body[1], ExprStmt)
    assert isinstance(loop.body.body[1].expr, Assign)


def test_function_declaration():
    program = parse("fun add(a, b) { return a + b; }")
    fn = program.stmts[0]
    assert isinstance(fn, FunDecl)
    assert fn.name == "add"
    assert [p.name for p in fn.params] == ["a", "b"]
    assert len(fn.body) == 1


def test_variable_position():
    e = _expr("print\n   value;")
    assert isinstance(e, Variable)
    assert (e.pos.line, e.pos.col) == (2, 4)


# ── Error recovery ──


def test_parse_raises_with_all_errors():
    with pytest.raises(SyntaxErrors) as exc:
        parse("print 1 print 2; let = 3; print 4;")
    assert len(exc.value.errors) == 2


def test_recovery_keeps_later_statements():
    program, errors = parse_with_errors("print 1 print 2; let = 3; print 4;")
    assert [e.msg for e in errors] == [
        "expected ';', got 'print'",
        "expected identifier, got '='",
    ]
    assert len(program.stmts) == 1
    assert isinstance(program.stmts[0], PrintStmt)
    assert program.stmts[0].expr.value == 4.0


def test_lexical_and_syntax_errors_together():
    _, errors = parse_with_errors("print @;")
    messages = [str(e) for e in errors]
    assert "unexpected character '@' at line 1 col 7" in messages
    assert any(m.startswith("expected expression") for m in messages)


def test_invalid_target_does_not_stop_parsing():
    program, errors = parse_with_errors("1 = 2; print 3;")
    assert [e.msg for e in errors] == ["invalid assignment target"]
    assert len(program.stmts) == 2
