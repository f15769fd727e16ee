"""Tests for the plox tokenizer."""

from plox.tokens import (
    TK_EOF,
    TK_IDENT,
    TK_NUMBER,
    TK_OP,
    TK_STRING,
    TokenizeError,
    tokenize,
)


def _types(source: str) -> list[str]:
    tokens, errors = tokenize(source)
    assert errors == [], [str(e) for e in errors]
    return [t.type for t in tokens]


def _values(source: str) -> list[str]:
    tokens, errors = tokenize(source)
    assert errors == [], [str(e) for e in errors]
    return [t.value for t in tokens]


# ── Token kinds ──


def test_empty_source_is_just_eof():
    tokens, errors = tokenize("")
    assert errors == []
    assert len(tokens) == 1
    assert tokens[0].type == TK_EOF
    assert (tokens[0].line, tokens[0].col) == (1, 1)


def test_keywords_use_their_own_type():
    assert _types("let fun class expands pub not and or") == [
        "let",
        "fun",
        "class",
        "expands",
        "pub",
        "not",
        "and",
        "or",
        TK_EOF,
    ]


def test_keyword_prefix_is_identifier():
    assert _types("lets classy nil_ _x x1") == [TK_IDENT] * 5 + [TK_EOF]


def test_two_char_operators_win():
    assert _values("== != <= >= <> < > =") == [
        "==",
        "!=",
        "<=",
        ">=",
        "<>",
        "<",
        ">",
        "=",
        "",
    ]


def test_punctuation():
    assert _values("(){},.;+-*/") == list("(){},.;+-*/") + [""]
    assert set(_types("(){},.;+-*/")[:-1]) == {TK_OP}


# ── Literals ──


def test_numbers_are_floats():
    tokens, _ = tokenize("12 3.25 007")
    assert [t.type for t in tokens[:3]] == [TK_NUMBER] * 3
    assert [t.literal for t in tokens[:3]] == [12.0, 3.25, 7.0]


def test_trailing_dot_is_not_part_of_number():
    assert _values("1.") == ["1", ".", ""]
    assert _values("1.x") == ["1", ".", "x", ""]


def test_leading_dot_is_not_a_number():
    assert _types(".5") == [TK_OP, TK_NUMBER, TK_EOF]


def test_string_literal_strips_quotes():
    tokens, _ = tokenize('"hello world"')
    assert tokens[0].type == TK_STRING
    assert tokens[0].value == '"hello world"'
    assert tokens[0].literal == "hello world"


def test_string_has_no_escapes():
    tokens, _ = tokenize('"a\\n"')
    assert tokens[0].literal == "a\\n"


def test_multiline_string_advances_line():
    tokens, errors = tokenize('"a\nb" x')
    assert errors == []
    assert tokens[0].literal == "a\nb"
    assert (tokens[0].line, tokens[0].col) == (1, 1)
    assert (tokens[1].line, tokens[1].col) == (2, 4)


# ── Positions ──


def test_positions_are_one_based():
    tokens, _ = tokenize("let x = 1;\n  print x;")
    positions = [(t.value, t.line, t.col) for t in tokens]
    assert positions == [
        ("let", 1, 1),
        ("x", 1, 5),
        ("=", 1, 7),
        ("1", 1, 9),
        (";", 1, 10),
        ("print", 2, 3),
        ("x", 2, 9),
        (";", 2, 10),
        ("", 2, 11),
    ]


# ── Errors ──


def test_unexpected_character_keeps_scanning():
    tokens, errors = tokenize("a # b")
    assert [t.value for t in tokens] == ["a", "b", ""]
    assert len(errors) == 1
    assert errors[0].msg == "unexpected character '#'"
    assert (errors[0].line, errors[0].col) == (1, 3)


def test_every_bad_character_is_reported():
    _, errors = tokenize("@ $\n!")
    assert [(e.msg, e.line, e.col) for e in errors] == [
        ("unexpected character '@'", 1, 1),
        ("unexpected character '$'", 1, 3),
        ("unexpected character '!'", 2, 1),
    ]


def test_bang_equal_is_fine():
    assert _values("a != b") == ["a", "!=", "b", ""]


def test_unterminated_string():
    tokens, errors = tokenize('print "abc')
    assert len(errors) == 1
    assert isinstance(errors[0], TokenizeError)
    assert str(errors[0]) == "unterminated string at line 1 col 7"
    assert tokens[-1].type == TK_EOF
