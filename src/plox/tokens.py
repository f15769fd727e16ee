"""plox tokenizer — lexes source into a flat token list."""

from __future__ import annotations


# Token type constants
TK_NUMBER = "NUMBER"
TK_STRING = "STRING"
TK_IDENT = "IDENT"
TK_OP = "OP"
TK_EOF = "EOF"

KEYWORDS: set[str] = {
    "and",
    "class",
    "else",
    "expands",
    "false",
    "for",
    "fun",
    "if",
    "let",
    "nil",
    "not",
    "or",
    "print",
    "pub",
    "return",
    "super",
    "this",
    "true",
    "while",
}

# Two-character operators, checked before the single-character ones
MULTI_OPS: list[str] = [
    "==",
    "!=",
    "<=",
    ">=",
    "<>",
]

SINGLE_OPS: set[str] = {
    "(",
    ")",
    "{",
    "}",
    ",",
    ".",
    ";",
    "+",
    "-",
    "*",
    "/",
    "=",
    "<",
    ">",
}


class TokenizeError(Exception):
    """Error during tokenization."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


class Token:
    """A token with type, raw lexeme, decoded literal and position."""

    def __init__(
        self,
        type_: str,
        value: str,
        line: int,
        col: int,
        literal: float | str | None = None,
    ):
        self.type: str = type_
        self.value: str = value
        self.line: int = line
        self.col: int = col
        self.literal: float | str | None = literal

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.value)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def tokenize(source: str) -> tuple[list[Token], list[TokenizeError]]:
    """Tokenize plox source into a flat list ending with TK_EOF.

    Errors do not stop the scan (except an unterminated string, which runs to
    the end of the input); they are collected and returned alongside the tokens.
    """
    tokens: list[Token] = []
    errors: list[TokenizeError] = []
    pos = 0
    line = 1
    col = 1
    length = len(source)

    while pos < length:
        c = source[pos]

        # Newlines
        if c == "\n":
            pos += 1
            line += 1
            col = 1
            continue

        # Whitespace
        if c == " " or c == "\t" or c == "\r":
            pos += 1
            col += 1
            continue

        start_pos = pos
        start_line = line
        start_col = col

        # Number: digits ( '.' digits )?
        if _is_digit(c):
            while pos < length and _is_digit(source[pos]):
                pos += 1
                col += 1
            if (
                pos + 1 < length
                and source[pos] == "."
                and _is_digit(source[pos + 1])
            ):
                pos += 1
                col += 1
                while pos < length and _is_digit(source[pos]):
                    pos += 1
                    col += 1
            raw = source[start_pos:pos]
            tokens.append(Token(TK_NUMBER, raw, start_line, start_col, float(raw)))
            continue

        # String literal: "...", may span lines, no escapes
        if c == '"':
            pos += 1
            col += 1
            while pos < length and source[pos] != '"':
                if source[pos] == "\n":
                    line += 1
                    col = 1
                else:
                    col += 1
                pos += 1
            if pos >= length:
                errors.append(
                    TokenizeError("unterminated string", start_line, start_col)
                )
                break
            pos += 1  # skip closing "
            col += 1
            raw = source[start_pos:pos]
            tokens.append(Token(TK_STRING, raw, start_line, start_col, raw[1:-1]))
            continue

        # Identifier or keyword
        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
                col += 1
            word = source[start_pos:pos]
            if word in KEYWORDS:
                tokens.append(Token(word, word, start_line, start_col))
            else:
                tokens.append(Token(TK_IDENT, word, start_line, start_col))
            continue

        # Two-character operators
        two = source[pos : pos + 2]
        if two in MULTI_OPS:
            tokens.append(Token(TK_OP, two, start_line, start_col))
            pos += 2
            col += 2
            continue

        # Single-character operators
        if c in SINGLE_OPS:
            tokens.append(Token(TK_OP, c, start_line, start_col))
            pos += 1
            col += 1
            continue

        errors.append(
            TokenizeError("unexpected character " + repr(c), start_line, start_col)
        )
        pos += 1
        col += 1

    tokens.append(Token(TK_EOF, "", line, col))
    return tokens, errors
