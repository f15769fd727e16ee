"""plox interpreter — public API."""

from __future__ import annotations

import io
from typing import TextIO, Union

from .ast import Program
from .emit import to_source
from .parse import ParseError as ParseError, Parser
from .resolve import ResolveError as ResolveError, Resolver
from .runtime import (
    Interpreter as Interpreter,
    PloxRuntimeError as PloxRuntimeError,
    RunResult as RunResult,
    format_trace,
)
from .tokens import TokenizeError as TokenizeError, tokenize as tokenize

EXIT_OK = 0
EXIT_STATIC_ERROR = 65
EXIT_RUNTIME_ERROR = 70

StaticError = Union[TokenizeError, ParseError, ResolveError]


class SyntaxErrors(Exception):
    """Raised by `parse` when the source has lexical or syntax errors."""

    def __init__(self, errors: list[StaticError]):
        self.errors: list[StaticError] = errors
        super().__init__("; ".join(str(e) for e in errors))


def parse_with_errors(source: str) -> tuple[Program, list[StaticError]]:
    """Tokenize and parse, returning the (possibly partial) program and all errors."""
    tokens, lex_errors = tokenize(source)
    parser = Parser(tokens)
    program = parser.parse_program()
    errors: list[StaticError] = []
    errors.extend(lex_errors)
    errors.extend(parser.errors)
    return program, errors


def parse(source: str) -> Program:
    """Parse plox source code into a Program AST."""
    program, errors = parse_with_errors(source)
    if errors:
        raise SyntaxErrors(errors)
    return program


def check(source: str) -> list[StaticError]:
    """Parse and resolve plox source. Returns list of errors (empty = runnable)."""
    program, errors = parse_with_errors(source)
    if errors:
        return errors
    resolver = Resolver()
    resolver.resolve(program)
    return list(resolver.errors)


def emit(program: Program) -> str:
    """Emit a `Program` AST as canonical plox source."""
    return to_source(program)


def _captured(out: TextIO, stdout: TextIO | None) -> str:
    if stdout is None and isinstance(out, io.StringIO):
        return out.getvalue()
    return ""


def run(source: str, *, stdout: TextIO | None = None) -> RunResult:
    """Run plox source end to end.

    Program output goes to ``stdout`` when given, otherwise it is captured in
    the returned result. Static errors stop before anything executes.
    """
    out: TextIO = stdout if stdout is not None else io.StringIO()
    program, errors = parse_with_errors(source)
    if errors:
        return RunResult(EXIT_STATIC_ERROR, "", [str(e) for e in errors])
    resolver = Resolver()
    locals_ = resolver.resolve(program)
    if resolver.errors:
        return RunResult(EXIT_STATIC_ERROR, "", [str(e) for e in resolver.errors])
    interpreter = Interpreter(stdout=out)
    try:
        interpreter.interpret(program, locals_)
    except PloxRuntimeError as e:
        return RunResult(
            EXIT_RUNTIME_ERROR, _captured(out, stdout), [str(e)] + format_trace(e)
        )
    return RunResult(EXIT_OK, _captured(out, stdout), [])
