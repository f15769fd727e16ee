"""plox CLI — run .plox files or start a REPL."""

from __future__ import annotations

import sys
from typing import TextIO

from . import (
    EXIT_OK,
    EXIT_RUNTIME_ERROR,
    EXIT_STATIC_ERROR,
    StaticError,
    check,
    emit,
    parse_with_errors,
    run,
)
from .parse import Parser
from .resolve import Resolver
from .runtime import Interpreter, PloxRuntimeError, format_trace
from .tokens import tokenize

EXIT_USAGE = 2
EXIT_IO = 1

USAGE: str = """\
plox [OPTIONS] [FILE]

Run a plox program. Without FILE, start an interactive session.

Options:
  --tokens   Print the token stream and exit
  --emit     Print the parsed program in canonical form and exit
  --check    Run static analysis only, do not execute
  --help     Show this help message
"""


def _report_static(errors: list[StaticError], stderr: TextIO) -> None:
    for e in errors:
        print("plox: error: " + str(e), file=stderr)


def _report_runtime(err: PloxRuntimeError, stderr: TextIO) -> None:
    print("plox: runtime error: " + str(err), file=stderr)
    for line in format_trace(err):
        print(line, file=stderr)


def _brace_depth(source: str) -> int:
    """Unclosed '{' count, ignoring braces inside string literals."""
    depth = 0
    in_string = False
    for c in source:
        if c == '"':
            in_string = not in_string
        elif not in_string and c == "{":
            depth += 1
        elif not in_string and c == "}":
            depth -= 1
    return depth


class ReplSession:
    """Keeps globals and resolver state alive between REPL entries."""

    def __init__(self, stdout: TextIO, stderr: TextIO):
        self.interpreter = Interpreter(stdout=stdout)
        self.resolver = Resolver()
        self.stdout = stdout
        self.stderr = stderr

    def execute(self, source: str) -> int:
        tokens, lex_errors = tokenize(source)
        if lex_errors:
            _report_static(list(lex_errors), self.stderr)
            return EXIT_STATIC_ERROR
        parser = Parser(tokens)
        program, echo = parser.parse_repl_input()
        if parser.errors:
            _report_static(list(parser.errors), self.stderr)
            return EXIT_STATIC_ERROR
        locals_ = self.resolver.resolve(program)
        if self.resolver.errors:
            _report_static(list(self.resolver.errors), self.stderr)
            return EXIT_STATIC_ERROR
        try:
            if echo is not None:
                value = self.interpreter.evaluate(echo, locals_)
                self.stdout.write(value.to_string() + "\n")
            else:
                self.interpreter.interpret(program, locals_)
        except PloxRuntimeError as e:
            _report_runtime(e, self.stderr)
            return EXIT_RUNTIME_ERROR
        return EXIT_OK


def repl(stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    """Read entries until EOF; an entry with open braces continues on the next line."""
    session = ReplSession(stdout, stderr)
    interactive = stdin.isatty()
    buffer = ""
    while True:
        if interactive:
            stdout.write("> " if buffer == "" else ". ")
            stdout.flush()
        line = stdin.readline()
        if line == "":
            break
        buffer += line
        if _brace_depth(buffer) > 0:
            continue
        session.execute(buffer)
        buffer = ""
    if buffer.strip() != "":
        session.execute(buffer)
    if interactive:
        stdout.write("\n")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = argv if argv is not None else sys.argv[1:]
    filepath: str = ""
    mode = "run"
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return EXIT_OK
        elif arg == "--tokens":
            mode = "tokens"
            i += 1
        elif arg == "--emit":
            mode = "emit"
            i += 1
        elif arg == "--check":
            mode = "check"
            i += 1
        elif arg.startswith("-"):
            print("plox: unknown flag '" + arg + "'", file=sys.stderr)
            return EXIT_USAGE
        elif filepath == "":
            filepath = arg
            i += 1
        else:
            print("plox: unexpected argument '" + arg + "'", file=sys.stderr)
            return EXIT_USAGE

    if filepath == "":
        if mode != "run":
            print("plox: --" + mode + " requires a file argument", file=sys.stderr)
            return EXIT_USAGE
        return repl(sys.stdin, sys.stdout, sys.stderr)

    try:
        with open(filepath, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        print("plox: " + filepath + ": No such file or directory", file=sys.stderr)
        return EXIT_IO
    except OSError as e:
        print("plox: " + filepath + ": " + str(e), file=sys.stderr)
        return EXIT_IO
    try:
        source = raw.decode("utf-8")
    except ValueError:
        print("plox: " + filepath + ": invalid utf-8", file=sys.stderr)
        return EXIT_IO

    if mode == "tokens":
        tokens, lex_errors = tokenize(source)
        for tok in tokens:
            print(str(tok.line) + ":" + str(tok.col) + " " + tok.type + " " + tok.value)
        if lex_errors:
            _report_static(list(lex_errors), sys.stderr)
            return EXIT_STATIC_ERROR
        return EXIT_OK

    if mode == "emit":
        program, errors = parse_with_errors(source)
        if errors:
            _report_static(errors, sys.stderr)
            return EXIT_STATIC_ERROR
        sys.stdout.write(emit(program))
        return EXIT_OK

    if mode == "check":
        errors = check(source)
        if errors:
            _report_static(errors, sys.stderr)
            return EXIT_STATIC_ERROR
        return EXIT_OK

    result = run(source, stdout=sys.stdout)
    if result.exit_code == EXIT_RUNTIME_ERROR:
        print("plox: runtime error: " + result.errors[0], file=sys.stderr)
        for line in result.errors[1:]:
            print(line, file=sys.stderr)
    else:
        for msg in result.errors:
            print("plox: error: " + msg, file=sys.stderr)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
