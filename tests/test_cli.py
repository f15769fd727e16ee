"""CLI tests for the plox entry point.

Test cases live in cli/*.tests files. Format:

    === test name
    args: --check {file}
    source code here
    ---
    exit: 65
    stderr-contains: can't return
    ---

Input section:
    args:   CLI arguments (first line, required). When they mention {file},
            the rest of the input is written to a temporary .plox file whose
            path replaces {file}; otherwise it is fed to the process as stdin.

Assertion directives in the expected section:
    exit:             exact exit code
    stdout:           one line of the exact stdout (repeat for more lines)
    stdout-contains:  stdout must contain substring
    stdout-empty:     stdout must be empty
    stderr-contains:  stderr must contain substring
    stderr-empty:     stderr must be empty
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

CLI_DIR = Path(__file__).parent / "cli"
SRC_DIR = Path(__file__).parent.parent / "src"
CLI_TIMEOUT = 30


def parse_cli_test_file(path: Path) -> list[tuple[str, dict]]:
    """Parse a .tests file into (name, spec) tuples.

    Each spec dict has keys: args, source, stdout, assertions.
    """
    lines = path.read_text().split("\n")
    result: list[tuple[str, dict]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            result.append((test_name, _parse_spec(input_lines, expected_lines)))
        else:
            i += 1
    return result


def _parse_spec(input_lines: list[str], expected_lines: list[str]) -> dict:
    """Parse input + expected lines into a test spec dict."""
    spec: dict = {
        "args": [],
        "source": "",
        "stdout": None,
        "assertions": [],
    }
    body_start = 0
    if input_lines and input_lines[0].startswith("args:"):
        args_str = input_lines[0][5:].strip()
        spec["args"] = args_str.split() if args_str else []
        body_start = 1
    spec["source"] = "\n".join(input_lines[body_start:]) + "\n"

    stdout_lines: list[str] = []
    for line in expected_lines:
        line = line.strip()
        if not line:
            continue
        if line.startswith("exit:"):
            spec["assertions"].append(("exit", int(line[5:].strip())))
        elif line.startswith("stdout:"):
            stdout_lines.append(line[7:].strip())
        elif line.startswith("stdout-contains:"):
            spec["assertions"].append(("stdout-contains", line[16:].strip()))
        elif line.startswith("stdout-empty:"):
            spec["assertions"].append(("stdout-empty", None))
        elif line.startswith("stderr-contains:"):
            spec["assertions"].append(("stderr-contains", line[16:].strip()))
        elif line.startswith("stderr-empty:"):
            spec["assertions"].append(("stderr-empty", None))
    if stdout_lines:
        spec["assertions"].append(("stdout", "\n".join(stdout_lines)))
    return spec


def discover_cli_tests() -> list[tuple[str, dict]]:
    """Find all CLI tests across .tests files."""
    results = []
    for test_file in sorted(CLI_DIR.glob("*.tests")):
        for name, spec in parse_cli_test_file(test_file):
            results.append((f"{test_file.stem}/{name}", spec))
    return results


def run_cli(spec: dict, tmp_path: Path) -> subprocess.CompletedProcess[bytes]:
    """Run the plox CLI from a test spec."""
    args = list(spec["args"])
    stdin_data = b""
    if any("{file}" in a for a in args):
        prog = tmp_path / "prog.plox"
        prog.write_text(spec["source"])
        args = [a.replace("{file}", str(prog)) for a in args]
    else:
        stdin_data = spec["source"].encode()
    env = dict(os.environ)
    env["PYTHONPATH"] = str(SRC_DIR) + os.pathsep + env.get("PYTHONPATH", "")
    return subprocess.run(
        [sys.executable, "-m", "plox.cli", *args],
        input=stdin_data,
        capture_output=True,
        env=env,
        timeout=CLI_TIMEOUT,
    )


def check_assertions(
    result: subprocess.CompletedProcess[bytes], assertions: list[tuple]
) -> None:
    """Check all assertions against a CLI result."""
    stdout = result.stdout.decode(errors="replace")
    stderr = result.stderr.decode(errors="replace")
    for kind, value in assertions:
        if kind == "exit":
            assert result.returncode == value, (
                f"expected exit {value}, got {result.returncode}\nstderr: {stderr}"
            )
        elif kind == "stdout":
            actual = stdout.replace("\r\n", "\n").rstrip("\n")
            assert actual == value, f"expected stdout {value!r}, got {actual!r}"
        elif kind == "stdout-contains":
            assert value in stdout, f"expected stdout to contain {value!r}, got {stdout!r}"
        elif kind == "stdout-empty":
            assert stdout == "", f"expected empty stdout, got {stdout[:200]!r}"
        elif kind == "stderr-contains":
            assert value in stderr, f"expected stderr to contain {value!r}, got {stderr!r}"
        elif kind == "stderr-empty":
            assert stderr == "", f"expected empty stderr, got {stderr!r}"


def pytest_generate_tests(metafunc):
    """Parametrize test_cli over all .tests files."""
    if "cli_spec" in metafunc.fixturenames:
        tests = discover_cli_tests()
        params = [pytest.param(spec, id=test_id) for test_id, spec in tests]
        metafunc.parametrize("cli_spec", params)


def test_cli(cli_spec: dict, tmp_path: Path) -> None:
    """Run a single CLI test case from .tests file."""
    result = run_cli(cli_spec, tmp_path)
    check_assertions(result, cli_spec["assertions"])
