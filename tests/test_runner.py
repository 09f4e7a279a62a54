"""Test runner for PLC .tests files and .plc apps"""

import io
import signal
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from plclang import analyze as plc_analyze, parse as plc_parse
from plclang.errors import PlcError
from plclang.registry import TypeRegistry
from plclang.runtime import Interpreter
from plclang.values import VInt

PHASE_TIMEOUT = 5
TESTS_DIR = Path(__file__).parent

TESTS = {
    "plc_parse": {"dir": "parser", "run": "phase"},
    "plc_analyze": {"dir": "analyzer", "run": "phase"},
    "plc_run": {"dir": "interpreter", "run": "phase"},
    "plc_app": {"dir": "apps", "run": "plc_app"},
}


# ---------------------------------------------------------------------------
# Timeout
# ---------------------------------------------------------------------------


def _timeout_handler(signum, frame):
    raise TimeoutError("phase timed out")


signal.signal(signal.SIGALRM, _timeout_handler)


# ---------------------------------------------------------------------------
# .tests file parsing
# ---------------------------------------------------------------------------


def parse_tests_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse a .tests file into (name, input, expected) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
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
            test_input = "\n".join(input_lines)
            expected = "\n".join(expected_lines).strip()
            result.append((test_name, test_input, expected))
        else:
            i += 1
    return result


def discover_cases(test_dir: Path) -> list[tuple[str, str, str]]:
    """Glob *.tests in test_dir, return (test_id, input, expected) tuples."""
    results = []
    for test_file in sorted(test_dir.glob("*.tests")):
        for name, input_code, expected in parse_tests_file(test_file):
            results.append((f"{test_file.stem}/{name}", input_code, expected))
    return results


def discover_plc_apps(test_dir: Path) -> list[Path]:
    """Find all .plc files in a directory."""
    return sorted(test_dir.glob("*.plc"))


# ---------------------------------------------------------------------------
# Phase result + assertion checker
# ---------------------------------------------------------------------------


@dataclass
class PhaseResult:
    errors: list[str] = field(default_factory=list)
    data: dict | None = None


def resolve_dotpath(obj: object, path: str) -> object:
    """Resolve a dot-separated path against a nested dict/list structure."""
    current = obj
    for part in path.split("."):
        if part == "length":
            return len(current)
        if isinstance(current, list):
            current = current[int(part)]
        elif isinstance(current, dict):
            current = current[part]
        else:
            raise KeyError(
                f"cannot traverse {type(current).__name__} with key {part!r}"
            )
    return current


def to_comparable(value: object) -> str:
    """Convert a value to its string form for comparison."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def check_expected(expected: str, result: PhaseResult, phase: str) -> None:
    if expected == "ok":
        if result.errors:
            pytest.fail(f"Expected ok, got error: {result.errors[0]}")
        return
    if expected.startswith("error:"):
        expected_msg = expected[6:].strip()
        if not result.errors:
            pytest.fail(f"Expected error containing '{expected_msg}', got ok")
        found = any(expected_msg.lower() in e.lower() for e in result.errors)
        if not found:
            pytest.fail(
                f"Expected error containing '{expected_msg}', got: {result.errors}"
            )
        return
    # Dotpath assertions
    if result.errors:
        pytest.fail(f"{phase} failed: {result.errors[0]}")
    assert result.data is not None, f"No data returned from {phase}"
    for line in expected.split("\n"):
        line = line.strip()
        if not line:
            continue
        if "=" not in line:
            pytest.fail(f"Bad assertion (no '='): {line}")
        path, expected_val = line.split("=", 1)
        path = path.strip()
        expected_val = expected_val.strip()
        try:
            actual = resolve_dotpath(result.data, path)
        except (KeyError, IndexError, TypeError) as e:
            pytest.fail(f"Path '{path}' not found in result: {e}")
        actual_str = to_comparable(actual)
        if actual_str != expected_val:
            pytest.fail(
                f"Assertion failed: {path}\n"
                f"  expected: {expected_val!r}\n"
                f"  actual:   {actual_str!r}"
            )


def _describe_error(e: PlcError) -> str:
    return type(e).__name__ + ": " + str(e)


# ---------------------------------------------------------------------------
# Phase runners
# ---------------------------------------------------------------------------


def run_plc_parse(source: str) -> PhaseResult:
    try:
        signal.alarm(PHASE_TIMEOUT)
        program = plc_parse(source)
        return PhaseResult(
            data={
                "fields": [f.name for f in program.fields],
                "methods": [m.name for m in program.methods],
            }
        )
    except PlcError as e:
        return PhaseResult(errors=[_describe_error(e)])
    finally:
        signal.alarm(0)


def run_plc_analyze(source: str) -> PhaseResult:
    try:
        signal.alarm(PHASE_TIMEOUT)
        program = plc_analyze_source(source)
        return PhaseResult(
            data={"fields": {f.name: f.variable.typ.name for f in program.fields}}
        )
    except PlcError as e:
        return PhaseResult(errors=[_describe_error(e)])
    finally:
        signal.alarm(0)


def plc_analyze_source(source: str):
    program = plc_parse(source)
    plc_analyze(program)
    return program


def run_plc_run(source: str) -> PhaseResult:
    out = io.StringIO()
    try:
        signal.alarm(PHASE_TIMEOUT)
        program = plc_analyze_source(source)
        value = Interpreter(TypeRegistry(), out=out).run(program)
        lines = out.getvalue().split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        return PhaseResult(
            data={
                "result": value.to_string(),
                "type": value.type_name,
                "output": lines,
            }
        )
    except PlcError as e:
        return PhaseResult(errors=[_describe_error(e)])
    finally:
        signal.alarm(0)


# ---------------------------------------------------------------------------
# Parametrization
# ---------------------------------------------------------------------------


def pytest_generate_tests(metafunc):
    for name, cfg in TESTS.items():
        test_dir = TESTS_DIR / cfg["dir"]
        run = cfg["run"]
        if run == "phase":
            fixture = f"{name}_input"
            if fixture in metafunc.fixturenames:
                cases = discover_cases(test_dir)
                params = [pytest.param(inp, exp, id=tid) for tid, inp, exp in cases]
                metafunc.parametrize(f"{fixture},{name}_expected", params)
        elif run == "plc_app" and "plc_app" in metafunc.fixturenames:
            apps = discover_plc_apps(test_dir)
            params = [pytest.param(p, id=p.stem) for p in apps]
            metafunc.parametrize("plc_app", params)


# ---------------------------------------------------------------------------
# Test functions
# ---------------------------------------------------------------------------


def test_plc_parse(plc_parse_input, plc_parse_expected):
    check_expected(plc_parse_expected, run_plc_parse(plc_parse_input), "plc_parse")


def test_plc_analyze(plc_analyze_input, plc_analyze_expected):
    check_expected(
        plc_analyze_expected, run_plc_analyze(plc_analyze_input), "plc_analyze"
    )


def test_plc_run(plc_run_input, plc_run_expected):
    check_expected(plc_run_expected, run_plc_run(plc_run_input), "plc_run")


def test_plc_app(plc_app: Path):
    """Analyze and run a .plc program in-process. main returning 0 = pass."""
    out = io.StringIO()
    program = plc_analyze_source(plc_app.read_text())
    result = Interpreter(out=out).run(program)
    if not isinstance(result, VInt) or result.value != 0:
        pytest.fail(f"main returned {result.to_string()}:\n{out.getvalue().strip()}")
