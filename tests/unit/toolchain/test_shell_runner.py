"""
flatc-provisioner — unit tests for the asyncio shell runner

File: tests/unit/toolchain/test_shell_runner.py
Last updated: 2026-10-19

Purpose
- Validate ordered line streaming, failure reporting, and timeouts of AsyncioShellRunner.

What this test file should cover
- stdout and stderr lines arrive at the sink in emission order.
- Output emitted before a failure is delivered before the error is raised.
- Spawn failures, non-zero exits and timeouts surface as ProcessError.

Functional requirements
- Offline; uses the current Python interpreter as the child process.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import pytest

from flatc_provisioner.errors import ProcessError
from flatc_provisioner.toolchain.shell import AsyncioShellRunner

if TYPE_CHECKING:
    from pathlib import Path


def _python(code: str) -> tuple[str, ...]:
    return (sys.executable, "-c", code)


def test_sink_receives_every_line_in_order(tmp_path: Path) -> None:
    lines: list[str] = []
    runner = AsyncioShellRunner()

    result = runner.run(
        _python(
            "import sys\n"
            "for i in range(50):\n"
            "    stream = sys.stdout if i % 2 == 0 else sys.stderr\n"
            "    print(f'line {i}', file=stream, flush=True)\n"
        ),
        cwd=tmp_path,
        sink=lines.append,
    )

    assert result.ok
    assert lines == [f"line {i}" for i in range(50)]


def test_capture_collects_lines_without_sink(tmp_path: Path) -> None:
    runner = AsyncioShellRunner()

    result = runner.run(_python("print('a'); print('b')"), cwd=tmp_path, capture=True)

    assert result.lines == ("a", "b")
    assert result.exit_code == 0


def test_runs_in_requested_working_directory(tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()
    runner = AsyncioShellRunner()

    result = runner.run(_python("import os; print(os.getcwd())"), cwd=workdir, capture=True)

    assert result.lines[0] == str(workdir.resolve())


def test_non_zero_exit_delivers_output_then_raises(tmp_path: Path) -> None:
    lines: list[str] = []
    runner = AsyncioShellRunner()

    with pytest.raises(ProcessError) as excinfo:
        runner.run(
            _python("print('before failure', flush=True); raise SystemExit(3)"),
            cwd=tmp_path,
            sink=lines.append,
        )

    assert lines == ["before failure"]
    assert excinfo.value.exit_code == 3
    assert excinfo.value.output_tail == ("before failure",)
    assert sys.executable in str(excinfo.value)


def test_check_false_returns_exit_code(tmp_path: Path) -> None:
    runner = AsyncioShellRunner()

    result = runner.run(_python("raise SystemExit(1)"), cwd=tmp_path, check=False)

    assert result.exit_code == 1
    assert not result.ok


def test_missing_executable_raises_process_error(tmp_path: Path) -> None:
    runner = AsyncioShellRunner()

    with pytest.raises(ProcessError) as excinfo:
        runner.run(("definitely-not-a-real-binary-xyz",), cwd=tmp_path)

    assert excinfo.value.exit_code is None
    assert "could not be started" in str(excinfo.value)


def test_timeout_terminates_process(tmp_path: Path) -> None:
    lines: list[str] = []
    runner = AsyncioShellRunner()

    with pytest.raises(ProcessError) as excinfo:
        runner.run(
            _python("import time; print('started', flush=True); time.sleep(30)"),
            cwd=tmp_path,
            sink=lines.append,
            timeout_seconds=1.0,
        )

    assert "timed out" in str(excinfo.value)
    assert lines == ["started"]


def test_env_overrides_reach_child(tmp_path: Path) -> None:
    runner = AsyncioShellRunner(env_overrides={"FLATC_TEST_MARKER": "outer"})

    result = runner.run(
        _python("import os; print(os.environ['FLATC_TEST_MARKER'], os.environ['EXTRA'])"),
        cwd=tmp_path,
        capture=True,
        env={"EXTRA": "inner"},
    )

    assert result.lines == ("outer inner",)


def test_failing_sink_stops_the_process(tmp_path: Path) -> None:
    runner = AsyncioShellRunner()

    def _boom(line: str) -> None:
        raise RuntimeError(f"sink rejected {line}")

    with pytest.raises(RuntimeError, match="sink rejected first"):
        runner.run(
            _python("import time; print('first', flush=True); time.sleep(30)"),
            cwd=tmp_path,
            sink=_boom,
        )


def test_rejects_empty_command(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        AsyncioShellRunner().run((), cwd=tmp_path)


def test_lines_longer_than_the_stream_buffer_are_delivered_whole(tmp_path: Path) -> None:
    lines: list[str] = []
    runner = AsyncioShellRunner()

    result = runner.run(
        _python(
            "import sys\n"
            "sys.stdout.write('x' * 200000 + '\\n')\n"
            "sys.stdout.write('after\\n')\n"
            "sys.stdout.write('y' * 100000)\n"
        ),
        cwd=tmp_path,
        sink=lines.append,
    )

    assert result.ok
    assert [len(line) for line in lines] == [200000, 5, 100000]
    assert lines[1] == "after"
