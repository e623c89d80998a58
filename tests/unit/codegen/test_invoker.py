"""
flatc-provisioner — unit tests for the compilation invoker

File: tests/unit/codegen/test_invoker.py
Last updated: 2026-10-19

Purpose
- Validate generation-job validation and the exact flatc command line.

What this test file should cover
- Each invalid input is rejected independently and before any process is spawned.
- Validation order: generator flags, include directories, sources.
- Argument grouping: output flags < generator flags < includes < sources.
- Generator flags are de-duplicated and sorted.
- A failing flatc surfaces a ProcessError carrying the full command text.
- Property: the command is independent of flag order and duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import given, seed, settings
from hypothesis import strategies as st

from flatc_provisioner.codegen import (
    CompilationInvoker,
    GenerationJob,
    GeneratorFlag,
    build_command,
)
from flatc_provisioner.errors import InvalidConfigurationError, ProcessError
from flatc_provisioner.toolchain.shell import CommandResult

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from flatc_provisioner.toolchain.shell import LineSink


@dataclass
class FakeRunner:
    exit_code: int = 0
    calls: list[tuple[tuple[str, ...], Path]] = field(default_factory=list)

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        sink: LineSink | None = None,
        timeout_seconds: float | None = None,
        check: bool = True,
        capture: bool = False,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        argv = tuple(command)
        self.calls.append((argv, cwd))
        if check and self.exit_code != 0:
            raise ProcessError(command=argv, exit_code=self.exit_code)
        return CommandResult(command=argv, cwd=cwd, exit_code=self.exit_code)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "a.fbs").write_text("table A {}\n", encoding="utf-8")
    (tmp_path / "b.fbs").write_text("table B {}\n", encoding="utf-8")
    (tmp_path / "inc1").mkdir()
    (tmp_path / "inc2").mkdir()
    return tmp_path


def test_minimal_job_command(workspace: Path) -> None:
    runner = FakeRunner()
    invoker = CompilationInvoker(runner, working_dir=workspace)
    job = GenerationJob.create(["a.fbs"], destination="out")

    command = invoker.invoke(job, "/cache/flatc")

    assert command == ("/cache/flatc", "--java", "-o", "out", "a.fbs")
    assert runner.calls == [(command, workspace)]


def test_argument_grouping_and_sorted_flags(workspace: Path) -> None:
    job = GenerationJob.create(
        ["a.fbs", "b.fbs"],
        include_directories=["inc1", "inc2"],
        generator_flags=["nullable", "all", "mutable", "all"],
        destination="out",
    )
    invoker = CompilationInvoker(FakeRunner(), working_dir=workspace)

    command = invoker.invoke(job, "/cache/flatc")

    assert command == (
        "/cache/flatc",
        "--java",
        "-o",
        "out",
        "--gen-all",
        "--gen-mutable",
        "--gen-nullable",
        "-I",
        "inc1",
        "-I",
        "inc2",
        "a.fbs",
        "b.fbs",
    )


def test_flag_order_does_not_change_command(workspace: Path) -> None:
    first = GenerationJob.create(["a.fbs"], generator_flags=["mutable", "generated"])
    second = GenerationJob.create(["a.fbs"], generator_flags=["generated", "mutable"])

    assert build_command(first, "flatc") == build_command(second, "flatc")


def test_duplicate_sources_and_includes_are_dropped_in_order() -> None:
    job = GenerationJob.create(["b.fbs", "a.fbs", "b.fbs"], include_directories=["x", "x"])

    assert job.sources == ("b.fbs", "a.fbs")
    assert job.include_directories == ("x",)


def test_empty_sources_rejected_without_spawn(workspace: Path) -> None:
    runner = FakeRunner()
    invoker = CompilationInvoker(runner, working_dir=workspace)

    with pytest.raises(InvalidConfigurationError, match="At least one source"):
        invoker.invoke(GenerationJob.create([]), "/cache/flatc")

    assert runner.calls == []


def test_missing_source_rejected_without_spawn(workspace: Path) -> None:
    runner = FakeRunner()
    invoker = CompilationInvoker(runner, working_dir=workspace)

    with pytest.raises(InvalidConfigurationError) as excinfo:
        invoker.invoke(GenerationJob.create(["a.fbs", "missing.fbs"]), "/cache/flatc")

    assert excinfo.value.value == "missing.fbs"
    assert runner.calls == []


def test_missing_include_rejected_without_spawn(workspace: Path) -> None:
    runner = FakeRunner()
    invoker = CompilationInvoker(runner, working_dir=workspace)

    with pytest.raises(InvalidConfigurationError, match="include directory nope"):
        invoker.invoke(
            GenerationJob.create(["a.fbs"], include_directories=["nope"]), "/cache/flatc"
        )

    assert runner.calls == []


def test_include_that_is_a_file_is_rejected(workspace: Path) -> None:
    invoker = CompilationInvoker(FakeRunner(), working_dir=workspace)

    with pytest.raises(InvalidConfigurationError):
        invoker.validate(GenerationJob.create(["a.fbs"], include_directories=["a.fbs"]))


def test_unknown_flag_rejected_without_spawn(workspace: Path) -> None:
    runner = FakeRunner()
    invoker = CompilationInvoker(runner, working_dir=workspace)

    with pytest.raises(InvalidConfigurationError) as excinfo:
        invoker.invoke(GenerationJob.create(["a.fbs"], generator_flags=["bogus"]), "flatc")

    assert excinfo.value.value == "bogus"
    assert "all, generated, mutable, nullable" in str(excinfo.value)
    assert runner.calls == []


def test_flags_are_validated_before_includes_and_sources(workspace: Path) -> None:
    invoker = CompilationInvoker(FakeRunner(), working_dir=workspace)
    job = GenerationJob.create(
        ["missing.fbs"], include_directories=["nope"], generator_flags=["bad"]
    )

    with pytest.raises(InvalidConfigurationError) as excinfo:
        invoker.validate(job)
    assert excinfo.value.value == "bad"

    job = GenerationJob.create(["missing.fbs"], include_directories=["nope"])
    with pytest.raises(InvalidConfigurationError) as excinfo:
        invoker.validate(job)
    assert excinfo.value.value == "nope"


def test_absolute_paths_are_checked_as_given(
    workspace: Path, tmp_path_factory: pytest.TempPathFactory
) -> None:
    elsewhere = tmp_path_factory.mktemp("elsewhere")
    schema = elsewhere / "c.fbs"
    schema.write_text("table C {}\n", encoding="utf-8")
    invoker = CompilationInvoker(FakeRunner(), working_dir=workspace)

    flags = invoker.validate(GenerationJob.create([schema], generator_flags=["generated"]))

    assert flags == (GeneratorFlag.GENERATED,)


def test_failing_flatc_reports_full_command(workspace: Path) -> None:
    invoker = CompilationInvoker(FakeRunner(exit_code=1), working_dir=workspace)

    with pytest.raises(ProcessError) as excinfo:
        invoker.invoke(GenerationJob.create(["a.fbs"], destination="out"), "/cache/flatc")

    assert excinfo.value.exit_code == 1
    assert "/cache/flatc --java -o out a.fbs" in str(excinfo.value)


@settings(max_examples=50, derandomize=True, deadline=None)
@seed(20261019)
@given(
    flags=st.lists(st.sampled_from(GeneratorFlag.values()), max_size=8),
    sources=st.lists(st.sampled_from(("a.fbs", "b.fbs", "c.fbs")), min_size=1, max_size=5),
)
def test_property_command_layout_is_canonical(flags: list[str], sources: list[str]) -> None:
    job = GenerationJob.create(sources, generator_flags=flags, destination="out")
    shuffled = GenerationJob.create(
        sources, generator_flags=list(reversed(flags)), destination="out"
    )

    command = build_command(job, "flatc")

    assert command == build_command(shuffled, "flatc")
    assert command[:4] == ("flatc", "--java", "-o", "out")
    emitted = [item for item in command if item.startswith("--gen-")]
    assert emitted == sorted({f"--gen-{flag}" for flag in flags})
    assert command[4 + len(emitted) :] == tuple(dict.fromkeys(sources))
