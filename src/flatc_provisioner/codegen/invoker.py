"""
flatc-provisioner — compilation invoker

File: src/flatc_provisioner/codegen/invoker.py
Last updated: 2026-10-19

Purpose
- Validate a generation job and run ``flatc --java`` against it.

Functional requirements
- Validation order: generator flags, include directories, sources; first violation wins.
- Command layout: ``<flatc> --java -o <dest> [--gen-<flag> ...] [-I <dir> ...] <source> ...``.
- Generator flags are emitted in lexicographic order so the command is reproducible.
- The command runs from the invocation root; a non-zero exit keeps the full command line.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from flatc_provisioner.codegen.job import GenerationJob, GeneratorFlag, validate_job
from flatc_provisioner.constants import GENERATOR_FLAG_PREFIX, OUTPUT_LANGUAGE_FLAG
from flatc_provisioner.toolchain.shell import log_sink

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flatc_provisioner.toolchain.shell import CommandRunner

logger = logging.getLogger(__name__)


def build_command(
    job: GenerationJob,
    compiler_binary_path: Path | str,
    *,
    flags: Sequence[GeneratorFlag] | None = None,
) -> tuple[str, ...]:
    """Assemble the compiler argument vector for an already-validated ``job``."""

    ordered_flags = (
        flags
        if flags is not None
        else sorted((GeneratorFlag(item) for item in job.generator_flags), key=lambda f: f.value)
    )
    command: list[str] = [str(compiler_binary_path), OUTPUT_LANGUAGE_FLAG, "-o", job.destination]
    command.extend(f"{GENERATOR_FLAG_PREFIX}{flag.value}" for flag in ordered_flags)
    for include in job.include_directories:
        command.extend(("-I", include))
    command.extend(job.sources)
    return tuple(command)


class CompilationInvoker:
    """Run ``flatc`` for a generation job from the invocation root."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        working_dir: Path | str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._runner = runner
        self._working_dir = Path(working_dir) if working_dir is not None else Path.cwd()
        self._timeout_seconds = timeout_seconds

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    def validate(self, job: GenerationJob) -> tuple[GeneratorFlag, ...]:
        return validate_job(job, root=self._working_dir)

    def invoke(self, job: GenerationJob, compiler_binary_path: Path | str) -> tuple[str, ...]:
        flags = self.validate(job)
        command = build_command(job, compiler_binary_path, flags=flags)

        logger.info("generate java sources using: %s", " ".join(command))
        self._runner.run(
            command,
            cwd=self._working_dir,
            sink=log_sink("flatc"),
            timeout_seconds=self._timeout_seconds,
        )
        logger.info("class generation completed successfully")
        return command


__all__ = ["CompilationInvoker", "build_command"]
