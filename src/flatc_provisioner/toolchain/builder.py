"""Native build of the flatc compiler from a provisioned working copy."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from flatc_provisioner.constants import COMPILE_COMMAND, CONFIGURE_COMMAND
from flatc_provisioner.errors import BuildStepError, ProcessError
from flatc_provisioner.toolchain.prober import flatc_binary_path
from flatc_provisioner.toolchain.shell import log_sink

if TYPE_CHECKING:
    from collections.abc import Callable

    from flatc_provisioner.toolchain.shell import CommandRunner


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildStep:
    """One native build step, run from the working copy root."""

    name: str
    command: tuple[str, ...]


def default_build_steps(*, jobs: int = 0) -> tuple[BuildStep, ...]:
    """Return ``cmake .`` followed by ``make`` (with ``-j<jobs>`` when ``jobs > 0``)."""

    if jobs < 0:
        raise ValueError("jobs must be >= 0")
    compile_command = COMPILE_COMMAND if jobs == 0 else (*COMPILE_COMMAND, f"-j{jobs}")
    return (
        BuildStep(name="configure", command=CONFIGURE_COMMAND),
        BuildStep(name="compile", command=compile_command),
    )


class ToolchainBuilder:
    """Run the configure and compile steps strictly in sequence.

    The first failing step aborts the build; later steps never run. Whatever the
    failed step left behind stays on disk until the next reset.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        steps: tuple[BuildStep, ...] | None = None,
        timeout_seconds: float | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self._runner = runner
        self._steps = steps if steps is not None else default_build_steps()
        if not self._steps:
            raise ValueError("at least one build step is required")
        self._timeout_seconds = timeout_seconds
        self._which = which

    @property
    def steps(self) -> tuple[BuildStep, ...]:
        return self._steps

    def build(self, working_copy_dir: Path | str) -> Path:
        directory = Path(working_copy_dir)
        self._require_tools()

        for step in self._steps:
            logger.info("build step %s: %s", step.name, " ".join(step.command))
            try:
                self._runner.run(
                    step.command,
                    cwd=directory,
                    sink=log_sink(step.command[0]),
                    timeout_seconds=self._timeout_seconds,
                )
            except BuildStepError:
                raise
            except ProcessError as exc:
                raise BuildStepError(
                    step=step.name,
                    command=exc.command,
                    exit_code=exc.exit_code,
                    reason=exc.reason,
                    output_tail=exc.output_tail,
                ) from exc

        binary = flatc_binary_path(directory)
        if not binary.is_file():
            last = self._steps[-1]
            raise BuildStepError(
                step=last.name,
                command=last.command,
                exit_code=0,
                reason=f"completed but did not produce {binary}",
            )
        logger.info("built %s", binary)
        return binary

    def _require_tools(self) -> None:
        for step in self._steps:
            tool = step.command[0]
            if self._which(tool) is None:
                raise BuildStepError(
                    step=step.name,
                    command=step.command,
                    exit_code=None,
                    reason=f"cannot run: {tool!r} was not found on PATH",
                )


__all__ = ["BuildStep", "ToolchainBuilder", "default_build_steps"]
