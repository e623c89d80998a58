"""Error hierarchy for toolchain provisioning and code generation failures."""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class FlatcProvisionerError(RuntimeError):
    """Base error for every fatal pipeline failure."""


class ConfigurationError(FlatcProvisionerError, ValueError):
    """Raised when user-supplied configuration is unusable."""


class InvalidConfigurationError(ConfigurationError):
    """Raised when a single generation parameter is invalid."""

    def __init__(self, message: str, *, value: object) -> None:
        self.value = value
        super().__init__(message)


class RepositoryError(FlatcProvisionerError):
    """Raised when the toolchain working copy cannot be opened or cloned."""


class CheckoutError(RepositoryError):
    """Raised when the requested release tag cannot be checked out."""

    def __init__(self, message: str, *, tag: str) -> None:
        self.tag = tag
        super().__init__(message)


class ProcessError(FlatcProvisionerError):
    """Raised when an external command cannot start, times out, or exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        exit_code: int | None,
        reason: str | None = None,
        output_tail: Sequence[str] = (),
    ) -> None:
        self.command = tuple(command)
        self.exit_code = exit_code
        self.reason = reason
        self.output_tail = tuple(output_tail)
        super().__init__(self._render())

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    def _render(self) -> str:
        if self.reason is not None:
            message = f"process '{self.command_line}' {self.reason}"
        else:
            message = f"process '{self.command_line}' exited with non-zero status {self.exit_code}"
        if self.output_tail:
            message = f"{message}\n" + "\n".join(f"  | {line}" for line in self.output_tail)
        return message


class BuildStepError(ProcessError):
    """Raised when a native toolchain build step fails."""

    def __init__(
        self,
        *,
        step: str,
        command: Sequence[str],
        exit_code: int | None,
        reason: str | None = None,
        output_tail: Sequence[str] = (),
    ) -> None:
        self.step = step
        super().__init__(
            command=command,
            exit_code=exit_code,
            reason=reason,
            output_tail=output_tail,
        )

    def _render(self) -> str:
        return f"build step {self.step!r} failed: {super()._render()}"


__all__ = [
    "BuildStepError",
    "CheckoutError",
    "ConfigurationError",
    "FlatcProvisionerError",
    "InvalidConfigurationError",
    "ProcessError",
    "RepositoryError",
]
