"""Executable CLI entrypoint for ``flatc_provisioner``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

from flatc_provisioner.errors import (
    ConfigurationError,
    FlatcProvisionerError,
    ProcessError,
    RepositoryError,
)
from flatc_provisioner.observability.logging import redact_text

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    PROCESS_ERROR = 1
    CONFIG_ERROR = 2
    REPOSITORY_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m flatc_provisioner`` and the console script."""

    try:
        from flatc_provisioner.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except KeyboardInterrupt:
        _write_stderr("interrupted")
        return int(ExitCode.INTERNAL_ERROR)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = route_exception(exc)
        _emit_failure(exc, exit_code)
        return int(exit_code)


def exit_code_for_error(error: BaseException) -> ExitCode:
    """Map a single error to its exit code, ignoring causes."""

    if isinstance(error, ConfigurationError):
        return ExitCode.CONFIG_ERROR
    if isinstance(error, RepositoryError):
        return ExitCode.REPOSITORY_ERROR
    if isinstance(error, ProcessError):
        return ExitCode.PROCESS_ERROR
    return ExitCode.INTERNAL_ERROR


def route_exception(exc: BaseException) -> ExitCode:
    """Map ``exc`` to an exit code using the first typed error in its cause chain."""

    for item in _iter_exception_chain(exc):
        if isinstance(item, FlatcProvisionerError):
            return exit_code_for_error(item)
    return ExitCode.INTERNAL_ERROR


def _normalize_exit_code(raw_code: object) -> int:
    if isinstance(raw_code, int) and raw_code in {code.value for code in ExitCode}:
        return raw_code
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _iter_exception_chain(exc: BaseException) -> list[BaseException]:
    seen: set[int] = set()
    items: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None:
        marker = id(current)
        if marker in seen:
            break
        seen.add(marker)
        items.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
            continue
        if current.__context__ is not None and not current.__suppress_context__:
            current = current.__context__
            continue
        break
    return items


def _emit_failure(exc: BaseException, exit_code: ExitCode) -> None:
    if exit_code is ExitCode.INTERNAL_ERROR:
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return
    _write_stderr(f"error: {redact_text(str(exc).strip()) or exc.__class__.__name__}")


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint", "exit_code_for_error", "route_exception"]
