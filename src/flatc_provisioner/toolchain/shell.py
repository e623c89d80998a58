"""
flatc-provisioner — shell command runner

File: src/flatc_provisioner/toolchain/shell.py
Last updated: 2026-10-19

Purpose
- The single place where external processes (git, cmake, make, flatc) are spawned.

Functional requirements
- Stream every stdout line (stderr merged) to a caller-supplied sink, in order, as it arrives.
- Deliver all output emitted before a failure, and drain fully before reporting the exit code.
- Raise ``ProcessError`` on spawn failure, timeout, or non-zero exit (unless ``check=False``).

Non-functional requirements
- Draining runs as an asyncio task joined before ``run`` returns; no unmanaged threads.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final, Protocol

from flatc_provisioner.errors import ProcessError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

LineSink = Callable[[str], None]

_OUTPUT_TAIL_LINES: Final[int] = 20
_READ_CHUNK_BYTES: Final[int] = 65536
# Longer unterminated output is delivered in pieces of this size.
_MAX_LINE_BYTES: Final[int] = 1024 * 1024
_DRAIN_GRACE_SECONDS: Final[float] = 2.0

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one external command.

    ``lines`` is populated only when the caller asked for capture.
    """

    command: tuple[str, ...]
    cwd: Path
    exit_code: int
    lines: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner(Protocol):
    """Injectable process runner used by every toolchain component."""

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
    ) -> CommandResult: ...


def log_sink(prefix: str, *, target: logging.Logger | None = None) -> LineSink:
    """Return a sink that forwards each output line to the log at INFO."""

    sink_logger = target or logger

    def _emit(line: str) -> None:
        sink_logger.info("[%s] %s", prefix, line)

    return _emit


class AsyncioShellRunner:
    """Default runner backed by ``asyncio.create_subprocess_exec``."""

    def __init__(
        self,
        *,
        default_timeout_seconds: float | None = None,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        if default_timeout_seconds is not None and default_timeout_seconds <= 0:
            raise ValueError("default_timeout_seconds must be > 0")
        self._default_timeout = default_timeout_seconds
        self._env_overrides = dict(env_overrides or {})

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
        if not argv:
            raise ValueError("command must not be empty")
        timeout = timeout_seconds if timeout_seconds is not None else self._default_timeout
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout_seconds must be > 0")

        merged_env = os.environ.copy()
        merged_env.update(self._env_overrides)
        if env:
            merged_env.update(env)

        logger.debug("running %s (cwd=%s)", " ".join(argv), cwd)
        result = asyncio.run(
            self._run_async(
                argv,
                cwd=Path(cwd),
                sink=sink,
                timeout=timeout,
                capture=capture,
                env=merged_env,
                check=check,
            )
        )
        return result

    async def _run_async(
        self,
        argv: tuple[str, ...],
        *,
        cwd: Path,
        sink: LineSink | None,
        timeout: float | None,
        capture: bool,
        env: dict[str, str],
        check: bool,
    ) -> CommandResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise ProcessError(
                command=argv,
                exit_code=None,
                reason=f"could not be started: {exc.strerror or exc}",
            ) from exc

        tail: deque[str] = deque(maxlen=_OUTPUT_TAIL_LINES)
        captured: list[str] = []

        def _deliver(raw: bytes) -> None:
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            tail.append(line)
            if capture:
                captured.append(line)
            if sink is not None:
                sink(line)

        async def _drain() -> None:
            assert proc.stdout is not None  # noqa: S101
            pending = bytearray()
            while True:
                try:
                    chunk = await proc.stdout.read(_READ_CHUNK_BYTES)
                except (OSError, ValueError) as exc:
                    raise ProcessError(
                        command=argv,
                        exit_code=None,
                        reason=f"output could not be read: {exc}",
                        output_tail=tuple(tail),
                    ) from exc
                if not chunk:
                    break
                pending.extend(chunk)
                newline = pending.find(b"\n")
                while newline >= 0:
                    _deliver(bytes(pending[:newline]))
                    del pending[: newline + 1]
                    newline = pending.find(b"\n")
                while len(pending) >= _MAX_LINE_BYTES:
                    _deliver(bytes(pending[:_MAX_LINE_BYTES]))
                    del pending[:_MAX_LINE_BYTES]
            if pending:
                _deliver(bytes(pending))

        drain_task = asyncio.create_task(_drain())
        wait_task = asyncio.create_task(proc.wait())

        done, _pending = await asyncio.wait(
            {drain_task, wait_task},
            timeout=timeout,
            return_when=asyncio.FIRST_EXCEPTION,
        )

        if drain_task in done and drain_task.exception() is not None:
            await _terminate(proc, wait_task)
            raise drain_task.exception()  # type: ignore[misc]

        if not (drain_task.done() and wait_task.done()):
            await _terminate(proc, wait_task)
            await asyncio.wait({drain_task}, timeout=_DRAIN_GRACE_SECONDS)
            if not drain_task.done():
                drain_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await drain_task
            raise ProcessError(
                command=argv,
                exit_code=None,
                reason=f"timed out after {timeout} seconds",
                output_tail=tuple(tail),
            )

        exit_code = wait_task.result()
        if check and exit_code != 0:
            raise ProcessError(command=argv, exit_code=exit_code, output_tail=tuple(tail))

        return CommandResult(command=argv, cwd=cwd, exit_code=exit_code, lines=tuple(captured))


async def _terminate(proc: asyncio.subprocess.Process, wait_task: asyncio.Task[int]) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
    await wait_task


__all__ = [
    "AsyncioShellRunner",
    "CommandResult",
    "CommandRunner",
    "LineSink",
    "log_sink",
]
