"""Version probing for the cached ``flatc`` binary."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from flatc_provisioner.constants import DEFAULT_PROBE_TIMEOUT_SECONDS, FLATC_BINARY_NAME
from flatc_provisioner.errors import ProcessError

if TYPE_CHECKING:
    from flatc_provisioner.toolchain.shell import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CachedToolchain:
    """What the cache directory holds right now; derived fresh on every run."""

    binary_path: Path
    reported_version: str | None

    @property
    def present(self) -> bool:
        return self.reported_version is not None

    def satisfies(self, expected_version: str) -> bool:
        return self.reported_version is not None and expected_version in self.reported_version


def flatc_binary_path(toolchain_dir: Path | str) -> Path:
    return Path(toolchain_dir) / FLATC_BINARY_NAME


class VersionProber:
    """Ask the cached compiler for ``--version`` and compare against a requested version.

    A missing, broken, or silent binary is reported as a miss rather than an error.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._runner = runner
        self._timeout_seconds = timeout_seconds

    def inspect(self, toolchain_dir: Path | str) -> CachedToolchain:
        directory = Path(toolchain_dir)
        binary = flatc_binary_path(directory)
        if not binary.is_file() or not os.access(binary, os.X_OK):
            logger.info("no flatc binary found at %s", binary)
            return CachedToolchain(binary_path=binary, reported_version=None)

        first_line: list[str] = []

        def _capture_first(line: str) -> None:
            if not first_line:
                first_line.append(line)

        try:
            self._runner.run(
                (str(binary), "--version"),
                cwd=directory,
                sink=_capture_first,
                timeout_seconds=self._timeout_seconds,
            )
        except ProcessError as exc:
            logger.info("flatc version query failed: %s", exc)
            return CachedToolchain(binary_path=binary, reported_version=None)

        if not first_line or not first_line[0].strip():
            logger.info("flatc at %s reported no version", binary)
            return CachedToolchain(binary_path=binary, reported_version=None)
        return CachedToolchain(binary_path=binary, reported_version=first_line[0].strip())

    def probe(self, expected_version: str, toolchain_dir: Path | str) -> bool:
        cached = self.inspect(toolchain_dir)
        if cached.satisfies(expected_version):
            logger.info("flatc version %s is correct - no need to compile", expected_version)
            return True
        if cached.present:
            logger.info(
                "flatc reports %r, not %s - will need to compile",
                cached.reported_version,
                expected_version,
            )
        else:
            logger.info("no usable flatc found - will need to compile")
        return False


__all__ = ["CachedToolchain", "VersionProber", "flatc_binary_path"]
