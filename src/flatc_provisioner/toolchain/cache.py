"""
flatc-provisioner — toolchain cache collaborator

File: src/flatc_provisioner/toolchain/cache.py
Last updated: 2026-10-19

Purpose
- Model the process-wide ``~/.flatbuffers`` cache as an injected collaborator
  (``probe``/``ensure``/``reset``/``checkout``) so the pipeline never hard-codes paths.

Non-functional requirements
- The cache is unlocked shared state; one invoker at a time is assumed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from flatc_provisioner.constants import CACHE_DIR_NAME
from flatc_provisioner.errors import ConfigurationError
from flatc_provisioner.toolchain.prober import flatc_binary_path

if TYPE_CHECKING:
    from collections.abc import Mapping

    from flatc_provisioner.toolchain.prober import CachedToolchain, VersionProber
    from flatc_provisioner.toolchain.repository import RepositoryProvisioner, SourceWorkingCopy

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolchainRequest:
    """Immutable per-invocation description of the toolchain to provide."""

    requested_version: str
    repository_url: str
    cache_directory: Path

    def __post_init__(self) -> None:
        version = self.requested_version.strip()
        if not version:
            raise ConfigurationError("toolchain version must not be empty")
        url = self.repository_url.strip()
        if not url:
            raise ConfigurationError("toolchain repository URL must not be empty")
        object.__setattr__(self, "requested_version", version)
        object.__setattr__(self, "repository_url", url)
        object.__setattr__(self, "cache_directory", Path(self.cache_directory))


class ToolchainCache(Protocol):
    """Operations the pipeline needs from the toolchain cache."""

    @property
    def directory(self) -> Path: ...

    @property
    def binary_path(self) -> Path: ...

    def inspect(self) -> CachedToolchain: ...

    def probe(self, expected_version: str) -> bool: ...

    def ensure(self, remote_url: str) -> SourceWorkingCopy: ...

    def reset(self, working_copy: SourceWorkingCopy) -> SourceWorkingCopy: ...

    def checkout(self, working_copy: SourceWorkingCopy, version: str) -> SourceWorkingCopy: ...


class LocalToolchainCache:
    """Filesystem-backed cache combining the version prober and repository provisioner."""

    def __init__(
        self,
        directory: Path | str,
        *,
        prober: VersionProber,
        provisioner: RepositoryProvisioner,
    ) -> None:
        self._directory = Path(directory).expanduser().resolve()
        self._prober = prober
        self._provisioner = provisioner

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def binary_path(self) -> Path:
        return flatc_binary_path(self._directory)

    def prepare(self) -> Path:
        """Create the cache directory if it does not exist yet."""

        if self._directory.is_dir():
            logger.info("directory %s already exists", self._directory)
        else:
            self._directory.mkdir(parents=True, exist_ok=True)
            logger.info("created %s", self._directory)
        return self._directory

    def inspect(self) -> CachedToolchain:
        return self._prober.inspect(self._directory)

    def probe(self, expected_version: str) -> bool:
        return self._prober.probe(expected_version, self._directory)

    def ensure(self, remote_url: str) -> SourceWorkingCopy:
        return self._provisioner.ensure_working_copy(self._directory, remote_url)

    def reset(self, working_copy: SourceWorkingCopy) -> SourceWorkingCopy:
        return self._provisioner.reset(working_copy)

    def checkout(self, working_copy: SourceWorkingCopy, version: str) -> SourceWorkingCopy:
        return self._provisioner.checkout(working_copy, version)


def resolve_cache_directory(
    cache_root: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """Return ``<root>/.flatbuffers``; ``<root>`` defaults to the user home directory."""

    if cache_root is not None and str(cache_root).strip():
        return Path(cache_root).expanduser() / CACHE_DIR_NAME
    return user_home_directory(environ=environ) / CACHE_DIR_NAME


def user_home_directory(*, environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    home = env.get("HOME") or env.get("USERPROFILE") or ""
    if not home.strip() and environ is None:
        # Falls back to the password database on POSIX.
        try:
            home = str(Path.home())
        except (KeyError, RuntimeError) as exc:
            raise ConfigurationError("no user home directory could be found") from exc
    if not home.strip():
        raise ConfigurationError("no user home directory could be found")
    logger.debug("user home directory = %s", home)
    return Path(home)


__all__ = [
    "LocalToolchainCache",
    "ToolchainCache",
    "ToolchainRequest",
    "resolve_cache_directory",
    "user_home_directory",
]
