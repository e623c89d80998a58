"""
flatc-provisioner — toolchain package public API.

File: src/flatc_provisioner/toolchain/__init__.py
Last updated: 2026-10-19

Purpose
- Export the shell runner, version prober, repository provisioner, builder, and cache collaborator.
"""

from flatc_provisioner.toolchain.builder import BuildStep, ToolchainBuilder, default_build_steps
from flatc_provisioner.toolchain.cache import (
    LocalToolchainCache,
    ToolchainCache,
    ToolchainRequest,
    resolve_cache_directory,
    user_home_directory,
)
from flatc_provisioner.toolchain.prober import CachedToolchain, VersionProber, flatc_binary_path
from flatc_provisioner.toolchain.repository import (
    RepositoryProvisioner,
    SourceWorkingCopy,
    tag_for_version,
)
from flatc_provisioner.toolchain.shell import (
    AsyncioShellRunner,
    CommandResult,
    CommandRunner,
    LineSink,
    log_sink,
)

__all__ = [
    "AsyncioShellRunner",
    "BuildStep",
    "CachedToolchain",
    "CommandResult",
    "CommandRunner",
    "LineSink",
    "LocalToolchainCache",
    "RepositoryProvisioner",
    "SourceWorkingCopy",
    "ToolchainBuilder",
    "ToolchainCache",
    "ToolchainRequest",
    "VersionProber",
    "default_build_steps",
    "flatc_binary_path",
    "log_sink",
    "resolve_cache_directory",
    "tag_for_version",
    "user_home_directory",
]
