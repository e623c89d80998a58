"""
flatc-provisioner — unit tests for the flatc version prober

File: tests/unit/toolchain/test_prober.py
Last updated: 2026-10-19

Purpose
- Validate that probing treats missing, broken, and mismatched binaries as misses.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from flatc_provisioner.toolchain.prober import CachedToolchain, VersionProber, flatc_binary_path
from flatc_provisioner.toolchain.shell import AsyncioShellRunner

pytestmark = pytest.mark.skipif(os.name == "nt", reason="uses POSIX shell scripts as fake flatc")


def _install_fake_flatc(directory: Path, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    binary = flatc_binary_path(directory)
    binary.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return binary


@pytest.fixture
def prober() -> VersionProber:
    return VersionProber(AsyncioShellRunner(), timeout_seconds=10)


def test_matching_version_is_satisfied(tmp_path: Path, prober: VersionProber) -> None:
    _install_fake_flatc(tmp_path, 'echo "flatc version 1.12.0"')

    toolchain = prober.inspect(tmp_path)

    assert toolchain.present
    assert toolchain.reported_version == "flatc version 1.12.0"
    assert prober.probe("1.12.0", tmp_path) is True
    assert prober.probe("2.0.0", tmp_path) is False


def test_only_first_output_line_is_compared(tmp_path: Path, prober: VersionProber) -> None:
    _install_fake_flatc(tmp_path, 'echo "flatc version 1.11.0"; echo "compat 1.12.0"')

    assert prober.probe("1.12.0", tmp_path) is False


def test_missing_binary_is_a_miss(tmp_path: Path, prober: VersionProber) -> None:
    toolchain = prober.inspect(tmp_path / "nowhere")

    assert toolchain == CachedToolchain(
        binary_path=tmp_path / "nowhere" / "flatc", reported_version=None
    )
    assert prober.probe("1.12.0", tmp_path / "nowhere") is False


def test_failing_binary_is_a_miss(tmp_path: Path, prober: VersionProber) -> None:
    _install_fake_flatc(tmp_path, 'echo "flatc version 1.12.0"; exit 2')

    assert prober.probe("1.12.0", tmp_path) is False


def test_silent_binary_is_a_miss(tmp_path: Path, prober: VersionProber) -> None:
    _install_fake_flatc(tmp_path, "exit 0")

    assert not prober.inspect(tmp_path).present


def test_non_executable_file_is_a_miss(tmp_path: Path, prober: VersionProber) -> None:
    binary = flatc_binary_path(tmp_path)
    binary.write_text("not a program", encoding="utf-8")

    assert prober.probe("1.12.0", tmp_path) is False


def test_timeout_must_be_positive() -> None:
    with pytest.raises(ValueError):
        VersionProber(AsyncioShellRunner(), timeout_seconds=0)


def test_satisfies_is_substring_match() -> None:
    toolchain = CachedToolchain(
        binary_path=Path("/cache/flatc"), reported_version="flatc version 1.12.0"
    )

    assert toolchain.satisfies("1.12")
    assert not toolchain.satisfies("1.13")


def test_unterminated_oversized_output_is_a_miss(tmp_path: Path, prober: VersionProber) -> None:
    _install_fake_flatc(tmp_path, "head -c 200000 /dev/zero | tr '\\0' x")

    toolchain = prober.inspect(tmp_path)

    assert toolchain.reported_version is not None
    assert len(toolchain.reported_version) == 200000
    assert prober.probe("1.12.0", tmp_path) is False
