"""
flatc-provisioner — unit tests for the toolchain repository provisioner

File: tests/unit/toolchain/test_repository.py
Last updated: 2026-10-19

Purpose
- Validate open/clone/reset/checkout against real local git repositories.

What this test file should cover
- Missing, non-git, and wrong-origin cache directories are replaced by a fresh clone.
- A valid working copy is reused without re-cloning.
- Reset removes untracked and ignored files and restores tracked files.
- Checkout moves to ``v<version>`` and rejects unknown tags.
- Tags added upstream after the clone are fetched on demand.

Functional requirements
- Offline; the "remote" is a local repository path.
"""

from __future__ import annotations

import os
import subprocess
from typing import TYPE_CHECKING

import pytest

from flatc_provisioner.errors import CheckoutError, RepositoryError
from flatc_provisioner.toolchain.repository import RepositoryProvisioner, tag_for_version
from flatc_provisioner.toolchain.shell import AsyncioShellRunner

if TYPE_CHECKING:
    from pathlib import Path


def run_git(cwd: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        text=True,
        capture_output=True,
        check=False,
    )
    if check and completed.returncode != 0:
        msg = f"git command failed: git {' '.join(args)}\nstdout:\n{completed.stdout}\nstderr:\n{completed.stderr}"
        raise AssertionError(msg)
    return completed


@pytest.fixture(autouse=True)
def isolated_git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "home"
    xdg = tmp_path / "xdg"
    home.mkdir()
    xdg.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Author")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "author@example.com")


def commit_file(worktree: Path, rel_path: str, content: str, message: str) -> str:
    path = worktree / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    run_git(worktree, "add", "--all")
    run_git(worktree, "commit", "-m", message)
    return run_git(worktree, "rev-parse", "HEAD").stdout.strip()


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    """Local stand-in for the flatbuffers repository with two release tags."""

    repo = tmp_path / "upstream"
    repo.mkdir()
    run_git(repo, "init", "--quiet")
    commit_file(repo, "VERSION", "1.11.0\n", "release 1.11.0")
    run_git(repo, "tag", "v1.11.0")
    commit_file(repo, ".gitignore", "build/\n", "ignore build output")
    commit_file(repo, "VERSION", "1.12.0\n", "release 1.12.0")
    run_git(repo, "tag", "v1.12.0")
    return repo


@pytest.fixture
def provisioner() -> RepositoryProvisioner:
    return RepositoryProvisioner(AsyncioShellRunner(), timeout_seconds=60)


def test_tag_for_version_prefixes_v() -> None:
    assert tag_for_version("1.12.0") == "v1.12.0"
    assert tag_for_version("  2.0.0 ") == "v2.0.0"
    with pytest.raises(ValueError):
        tag_for_version("   ")


def test_missing_directory_is_cloned(
    tmp_path: Path, upstream: Path, provisioner: RepositoryProvisioner
) -> None:
    cache_dir = tmp_path / "cache" / ".flatbuffers"

    working_copy = provisioner.ensure_working_copy(cache_dir, str(upstream))

    assert working_copy.is_git_repository
    assert working_copy.directory == cache_dir.resolve()
    assert (cache_dir / "VERSION").read_text(encoding="utf-8") == "1.12.0\n"
    origin = run_git(cache_dir, "remote", "get-url", "origin").stdout.strip()
    assert origin == str(upstream)


def test_non_git_directory_is_deleted_then_cloned(
    tmp_path: Path, upstream: Path, provisioner: RepositoryProvisioner
) -> None:
    cache_dir = tmp_path / ".flatbuffers"
    cache_dir.mkdir()
    (cache_dir / "stale.txt").write_text("junk", encoding="utf-8")

    provisioner.ensure_working_copy(cache_dir, str(upstream))

    assert not (cache_dir / "stale.txt").exists()
    assert (cache_dir / "VERSION").is_file()


def test_wrong_origin_is_recloned(
    tmp_path: Path, upstream: Path, provisioner: RepositoryProvisioner
) -> None:
    other = tmp_path / "other"
    other.mkdir()
    run_git(other, "init", "--quiet")
    commit_file(other, "README", "other project\n", "init")

    cache_dir = tmp_path / ".flatbuffers"
    run_git(tmp_path, "clone", "--quiet", str(other), str(cache_dir))

    provisioner.ensure_working_copy(cache_dir, str(upstream))

    assert not (cache_dir / "README").exists()
    origin = run_git(cache_dir, "remote", "get-url", "origin").stdout.strip()
    assert origin == str(upstream)


def test_valid_working_copy_is_reused(
    tmp_path: Path, upstream: Path, provisioner: RepositoryProvisioner
) -> None:
    cache_dir = tmp_path / ".flatbuffers"
    provisioner.ensure_working_copy(cache_dir, str(upstream))
    marker = cache_dir / "build" / "marker.o"
    marker.parent.mkdir()
    marker.write_text("object", encoding="utf-8")

    reopened = provisioner.ensure_working_copy(cache_dir, str(upstream) + "/")

    assert marker.exists()
    assert reopened.current_ref == "v1.12.0"


def test_clone_failure_raises_repository_error(
    tmp_path: Path, provisioner: RepositoryProvisioner
) -> None:
    with pytest.raises(RepositoryError, match="could not clone"):
        provisioner.ensure_working_copy(tmp_path / ".flatbuffers", str(tmp_path / "missing"))


def test_reset_then_checkout_leaves_exact_tag_tree(
    tmp_path: Path, upstream: Path, provisioner: RepositoryProvisioner
) -> None:
    cache_dir = tmp_path / ".flatbuffers"
    working_copy = provisioner.ensure_working_copy(cache_dir, str(upstream))
    (cache_dir / "VERSION").write_text("locally modified\n", encoding="utf-8")
    (cache_dir / "untracked.txt").write_text("x", encoding="utf-8")
    (cache_dir / "build").mkdir()
    (cache_dir / "build" / "flatc.o").write_text("obj", encoding="utf-8")

    working_copy = provisioner.reset(working_copy)
    working_copy = provisioner.checkout(working_copy, "1.11.0")

    assert working_copy.current_ref == "v1.11.0"
    assert (cache_dir / "VERSION").read_text(encoding="utf-8") == "1.11.0\n"
    assert not (cache_dir / "untracked.txt").exists()
    assert not (cache_dir / "build").exists()
    assert run_git(cache_dir, "status", "--porcelain", "--ignored").stdout.strip() == ""

    again = provisioner.checkout(provisioner.reset(working_copy), "1.11.0")
    assert again.current_ref == "v1.11.0"
    assert (cache_dir / "VERSION").read_text(encoding="utf-8") == "1.11.0\n"


def test_checkout_unknown_tag_raises(
    tmp_path: Path, upstream: Path, provisioner: RepositoryProvisioner
) -> None:
    working_copy = provisioner.ensure_working_copy(tmp_path / ".flatbuffers", str(upstream))

    with pytest.raises(CheckoutError) as excinfo:
        provisioner.checkout(working_copy, "9.9.9")

    assert excinfo.value.tag == "v9.9.9"
    assert "v9.9.9" in str(excinfo.value)


def test_checkout_fetches_tags_added_after_clone(
    tmp_path: Path, upstream: Path, provisioner: RepositoryProvisioner
) -> None:
    working_copy = provisioner.ensure_working_copy(tmp_path / ".flatbuffers", str(upstream))
    commit_file(upstream, "VERSION", "2.0.0\n", "release 2.0.0")
    run_git(upstream, "tag", "v2.0.0")

    checked_out = provisioner.checkout(working_copy, "2.0.0")

    assert checked_out.current_ref == "v2.0.0"
    assert (working_copy.directory / "VERSION").read_text(encoding="utf-8") == "2.0.0\n"


def test_checkout_without_fetch_does_not_contact_origin(tmp_path: Path, upstream: Path) -> None:
    provisioner = RepositoryProvisioner(AsyncioShellRunner(), fetch_missing_tags=False)
    working_copy = provisioner.ensure_working_copy(tmp_path / ".flatbuffers", str(upstream))
    commit_file(upstream, "VERSION", "2.0.0\n", "release 2.0.0")
    run_git(upstream, "tag", "v2.0.0")

    with pytest.raises(CheckoutError):
        provisioner.checkout(working_copy, "2.0.0")
