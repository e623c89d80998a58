"""
flatc-provisioner — toolchain source repository provisioning

File: src/flatc_provisioner/toolchain/repository.py
Last updated: 2026-10-19

Purpose
- Keep a git working copy of the flatc sources in the cache directory at a release tag.

Functional requirements
- Open the cache directory as a repository; on any open failure delete it and clone afresh.
- Reset removes untracked and ignored files and restores tracked files before every rebuild.
- Checkout resolves ``v<version>`` tags, fetching tags once when the tag is unknown locally.

Non-functional requirements
- Every git invocation goes through the injected ``CommandRunner``.
- Non-interactive: git never prompts for credentials.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Final

from flatc_provisioner.constants import TAG_PREFIX
from flatc_provisioner.errors import CheckoutError, ProcessError, RepositoryError
from flatc_provisioner.toolchain.shell import log_sink
from flatc_provisioner.utils.fs import safe_delete

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flatc_provisioner.toolchain.shell import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

_GIT_ENV: Final[dict[str, str]] = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "",
}


@dataclass(frozen=True, slots=True)
class SourceWorkingCopy:
    """On-disk clone of the toolchain sources owned by the cache directory."""

    directory: Path
    is_git_repository: bool
    current_ref: str | None = None


def tag_for_version(version: str) -> str:
    """Return the release tag for ``version`` (``1.12.0`` -> ``v1.12.0``)."""

    normalized = version.strip()
    if not normalized:
        raise ValueError("version must not be empty")
    return f"{TAG_PREFIX}{normalized}"


class RepositoryProvisioner:
    """Clone, clean, and check out the toolchain working copy."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        timeout_seconds: float | None = None,
        fetch_missing_tags: bool = True,
    ) -> None:
        self._runner = runner
        self._timeout_seconds = timeout_seconds
        self._fetch_missing_tags = fetch_missing_tags

    def ensure_working_copy(self, cache_dir: Path | str, remote_url: str) -> SourceWorkingCopy:
        """Open ``cache_dir`` as a clone of ``remote_url``, re-cloning on any failure."""

        directory = Path(cache_dir).expanduser().resolve()
        url = remote_url.strip()
        if not url:
            raise RepositoryError("repository URL must not be empty")

        logger.info("opening flatbuffers git repository in %s", directory)
        problem = self._open_problem(directory, url)
        if problem is None:
            return SourceWorkingCopy(
                directory=directory,
                is_git_repository=True,
                current_ref=self._current_ref(directory),
            )

        logger.info("cannot use %s (%s); re-cloning", directory, problem)
        self._delete_directory(directory)
        return self._clone(directory, url)

    def reset(self, working_copy: SourceWorkingCopy) -> SourceWorkingCopy:
        """Remove every untracked and ignored file, then restore tracked files to HEAD."""

        directory = working_copy.directory
        logger.info("completely cleaning the git repository prior to rebuild")
        try:
            self._git(("clean", "-d", "-f", "-x"), cwd=directory)
            self._git(("reset", "--hard", "--quiet"), cwd=directory)
        except ProcessError as exc:
            raise RepositoryError(f"could not clean repository {directory}: {exc}") from exc
        return working_copy

    def checkout(self, working_copy: SourceWorkingCopy, version: str) -> SourceWorkingCopy:
        """Check out the ``v<version>`` tag in detached-HEAD mode."""

        tag = tag_for_version(version)
        directory = working_copy.directory
        logger.info("checking out tag %s", tag)

        if not self._tag_exists(directory, tag):
            if self._fetch_missing_tags:
                logger.info("tag %s not found locally; fetching tags from origin", tag)
                try:
                    self._git(("fetch", "--tags", "--force", "origin"), cwd=directory)
                except ProcessError as exc:
                    raise CheckoutError(
                        f"could not checkout tag {tag}: fetching tags failed: {exc}", tag=tag
                    ) from exc
            if not self._tag_exists(directory, tag):
                raise CheckoutError(f"could not checkout tag {tag}: no such tag", tag=tag)

        try:
            self._git(
                ("-c", "advice.detachedHead=false", "checkout", "--force", "--detach", tag),
                cwd=directory,
            )
        except ProcessError as exc:
            raise CheckoutError(f"could not checkout tag {tag}: {exc}", tag=tag) from exc

        return replace(working_copy, current_ref=tag)

    def _open_problem(self, directory: Path, url: str) -> str | None:
        if not directory.is_dir():
            return "directory does not exist"

        toplevel = self._git_quiet(("rev-parse", "--show-toplevel"), cwd=directory)
        if toplevel is None or not toplevel.lines:
            return "not a git repository"
        if Path(toplevel.lines[0]).resolve() != directory:
            return "directory is nested inside another repository"

        if self._git_quiet(("rev-parse", "--verify", "--quiet", "HEAD"), cwd=directory) is None:
            return "repository has no valid HEAD"

        origin = self._git_quiet(("remote", "get-url", "origin"), cwd=directory)
        if origin is None or not origin.lines:
            return "repository has no origin remote"
        if _normalize_url(origin.lines[0]) != _normalize_url(url):
            return f"origin is {origin.lines[0]!r}, expected {url!r}"
        return None

    def _clone(self, directory: Path, url: str) -> SourceWorkingCopy:
        logger.info("cloning flatbuffers repository from %s", url)
        directory.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._runner.run(
                ("git", "clone", url, str(directory)),
                cwd=directory.parent,
                sink=log_sink("git"),
                timeout_seconds=self._timeout_seconds,
                env=_GIT_ENV,
            )
        except ProcessError as exc:
            raise RepositoryError(f"could not clone repository {url}: {exc}") from exc
        return SourceWorkingCopy(
            directory=directory,
            is_git_repository=True,
            current_ref=self._current_ref(directory),
        )

    def _delete_directory(self, directory: Path) -> None:
        if not directory.exists() and not directory.is_symlink():
            return
        logger.info("deleting %s to ensure a clean state", directory)
        try:
            safe_delete(directory, directory.parent)
        except OSError as exc:
            raise RepositoryError(f"failed to delete {directory}: {exc}") from exc

    def _tag_exists(self, directory: Path, tag: str) -> bool:
        result = self._git_quiet(
            ("rev-parse", "--verify", "--quiet", f"refs/tags/{tag}^{{commit}}"),
            cwd=directory,
        )
        return result is not None

    def _current_ref(self, directory: Path) -> str | None:
        described = self._git_quiet(("describe", "--tags", "--exact-match", "HEAD"), cwd=directory)
        if described is not None and described.lines:
            return described.lines[0].strip()
        head = self._git_quiet(("rev-parse", "HEAD"), cwd=directory)
        if head is not None and head.lines:
            return head.lines[0].strip()
        return None

    def _git(self, args: Sequence[str], *, cwd: Path) -> CommandResult:
        return self._runner.run(
            ("git", *args),
            cwd=cwd,
            sink=log_sink("git"),
            timeout_seconds=self._timeout_seconds,
            env=_GIT_ENV,
        )

    def _git_quiet(self, args: Sequence[str], *, cwd: Path) -> CommandResult | None:
        """Run a read-only git query; ``None`` when it fails or cannot start."""

        try:
            result = self._runner.run(
                ("git", *args),
                cwd=cwd,
                timeout_seconds=self._timeout_seconds,
                check=False,
                capture=True,
                env=_GIT_ENV,
            )
        except ProcessError as exc:
            logger.debug("git query failed: %s", exc)
            return None
        if result.exit_code != 0:
            return None
        return result


def _normalize_url(url: str) -> str:
    return url.strip().rstrip("/")


__all__ = [
    "RepositoryProvisioner",
    "SourceWorkingCopy",
    "tag_for_version",
]
