"""Host build-system callbacks that receive generated-source roots."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from flatc_provisioner.errors import FlatcProvisionerError
from flatc_provisioner.utils.fs import atomic_write

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import TextIO

logger = logging.getLogger(__name__)

_MANIFEST_KEY = "source_roots"


class BuildHost(Protocol):
    """Receiver for directories that should be compiled as generated sources."""

    def add_compile_source_root(self, path: Path) -> None: ...


class PrintingBuildHost:
    """Print each registered root on its own line, optionally recording it in a manifest."""

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        manifest: SourceRootManifest | None = None,
    ) -> None:
        self._stream = stream
        self._manifest = manifest

    def add_compile_source_root(self, path: Path) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        print(str(path), file=stream, flush=True)
        if self._manifest is not None:
            self._manifest.add(path)


class SourceRootManifest:
    """JSON manifest of generated-source roots, de-duplicated in insertion order.

    The file holds ``{"source_roots": [...]}`` and is rewritten atomically on every
    addition, so readers never observe a partial file.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def roots(self) -> tuple[str, ...]:
        if not self._path.exists():
            return ()
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise FlatcProvisionerError(
                f"source root manifest {self._path} is unreadable: {exc}"
            ) from exc
        raw_roots = payload.get(_MANIFEST_KEY) if isinstance(payload, dict) else None
        if not isinstance(raw_roots, list) or not all(isinstance(r, str) for r in raw_roots):
            raise FlatcProvisionerError(
                f"source root manifest {self._path} must hold a {_MANIFEST_KEY!r} string list"
            )
        return tuple(raw_roots)

    def add(self, path: Path | str) -> tuple[str, ...]:
        root = str(path)
        existing = self.roots()
        if root in existing:
            logger.debug("source root %s already recorded in %s", root, self._path)
            return existing
        updated = (*existing, root)
        self._write(updated)
        logger.info("recorded source root %s in %s", root, self._path)
        return updated

    def _write(self, roots: Sequence[str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        document = json.dumps({_MANIFEST_KEY: list(roots)}, indent=2, ensure_ascii=False)
        try:
            atomic_write(self._path, document + "\n")
        except OSError as exc:
            raise FlatcProvisionerError(
                f"could not write source root manifest {self._path}: {exc}"
            ) from exc


__all__ = ["BuildHost", "PrintingBuildHost", "SourceRootManifest"]
