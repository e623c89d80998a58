"""Plain-text output rendering for the flatc-provisioner CLI.

Everything here writes to stdout; diagnostics and logs go to stderr.
"""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import TextIO


class CLIRenderer:
    """Thin, deterministic CLI output renderer."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}", file=self.stream)

    def text(self, line: str) -> None:
        print(line, file=self.stream)

    def json(self, payload: Mapping[str, object]) -> None:
        """Emit ``payload`` as a single sorted, compact JSON line."""

        print(
            json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
            file=self.stream,
        )


__all__ = ["CLIRenderer"]
