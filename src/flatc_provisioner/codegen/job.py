"""Generation job model and parameter validation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from flatc_provisioner.constants import DEFAULT_DESTINATION
from flatc_provisioner.errors import InvalidConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable


class GeneratorFlag(StrEnum):
    """Allowed ``--gen-<flag>`` generator options."""

    MUTABLE = "mutable"
    GENERATED = "generated"
    NULLABLE = "nullable"
    ALL = "all"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(sorted(member.value for member in cls))


@dataclass(frozen=True, slots=True)
class GenerationJob:
    """One request to compile a set of schemas.

    Values are kept as given (de-duplicated, order preserved) and validated by
    :func:`validate_job` before any process is spawned.
    """

    sources: tuple[str, ...]
    include_directories: tuple[str, ...] = ()
    generator_flags: tuple[str, ...] = ()
    destination: str = DEFAULT_DESTINATION

    def __post_init__(self) -> None:
        object.__setattr__(self, "sources", _dedupe(self.sources))
        object.__setattr__(self, "include_directories", _dedupe(self.include_directories))
        object.__setattr__(self, "generator_flags", _dedupe(self.generator_flags))
        object.__setattr__(self, "destination", str(self.destination))

    @classmethod
    def create(
        cls,
        sources: Iterable[str | Path],
        *,
        include_directories: Iterable[str | Path] = (),
        generator_flags: Iterable[str] = (),
        destination: str | Path = DEFAULT_DESTINATION,
    ) -> GenerationJob:
        return cls(
            sources=tuple(str(item) for item in sources),
            include_directories=tuple(str(item) for item in include_directories),
            generator_flags=tuple(generator_flags),
            destination=str(destination),
        )


def validate_job(job: GenerationJob, *, root: Path | str) -> tuple[GeneratorFlag, ...]:
    """Validate ``job`` against the invocation root and return its flags in emission order.

    Checks run in a fixed order and stop at the first violation: generator flags,
    include directories, then sources.
    """

    base = Path(root)
    flags = _validate_generator_flags(job.generator_flags)

    for include in job.include_directories:
        if not _resolve(base, include).is_dir():
            raise InvalidConfigurationError(
                f"include directory {include} does not exist.", value=include
            )

    if not job.sources:
        raise InvalidConfigurationError(
            "At least one source must be provided to generate from.", value=job.sources
        )
    for source in job.sources:
        if not _resolve(base, source).exists():
            raise InvalidConfigurationError(f"source file {source} does not exist.", value=source)

    return flags


def _validate_generator_flags(raw_flags: Iterable[str]) -> tuple[GeneratorFlag, ...]:
    parsed: set[GeneratorFlag] = set()
    for raw in raw_flags:
        try:
            parsed.add(GeneratorFlag(raw))
        except ValueError:
            expected = ", ".join(GeneratorFlag.values())
            raise InvalidConfigurationError(
                f"Generator {raw} is not valid (expected one of: {expected}).", value=raw
            ) from None
    return tuple(sorted(parsed, key=lambda flag: flag.value))


def _resolve(base: Path, raw: str) -> Path:
    candidate = Path(raw).expanduser()
    return candidate if candidate.is_absolute() else base / candidate


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


__all__ = ["GenerationJob", "GeneratorFlag", "validate_job"]
