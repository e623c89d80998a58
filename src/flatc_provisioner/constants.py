"""Stable constants shared across toolchain, codegen, and pipeline modules."""

from __future__ import annotations

from typing import Final

# Toolchain defaults.
DEFAULT_FLATC_VERSION: Final[str] = "1.12.0"
DEFAULT_REPOSITORY_URL: Final[str] = "https://github.com/google/flatbuffers.git"
CACHE_DIR_NAME: Final[str] = ".flatbuffers"
FLATC_BINARY_NAME: Final[str] = "flatc"
TAG_PREFIX: Final[str] = "v"

# Generation defaults.
DEFAULT_DESTINATION: Final[str] = "target/generated-sources"
OUTPUT_LANGUAGE_FLAG: Final[str] = "--java"
GENERATOR_FLAG_PREFIX: Final[str] = "--gen-"

# Native build steps, run in order from the working copy root.
CONFIGURE_COMMAND: Final[tuple[str, ...]] = ("cmake", ".")
COMPILE_COMMAND: Final[tuple[str, ...]] = ("make",)

# Process limits (seconds).
DEFAULT_PROCESS_TIMEOUT_SECONDS: Final[float] = 3600.0
DEFAULT_PROBE_TIMEOUT_SECONDS: Final[float] = 30.0

# Config schema version for ``flatc.toml``.
CONFIG_SCHEMA_VERSION: Final[int] = 1

__all__ = [
    "CACHE_DIR_NAME",
    "COMPILE_COMMAND",
    "CONFIGURE_COMMAND",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_DESTINATION",
    "DEFAULT_FLATC_VERSION",
    "DEFAULT_PROBE_TIMEOUT_SECONDS",
    "DEFAULT_PROCESS_TIMEOUT_SECONDS",
    "DEFAULT_REPOSITORY_URL",
    "FLATC_BINARY_NAME",
    "GENERATOR_FLAG_PREFIX",
    "OUTPUT_LANGUAGE_FLAG",
    "TAG_PREFIX",
]
