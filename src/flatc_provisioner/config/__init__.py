"""
flatc-provisioner — configuration

File: src/flatc_provisioner/config/__init__.py
Last updated: 2026-10-19

Purpose
- Public config surface: schema defaults, validation, and layered loading.
"""

from flatc_provisioner.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
)
from flatc_provisioner.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    ProvisionerConfig,
    assert_valid_config,
    default_config,
    redact_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ProvisionerConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "redact_config",
    "validate_config",
]
