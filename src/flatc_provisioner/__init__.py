"""
flatc-provisioner — package root

File: src/flatc_provisioner/__init__.py
Last updated: 2026-10-19

Purpose
- Provision a pinned ``flatc`` toolchain from source and run FlatBuffers code generation.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
