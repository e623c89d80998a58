"""Utility exports for filesystem helpers."""

from flatc_provisioner.utils.fs import atomic_write, safe_delete

__all__ = [
    "atomic_write",
    "safe_delete",
]
