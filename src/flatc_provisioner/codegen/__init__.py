"""
flatc-provisioner — code generation

File: src/flatc_provisioner/codegen/__init__.py
Last updated: 2026-10-19

Purpose
- Public surface for generation jobs and the compilation invoker.
"""

from flatc_provisioner.codegen.invoker import CompilationInvoker, build_command
from flatc_provisioner.codegen.job import GenerationJob, GeneratorFlag, validate_job

__all__ = [
    "CompilationInvoker",
    "GenerationJob",
    "GeneratorFlag",
    "build_command",
    "validate_job",
]
