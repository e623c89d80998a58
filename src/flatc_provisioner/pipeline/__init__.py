"""
flatc-provisioner — pipeline

File: src/flatc_provisioner/pipeline/__init__.py
Last updated: 2026-10-19

Purpose
- Orchestrator, result type and host build-system callbacks.
"""

from flatc_provisioner.pipeline.host import BuildHost, PrintingBuildHost, SourceRootManifest
from flatc_provisioner.pipeline.orchestrator import (
    PipelineOrchestrator,
    PipelineResult,
    PipelineState,
)

__all__ = [
    "BuildHost",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineState",
    "PrintingBuildHost",
    "SourceRootManifest",
]
