"""
flatc-provisioner — pipeline orchestrator

File: src/flatc_provisioner/pipeline/orchestrator.py
Last updated: 2026-10-19

Purpose
- Drive one generation run: probe the cache, provision and build on a miss, invoke flatc,
  then hand the output directory to the host build system.

Normative behavior
- States: PROBING -> {SATISFIED | PROVISIONING} -> BUILDING -> INVOKING -> DONE; any -> FAILED.
- The job is validated before PROBING; an invalid job never spawns a process.
- A satisfied probe skips provisioning and building entirely.
- Typed collaborator errors end the run early with a FAILED result; nothing is retried.
- Unexpected exceptions are not pipeline outcomes and propagate to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from flatc_provisioner.errors import FlatcProvisionerError
from flatc_provisioner.observability.logging import correlation_scope
from flatc_provisioner.toolchain.prober import CachedToolchain

if TYPE_CHECKING:
    from flatc_provisioner.codegen.job import GenerationJob
    from flatc_provisioner.pipeline.host import BuildHost
    from flatc_provisioner.toolchain.cache import ToolchainCache, ToolchainRequest

logger = logging.getLogger(__name__)


class PipelineState(StrEnum):
    """States visited by one pipeline run."""

    PROBING = "probing"
    SATISFIED = "satisfied"
    PROVISIONING = "provisioning"
    BUILDING = "building"
    INVOKING = "invoking"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Terminal outcome of :meth:`PipelineOrchestrator.run`."""

    state: PipelineState
    error: FlatcProvisionerError | None
    transitions: tuple[PipelineState, ...]
    toolchain: CachedToolchain | None = None
    destination: Path | None = None

    def __post_init__(self) -> None:
        if self.state not in (PipelineState.DONE, PipelineState.FAILED):
            raise ValueError(f"PipelineResult.state must be terminal, got {self.state}")
        if (self.state is PipelineState.FAILED) != (self.error is not None):
            raise ValueError("PipelineResult.error must be set exactly when the run failed")

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.DONE


class ToolchainBuilderLike(Protocol):
    def build(self, working_copy_dir: Path | str) -> Path: ...


class CompilationInvokerLike(Protocol):
    @property
    def working_dir(self) -> Path: ...

    def validate(self, job: GenerationJob) -> object: ...

    def invoke(self, job: GenerationJob, compiler_binary_path: Path | str) -> tuple[str, ...]: ...


class PipelineOrchestrator:
    """Sequence the toolchain collaborators for a single request."""

    def __init__(
        self,
        request: ToolchainRequest,
        *,
        cache: ToolchainCache,
        builder: ToolchainBuilderLike,
        invoker: CompilationInvokerLike,
        host: BuildHost,
    ) -> None:
        self._request = request
        self._cache = cache
        self._builder = builder
        self._invoker = invoker
        self._host = host

    def run(self, job: GenerationJob) -> PipelineResult:
        transitions: list[PipelineState] = []
        toolchain: CachedToolchain | None = None

        def failed(error: FlatcProvisionerError) -> PipelineResult:
            transitions.append(PipelineState.FAILED)
            logger.error("pipeline failed: %s", error)
            return PipelineResult(
                state=PipelineState.FAILED,
                error=error,
                transitions=tuple(transitions),
                toolchain=toolchain,
            )

        with correlation_scope(stage="preflight"):
            try:
                self._invoker.validate(job)
            except FlatcProvisionerError as exc:
                return failed(exc)

        self._enter(transitions, PipelineState.PROBING)
        with correlation_scope(stage=PipelineState.PROBING.value):
            try:
                toolchain = self._cache.inspect()
            except FlatcProvisionerError as exc:
                return failed(exc)

        if toolchain.satisfies(self._request.requested_version):
            self._enter(transitions, PipelineState.SATISFIED)
            logger.info(
                "flatc %s already available at %s",
                self._request.requested_version,
                toolchain.binary_path,
            )
        else:
            logger.info(
                "flatc %s not available (found %s); provisioning",
                self._request.requested_version,
                toolchain.reported_version or "nothing",
            )
            outcome = self._provision_and_build(transitions)
            if isinstance(outcome, FlatcProvisionerError):
                return failed(outcome)
            toolchain = outcome

        self._enter(transitions, PipelineState.INVOKING)
        with correlation_scope(stage=PipelineState.INVOKING.value):
            try:
                self._invoker.invoke(job, toolchain.binary_path)
            except FlatcProvisionerError as exc:
                return failed(exc)

            destination = self._resolve_destination(job)
            try:
                self._host.add_compile_source_root(destination)
            except FlatcProvisionerError as exc:
                return failed(exc)

        self._enter(transitions, PipelineState.DONE)
        return PipelineResult(
            state=PipelineState.DONE,
            error=None,
            transitions=tuple(transitions),
            toolchain=toolchain,
            destination=destination,
        )

    def _provision_and_build(
        self, transitions: list[PipelineState]
    ) -> CachedToolchain | FlatcProvisionerError:
        self._enter(transitions, PipelineState.PROVISIONING)
        with correlation_scope(stage=PipelineState.PROVISIONING.value):
            try:
                working_copy = self._cache.ensure(self._request.repository_url)
                working_copy = self._cache.reset(working_copy)
                working_copy = self._cache.checkout(working_copy, self._request.requested_version)
            except FlatcProvisionerError as exc:
                return exc

        self._enter(transitions, PipelineState.BUILDING)
        with correlation_scope(stage=PipelineState.BUILDING.value):
            try:
                binary = self._builder.build(working_copy.directory)
            except FlatcProvisionerError as exc:
                return exc

        # Not probed after the build.
        return CachedToolchain(binary_path=binary, reported_version=None)

    def _resolve_destination(self, job: GenerationJob) -> Path:
        destination = Path(job.destination).expanduser()
        if not destination.is_absolute():
            destination = self._invoker.working_dir / destination
        return destination

    @staticmethod
    def _enter(transitions: list[PipelineState], state: PipelineState) -> None:
        transitions.append(state)
        logger.debug("pipeline state -> %s", state.value)


__all__ = ["PipelineOrchestrator", "PipelineResult", "PipelineState"]
