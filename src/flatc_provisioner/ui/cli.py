"""Command-line interface router for flatc-provisioner."""

from __future__ import annotations

import argparse
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from flatc_provisioner.codegen import CompilationInvoker, GenerationJob
from flatc_provisioner.config import dump_effective_config, load_config, redact_config
from flatc_provisioner.errors import FlatcProvisionerError
from flatc_provisioner.main import ExitCode, exit_code_for_error
from flatc_provisioner.observability import (
    correlation_scope,
    redact_text,
    setup_logging,
    shutdown_logging,
)
from flatc_provisioner.pipeline import PipelineOrchestrator, PrintingBuildHost, SourceRootManifest
from flatc_provisioner.toolchain import (
    AsyncioShellRunner,
    LocalToolchainCache,
    RepositoryProvisioner,
    ToolchainBuilder,
    ToolchainRequest,
    VersionProber,
    default_build_steps,
    resolve_cache_directory,
)
from flatc_provisioner.ui.render import CLIRenderer


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.PROCESS_ERROR)

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class _Services:
    request: ToolchainRequest
    cache: LocalToolchainCache
    orchestrator: PipelineOrchestrator


# Maps argparse destinations to dotted config paths.
_OVERRIDE_KEYS: dict[str, str] = {
    "toolchain_version": "toolchain.version",
    "repository_url": "toolchain.repository_url",
    "cache_root": "toolchain.cache_root",
    "build_jobs": "toolchain.build_jobs",
    "sources": "generation.sources",
    "include_directories": "generation.include_directories",
    "generator_flags": "generation.generator_flags",
    "destination": "generation.destination",
    "source_roots_file": "generation.source_roots_file",
    "timeout_seconds": "process.timeout_seconds",
    "log_level": "observability.log_level",
    "log_format": "observability.log_format",
    "log_dir": "observability.log_dir",
}


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="flatc-provisioner",
        description=(
            "Provision a pinned flatc compiler and generate Java sources from schemas.\n\n"
            "Common workflows:\n"
            "  flatc-provisioner generate --source schema.fbs\n"
            "  flatc-provisioner probe --version 1.12.0\n"
            "  flatc-provisioner config\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to flatc TOML config (default: ./flatc.toml if present).",
    )
    common.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR.")
    common.add_argument("--log-format", default=None, choices=("text", "json"))
    common.add_argument("--log-dir", default=None, help="Directory for per-run JSON-lines logs.")

    toolchain = argparse.ArgumentParser(add_help=False)
    toolchain.add_argument(
        "--version",
        dest="toolchain_version",
        default=None,
        help="flatc release to provide (tag v<version>).",
    )
    toolchain.add_argument("--repository-url", default=None, help="Git URL of the flatc sources.")
    toolchain.add_argument(
        "--cache-root",
        default=None,
        help="Directory holding the .flatbuffers cache (default: user home).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate ------------------------------------------------------------
    generate_parser = subparsers.add_parser(
        "generate",
        parents=[common, toolchain],
        help="Provision flatc if needed and generate Java sources",
    )
    generate_parser.add_argument(
        "--source",
        dest="sources",
        action="append",
        default=None,
        help="Schema file to compile (repeatable).",
    )
    generate_parser.add_argument(
        "--include",
        dest="include_directories",
        action="append",
        default=None,
        help="Include directory passed as -I (repeatable).",
    )
    generate_parser.add_argument(
        "--generator",
        dest="generator_flags",
        action="append",
        default=None,
        help="Generator option: mutable, generated, nullable or all (repeatable).",
    )
    generate_parser.add_argument("--destination", default=None, help="Output directory.")
    generate_parser.add_argument(
        "--source-roots-file",
        default=None,
        help="JSON manifest that records generated-source roots.",
    )
    generate_parser.add_argument(
        "--build-jobs", type=int, default=None, help="Parallel make jobs (0 = make default)."
    )
    generate_parser.add_argument(
        "--timeout",
        dest="timeout_seconds",
        type=float,
        default=None,
        help="Per-process timeout in seconds.",
    )
    generate_parser.set_defaults(handler=_cmd_generate)

    # probe ---------------------------------------------------------------
    probe_parser = subparsers.add_parser(
        "probe",
        parents=[common, toolchain],
        help="Report whether the cached flatc satisfies the requested version",
    )
    probe_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    probe_parser.set_defaults(handler=_cmd_probe)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {redact_text(str(exc))}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_generate(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    handle = setup_logging(config["observability"], run_id=_new_run_id())
    try:
        with correlation_scope(run_id=handle.run_id):
            services = _compose(config, working_dir=Path.cwd())
            try:
                services.cache.prepare()
            except OSError as exc:
                raise CLIError(
                    f"cache directory {services.request.cache_directory} is not usable: {exc}",
                    exit_code=int(ExitCode.CONFIG_ERROR),
                ) from exc
            generation = config["generation"]
            job = GenerationJob.create(
                generation["sources"],
                include_directories=generation["include_directories"],
                generator_flags=generation["generator_flags"],
                destination=generation["destination"],
            )
            result = services.orchestrator.run(job)
    finally:
        shutdown_logging(handle)

    if result.error is not None:
        message = str(result.error)
        if config["observability"]["redact_secrets"]:
            message = redact_text(message)
        print(f"error: {message}", file=sys.stderr)
        return int(exit_code_for_error(result.error))
    return int(ExitCode.SUCCESS)


def _cmd_probe(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    handle = setup_logging(config["observability"], run_id=_new_run_id())
    try:
        with correlation_scope(run_id=handle.run_id, stage="probing"):
            services = _compose(config, working_dir=Path.cwd())
            toolchain = services.cache.inspect()
    finally:
        shutdown_logging(handle)

    satisfied = toolchain.satisfies(services.request.requested_version)
    renderer = CLIRenderer()
    payload: dict[str, object] = {
        "command": "probe",
        "binary_path": str(toolchain.binary_path),
        "requested_version": services.request.requested_version,
        "reported_version": toolchain.reported_version,
        "satisfied": satisfied,
    }
    if _flag(args, "json"):
        renderer.json(payload)
    else:
        renderer.kv("Binary", toolchain.binary_path)
        renderer.kv("Requested version", services.request.requested_version)
        renderer.kv("Reported version", toolchain.reported_version or "(none)")
        renderer.kv("Satisfied", "yes" if satisfied else "no")
    return int(ExitCode.SUCCESS if satisfied else ExitCode.PROCESS_ERROR)


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    renderer = CLIRenderer()
    if _flag(args, "json"):
        renderer.json({"command": "config", "config": redact_config(config)})
        return int(ExitCode.SUCCESS)
    renderer.text(dump_effective_config(config))
    return int(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _compose(config: Mapping[str, Any], *, working_dir: Path) -> _Services:
    """Wire the shell runner, cache, builder, invoker and host for one run."""

    toolchain = config["toolchain"]
    generation = config["generation"]
    process = config["process"]

    try:
        cache_directory = resolve_cache_directory(toolchain["cache_root"] or None)
        request = ToolchainRequest(
            requested_version=toolchain["version"],
            repository_url=toolchain["repository_url"],
            cache_directory=cache_directory,
        )
    except FlatcProvisionerError as exc:
        raise CLIError(str(exc), exit_code=int(exit_code_for_error(exc))) from exc

    runner = AsyncioShellRunner(default_timeout_seconds=process["timeout_seconds"])
    cache = LocalToolchainCache(
        request.cache_directory,
        prober=VersionProber(runner, timeout_seconds=process["probe_timeout_seconds"]),
        provisioner=RepositoryProvisioner(runner, timeout_seconds=process["timeout_seconds"]),
    )

    manifest_path = generation["source_roots_file"]
    host = PrintingBuildHost(
        sys.stdout,
        manifest=SourceRootManifest(manifest_path) if manifest_path else None,
    )
    orchestrator = PipelineOrchestrator(
        request,
        cache=cache,
        builder=ToolchainBuilder(
            runner,
            steps=default_build_steps(jobs=toolchain["build_jobs"]),
            timeout_seconds=process["timeout_seconds"],
        ),
        invoker=CompilationInvoker(
            runner,
            working_dir=working_dir,
            timeout_seconds=process["timeout_seconds"],
        ),
        host=host,
    )
    return _Services(request=request, cache=cache, orchestrator=orchestrator)


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    overrides = {
        dotted: getattr(args, dest)
        for dest, dotted in _OVERRIDE_KEYS.items()
        if hasattr(args, dest)
    }
    try:
        return load_config(
            _optional_str(getattr(args, "config_path", None)), cli_overrides=overrides
        )
    except FlatcProvisionerError as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
