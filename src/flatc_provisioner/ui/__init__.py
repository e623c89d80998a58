"""UI package exports for the CLI router and plain-text rendering."""

from flatc_provisioner.ui.cli import CLIError, build_parser, run_cli
from flatc_provisioner.ui.render import CLIRenderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "run_cli"]
