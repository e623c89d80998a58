"""Module entrypoint for ``python -m flatc_provisioner``."""

from __future__ import annotations

from flatc_provisioner.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
