from __future__ import annotations

import dataclasses

from ovm_host.errors import OvmError

from . import console
from .config import config_path, load_config
from .context import Orchestrator
from .logging_ import setup_logging

_HIDDEN_FIELDS = {"ssh_public_key"}


def main() -> None:
    try:
        cfg = load_config()
    except OvmError as exc:
        console.err(f"config {config_path()}: {exc}")
        raise SystemExit(1)
    setup_logging(cfg.verbose)

    orchestrator = Orchestrator(cfg)
    try:
        orchestrator.pre_setup()
        ctx = orchestrator.setup()
    except OvmError as exc:
        console.err(str(exc))
        raise SystemExit(1)

    rows = [(f.name, getattr(ctx, f.name)) for f in dataclasses.fields(ctx) if f.name not in _HIDDEN_FIELDS]
    console.print_fields(f"{ctx.name} bootstrap", rows)
    console.ok(f"ready, ssh on port {ctx.ssh_port}")


if __name__ == "__main__":
    main()
