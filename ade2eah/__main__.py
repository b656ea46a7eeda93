# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/__main__.py
from __future__ import annotations

import argparse
import sys
import traceback
from typing import Any, Optional, Sequence

from .azure.cli import AzSession, AzureCompute
from .cli.args.parser import parse_args_with_config
from .core.exceptions import Ade2EahError, ExitCode, Fatal, format_exception_for_cli
from .migration.options import MigrationOptions
from .migration.orchestrator import MigrationOrchestrator

INTERRUPTED_HINT = (
    "Interrupted. If the source VM still exists, re-run the same command "
    "(a disk whose copy was cut short must be deleted first, or the re-run exits with 11). "
    "If the source VM was already deleted, a re-run exits with 6; create the new VM by hand "
    "from the copied disks and the source NICs."
)


def _emit(logger: Any, level: str, msg: str) -> None:
    """Log if a logger is up yet, otherwise fall back to stderr."""
    fn = getattr(logger, level, None) if logger is not None else None
    if callable(fn):
        fn(msg)
    else:
        print(msg, file=sys.stderr)


def _migrate(args: argparse.Namespace, logger: Any) -> int:
    options = MigrationOptions.from_args(args)
    session = AzSession(subscription=options.subscription, timeout_s=int(getattr(args, "az_timeout", None) or 300))
    return MigrationOrchestrator(logger, options, AzureCompute(session)).run()


def main(argv: Optional[Sequence[str]] = None) -> None:
    logger: Optional[Any] = None
    try:
        args, _conf, logger = parse_args_with_config(argv)
    except Fatal as e:
        _emit(logger, "error", f"💥 ERROR    {e}")
        raise SystemExit(e.code)
    except KeyboardInterrupt:
        raise SystemExit(int(ExitCode.INTERRUPTED))

    verbose = int(getattr(args, "verbose", 0) or 0)
    try:
        rc = _migrate(args, logger)
    except Ade2EahError as e:
        _emit(logger, "error", format_exception_for_cli(e, verbose=verbose))
        rc = e.code
    except KeyboardInterrupt:
        _emit(logger, "warning", INTERRUPTED_HINT)
        rc = int(ExitCode.INTERRUPTED)
    except Exception as e:
        _emit(logger, "error", f"💥 UNHANDLED {type(e).__name__}: {e}")
        _emit(logger, "debug", traceback.format_exc())
        rc = int(ExitCode.INTERNAL)

    raise SystemExit(rc)


if __name__ == "__main__":
    main()
