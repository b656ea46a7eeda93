# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/cli/args/parser.py
"""
Two-pass argument parsing.

The first pass reads only the flags needed to set up logging and find
config files. Merged config values then become parser defaults, and the
second pass parses the whole command line on top of them, so a flag given
on the command line always beats the same key in a file.
"""
from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...config.config_loader import Config
from ...core.logger import Log, c
from ...core.utils import U
from .builder import HelpFormatter, build_epilog
from .groups import (
    _add_credentials,
    _add_global_config_logging,
    _add_migration_behavior,
    _add_target_selection,
    _add_tooling_knobs,
)
from .validators import validate_args

_SECRET_DESTS = frozenset({"admin_password"})

_GROUPS = (
    _add_global_config_logging,
    _add_target_selection,
    _add_migration_behavior,
    _add_credentials,
    _add_tooling_knobs,
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ade2eah",
        description=c("ade2eah: move an Azure VM from Azure Disk Encryption to encryption at host", "green", ["bold"]),
        formatter_class=HelpFormatter,
        epilog=build_epilog(),
    )
    for add in _GROUPS:
        add(p)
    return p


def _bootstrap_parser() -> argparse.ArgumentParser:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", action="append", default=[])
    pre.add_argument("-v", "--verbose", action="count", default=0)
    pre.add_argument("--log-file", dest="log_file")
    pre.add_argument("--json-logs", dest="json_logs", action="store_true")
    pre.add_argument("--dump-config", dest="dump_config", action="store_true")
    pre.add_argument("--dump-args", dest="dump_args", action="store_true")
    return pre


def _read_configs(logger: Any, paths: List[str]) -> Dict[str, Any]:
    if not paths:
        return {}
    return Config.load_many(logger, Config.expand_configs(logger, paths))


def _dump_and_exit(values: Dict[str, Any]) -> None:
    shown = {k: ("***" if k in _SECRET_DESTS and v else v) for k, v in values.items()}
    print(U.json_dump(shown))
    raise SystemExit(0)


def parse_args_with_config(
    argv: Optional[Sequence[str]] = None,
    logger: Any = None,
) -> Tuple[argparse.Namespace, Dict[str, Any], Any]:
    """
    Returns (args, merged config, logger). Raises Fatal(BAD_ARGS) for
    unusable input; --dump-config and --dump-args print and exit 0.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    boot, _ = _bootstrap_parser().parse_known_args(argv)

    if logger is None:
        logger = Log.setup(boot.verbose, boot.log_file, json_logs=boot.json_logs)

    conf = _read_configs(logger, boot.config)
    if boot.dump_config:
        _dump_and_exit(conf)

    parser = build_parser()
    Config.apply_as_defaults(logger, parser, conf)
    args = parser.parse_args(argv)
    if boot.dump_args:
        _dump_and_exit(vars(args))

    validate_args(args, conf)
    return args, conf, logger
