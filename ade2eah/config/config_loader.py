# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/config/config_loader.py
"""
YAML/JSON config files for the CLI.

Configs are flat mappings of option dest names (snake_case; dashes are
accepted and normalized). Several files merge left to right, later wins.
"""

from __future__ import annotations

import argparse
import glob
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Sequence

import yaml

from ..core.exceptions import ExitCode, Fatal

# never taken from a config file; logging is configured before files are read
_CLI_ONLY_KEYS = frozenset(
    {"config", "dump_config", "dump_args", "version", "help", "verbose", "log_file", "json_logs"}
)


def _bad_config(msg: str, **ctx: Any) -> Fatal:
    return Fatal(code=int(ExitCode.BAD_ARGS), msg=msg, context=ctx or None)


class Config:
    @staticmethod
    def expand_configs(logger: logging.Logger, paths: Sequence[str]) -> List[Path]:
        """
        Expand ~, env vars and globs; keep order. A literal path that does not
        exist is an error, a glob that matches nothing is only logged.
        """
        out: List[Path] = []
        for raw in paths:
            p = os.path.expandvars(os.path.expanduser(str(raw)))
            if any(ch in p for ch in "*?["):
                hits = sorted(glob.glob(p))
                if not hits:
                    logger.warning("Config glob matched nothing: %s", raw)
                out.extend(Path(h) for h in hits)
                continue
            path = Path(p)
            if not path.is_file():
                raise _bad_config(f"Config file not found: {raw}", path=str(raw))
            out.append(path)
        logger.debug("Config files: %s", ", ".join(str(p) for p in out) or "(none)")
        return out

    @staticmethod
    def load_one(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise _bad_config(f"Cannot read config {path}: {e}", path=str(path))

        suffix = path.suffix.lower()
        try:
            if suffix == ".json":
                data = json.loads(raw) if raw.strip() else {}
            else:
                data = yaml.safe_load(raw)
        except (ValueError, yaml.YAMLError) as e:
            raise _bad_config(f"Config {path} does not parse: {e}", path=str(path))

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise _bad_config(f"Config {path} must be a mapping at the top level", path=str(path))

        out = {str(k).strip().replace("-", "_"): v for k, v in data.items()}
        logger.debug("Loaded %d key(s) from %s", len(out), path)
        return out

    @staticmethod
    def load_many(logger: logging.Logger, paths: Sequence[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in paths:
            merged.update(Config.load_one(logger, Path(p)))
        return merged

    @staticmethod
    def apply_as_defaults(logger: logging.Logger, parser: argparse.ArgumentParser, conf: Dict[str, Any]) -> None:
        """Known keys become parser defaults (so CLI flags still win); unknown keys are warned about."""
        known = {a.dest for a in parser._actions}
        defaults: Dict[str, Any] = {}
        for k, v in conf.items():
            if k in _CLI_ONLY_KEYS:
                logger.warning("Config key %r is CLI-only; ignored", k)
                continue
            if k not in known:
                logger.warning("Unknown config key %r; ignored", k)
                continue
            defaults[k] = v
        if defaults:
            parser.set_defaults(**defaults)
