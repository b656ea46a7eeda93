# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/cli/args/validators.py
from __future__ import annotations

import argparse
import os
import re
from typing import Any, Dict, Optional

from ...core.exceptions import ExitCode, Fatal

# VM resource names: letters, digits, '.', '_', '-'; no trailing '.' or '-'
_VM_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,62}[A-Za-z0-9_]$|^[A-Za-z0-9]$")
_DISK_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,78}[A-Za-z0-9_]$|^[A-Za-z0-9]$")


def _bad(msg: str, **ctx: Any) -> Fatal:
    return Fatal(code=int(ExitCode.BAD_ARGS), msg=msg, context=ctx or None)


def _require(v: Any) -> bool:
    """Blank strings count as missing."""
    return v is not None and (not isinstance(v, str) or bool(v.strip()))


def _merged_get(args: argparse.Namespace, conf: Dict[str, Any], key: str) -> Any:
    v = getattr(args, key, None)
    return v if _require(v) else conf.get(key)


def _resolve_password(args: argparse.Namespace, conf: Dict[str, Any]) -> Optional[str]:
    """An inline value wins over the name of an environment variable."""
    inline = _merged_get(args, conf, "admin_password")
    if _require(inline):
        return str(inline)
    env_name = _merged_get(args, conf, "admin_password_env")
    return os.environ.get(str(env_name)) if _require(env_name) else None


def _validate_required(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    missing = [
        flag
        for key, flag in (
            ("resource_group", "--resource-group"),
            ("source_vm", "--source-vm"),
            ("new_vm", "--new-vm"),
        )
        if not _require(_merged_get(args, conf, key))
    ]
    if missing:
        raise _bad(f"Missing required option(s): {', '.join(missing)} (CLI or config)")


def _validate_names(args: argparse.Namespace) -> None:
    for key, flag in (("source_vm", "--source-vm"), ("new_vm", "--new-vm")):
        v = str(getattr(args, key))
        if not _VM_NAME_RE.match(v):
            raise _bad(f"{flag} is not a valid VM name: {v!r}")

    if str(args.source_vm).lower() == str(args.new_vm).lower():
        raise _bad("--new-vm must differ from --source-vm (the source is deleted during the run)")

    disk = getattr(args, "new_os_disk_name", None)
    if _require(disk) and not _DISK_NAME_RE.match(str(disk)):
        raise _bad(f"--new-os-disk-name is not a valid disk name: {disk!r}")


def _positive(args: argparse.Namespace, key: str, flag: str, *, optional: bool = False) -> None:
    v = getattr(args, key, None)
    if v is None and optional:
        return
    try:
        ok = float(v) > 0
    except (TypeError, ValueError):
        ok = False
    if not ok:
        raise _bad(f"{flag} must be a positive number, got {v!r}")


def _validate_numbers(args: argparse.Namespace) -> None:
    _positive(args, "sas_duration_hours", "--sas-duration-hours")
    _positive(args, "decrypt_poll_interval", "--decrypt-poll-interval")
    _positive(args, "decrypt_timeout", "--decrypt-timeout", optional=True)
    _positive(args, "az_timeout", "--az-timeout")


def _validate_credential(args: argparse.Namespace, conf: Dict[str, Any]) -> Optional[str]:
    env_name = _merged_get(args, conf, "admin_password_env")
    secret = _resolve_password(args, conf)
    if _require(env_name) and not _require(secret):
        raise _bad(f"--admin-password-env names {env_name!r}, which is not set in the environment")
    if _require(secret) and not _require(getattr(args, "admin_username", None)):
        raise _bad("--admin-username is required when an admin password is given")
    return secret


def validate_args(args: argparse.Namespace, conf: Dict[str, Any]) -> None:
    """Raise Fatal(BAD_ARGS) on the first problem; no side effects."""
    _validate_required(args, conf)
    _validate_names(args)
    _validate_numbers(args)
    _validate_credential(args, conf)
