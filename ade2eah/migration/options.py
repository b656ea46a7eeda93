# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/options.py

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def default_os_disk_name(source_vm: str) -> str:
    return f"{source_vm}-OSDisk-EAH"


def data_disk_target_name(source_disk_name: str) -> str:
    return f"{source_disk_name}-EAH"


@dataclass
class MigrationOptions:
    resource_group: str
    source_vm: str
    new_vm: str
    new_os_disk_name: Optional[str] = None
    vm_size: Optional[str] = None
    include_data_disks: bool = False
    azcopy_path: Optional[str] = None
    dry_run: bool = False
    validate_placement: bool = False
    admin_username: str = "azureadmin"
    admin_password: Optional[str] = None
    subscription: Optional[str] = None
    output_dir: Path = Path("./out")
    sas_duration_hours: int = 24
    decrypt_poll_interval_s: float = 30.0
    decrypt_timeout_s: Optional[float] = None
    feature_poll_interval_s: float = 5.0
    restart_poll_interval_s: float = 15.0
    restart_poll_attempts: int = 20

    @property
    def os_disk_name(self) -> str:
        return self.new_os_disk_name or default_os_disk_name(self.source_vm)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "MigrationOptions":
        password = getattr(args, "admin_password", None)
        env_name = getattr(args, "admin_password_env", None)
        if not password and env_name:
            password = os.environ.get(str(env_name)) or None

        timeout = getattr(args, "decrypt_timeout", None)
        return cls(
            resource_group=args.resource_group,
            source_vm=args.source_vm,
            new_vm=args.new_vm,
            new_os_disk_name=getattr(args, "new_os_disk_name", None) or None,
            vm_size=getattr(args, "vm_size", None) or None,
            include_data_disks=bool(getattr(args, "include_data_disks", False)),
            azcopy_path=getattr(args, "azcopy_path", None) or None,
            dry_run=bool(getattr(args, "dry_run", False)),
            validate_placement=bool(getattr(args, "validate_placement", False)),
            admin_username=getattr(args, "admin_username", None) or "azureadmin",
            admin_password=password,
            subscription=getattr(args, "subscription", None) or None,
            output_dir=Path(getattr(args, "output_dir", None) or "./out"),
            sas_duration_hours=int(getattr(args, "sas_duration_hours", 24) or 24),
            decrypt_poll_interval_s=float(getattr(args, "decrypt_poll_interval", 30) or 30),
            decrypt_timeout_s=float(timeout) if timeout else None,
        )
