# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/data_disks.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from ..azure.cli import AzureCompute
from ..azure.models import DiskRecord, VirtualMachineDescriptor
from ..core.logger import Log
from ..core.utils import U


@dataclass(frozen=True)
class DataDiskInfo:
    lun: int
    caching: str
    disk: DiskRecord

    @property
    def name(self) -> str:
        return self.disk.name


class DataDiskMapper:
    """Resolves the source VM's secondary disks, keeping each one's LUN and caching."""

    def __init__(self, logger: logging.Logger, compute: AzureCompute):
        self.logger = logger
        self.compute = compute

    def map(self, vm: VirtualMachineDescriptor) -> List[DataDiskInfo]:
        out: List[DataDiskInfo] = []
        for ref in vm.data_disks:
            disk = self.compute.disk_show_by_id(ref.id)
            out.append(DataDiskInfo(lun=ref.lun, caching=ref.caching, disk=disk))
            Log.trace(
                self.logger,
                "data disk lun=%d name=%s size=%s sku=%s caching=%s zones=%s",
                ref.lun,
                disk.name,
                U.human_bytes(disk.size_bytes),
                disk.sku,
                ref.caching,
                ",".join(disk.zones) or "-",
            )
        return sorted(out, key=lambda d: d.lun)
