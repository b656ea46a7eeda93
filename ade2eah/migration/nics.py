# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/nics.py
"""
Free the source VM's network interfaces for the replacement VM.

A NIC cannot be moved between two live VMs, so the only way to reclaim them is
to delete the source VM itself. Its NICs (and disks) are detached, not deleted.
"""

from __future__ import annotations

import logging
from typing import List

from ..azure.cli import AzureCompute
from ..azure.models import ReclaimedNic, VirtualMachineDescriptor
from ..core.logger import Log


class NicReclaimer:
    def __init__(self, logger: logging.Logger, compute: AzureCompute):
        self.logger = logger
        self.compute = compute

    def reclaim(self, vm: VirtualMachineDescriptor) -> List[ReclaimedNic]:
        Log.step(self.logger, f"Deleting source VM {vm.name} to release its network interfaces")
        self.compute.vm_delete(vm.resource_group, vm.name)
        Log.ok(self.logger, f"Source VM {vm.name} deleted (disks and NICs kept)")

        primary_id = vm.primary_nic_id
        nics: List[ReclaimedNic] = []
        for ref in vm.nics:
            current = self.compute.nic_show_by_id(ref.id)
            attached = (current.get("virtualMachine") or {}).get("id")
            if attached:
                Log.warn(self.logger, f"NIC {ref.name} still reports an attached VM: {attached}")
            nics.append(
                ReclaimedNic(
                    id=current.get("id") or ref.id,
                    name=current.get("name") or ref.name,
                    primary=(ref.id == primary_id),
                )
            )

        # primary first: 'az vm create --nics' treats the first one as primary
        nics.sort(key=lambda n: not n.primary)
        Log.trace(self.logger, "reclaimed nics: %s", ", ".join(f"{n.name}{'*' if n.primary else ''}" for n in nics))
        return nics
