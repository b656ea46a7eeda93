# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/placement.py

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..azure.cli import AzureCompute
from ..azure.models import Placement, VirtualMachineDescriptor
from ..core.logger import Log

# Catalog spellings seen for the host-encryption hint.
EAH_CAPABILITY_KEYS = ("EncryptionAtHostSupported", "EncryptionAtHost", "HostEncryptionSupported")


def resolve_placement(vm: VirtualMachineDescriptor) -> Placement:
    """Location plus availability set OR zones, taken from the source VM."""
    if vm.availability_set_id:
        return Placement(location=vm.location, availability_set_id=vm.availability_set_id, zones=None)
    return Placement(location=vm.location, availability_set_id=None, zones=tuple(vm.zones) or None)


class PlacementValidator:
    """
    Advisory check that a size can be placed where the new VM will live.

    Only run for dry-run or --validate-placement.
    """

    def __init__(self, logger: logging.Logger, compute: AzureCompute):
        self.logger = logger
        self.compute = compute

    def validate(
        self,
        location: str,
        size: str,
        zones: Optional[Sequence[str]] = None,
        availability_set_id: Optional[str] = None,
    ) -> bool:
        Log.step(self.logger, f"Validating placement: size={size} location={location}")
        skus = [s for s in self.compute.list_skus(location, size) if not s.restricted]
        if not skus:
            Log.fail(self.logger, f"VM size {size} is not available in {location}")
            return False
        sku = skus[0]

        hint = sku.capability(*EAH_CAPABILITY_KEYS)
        if hint is None:
            Log.warn(self.logger, f"{size} does not advertise host-encryption support; continuing (support may be unadvertised)")
        elif hint.strip().lower() != "true":
            Log.warn(self.logger, f"{size} reports host-encryption capability={hint}")
        else:
            Log.ok(self.logger, f"{size} advertises host-encryption support")

        if zones:
            if not sku.zones:
                Log.fail(self.logger, f"VM size {size} has no availability zones in {location} (requested {','.join(zones)})")
                return False
            missing = [z for z in zones if z not in sku.zones]
            if missing:
                Log.warn(self.logger, f"zone(s) {','.join(missing)} not listed for {size} in {location}")

        if availability_set_id:
            Log.trace(self.logger, "availability set %s: not validated against the catalog", availability_set_id)

        Log.ok(self.logger, f"Placement valid for {size} in {location}")
        return True
