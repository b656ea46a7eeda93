# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/vm_builder.py
"""
Build the replacement VM with encryption at host enabled.

Two strategies, picked once:
  - ImageRebuild: create from the source's marketplace image, then swap in the
    cloned OS disk and attach the cloned data disks.
  - DirectAttach: create straight from the cloned OS disk.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Type

from ..azure.cli import AzureCompute
from ..azure.models import (
    CopiedDiskRecord,
    DiskRecord,
    Placement,
    ReclaimedNic,
    VirtualMachineDescriptor,
)
from ..core.logger import Log


class StrategyKind(str, Enum):
    IMAGE_REBUILD = "image-rebuild"
    DIRECT_ATTACH = "direct-attach"


def select_strategy(source: VirtualMachineDescriptor, admin_password: Optional[str]) -> StrategyKind:
    image = source.image_reference
    if image is not None and image.is_marketplace and admin_password:
        return StrategyKind.IMAGE_REBUILD
    return StrategyKind.DIRECT_ATTACH


@dataclass
class BuildRequest:
    resource_group: str
    vm_name: str
    size: str
    placement: Placement
    nics: List[ReclaimedNic]
    os_disk: DiskRecord
    data_disks: List[CopiedDiskRecord]
    source: VirtualMachineDescriptor
    admin_username: str = "azureadmin"
    admin_password: Optional[str] = None


@dataclass
class BuildResult:
    vm_name: str
    strategy: StrategyKind
    skipped: bool = False
    attached: List[CopiedDiskRecord] = field(default_factory=list)
    replaced_os_disk_id: Optional[str] = None


class BuildStrategy(ABC):
    kind: StrategyKind

    def __init__(self, logger: logging.Logger, compute: AzureCompute):
        self.logger = logger
        self.compute = compute

    @abstractmethod
    def build(self, req: BuildRequest) -> BuildResult:
        raise NotImplementedError

    # ------------------------------------------------------------------ shared steps

    def _create_args(self, req: BuildRequest) -> List[str]:
        nics = sorted(req.nics, key=lambda n: not n.primary)
        args = [
            "--resource-group", req.resource_group,
            "--name", req.vm_name,
            "--location", req.placement.location,
            "--size", req.size,
            "--nics", *[n.id for n in nics],
            "--encryption-at-host", "true",
        ]
        if req.placement.availability_set_id:
            args += ["--availability-set", req.placement.availability_set_id]
        elif req.placement.zones:
            args += ["--zone", req.placement.zones[0]]
        if req.source.license_type:
            args += ["--license-type", req.source.license_type]
        plan = req.source.plan
        if plan is not None:
            args += ["--plan-name", plan.name, "--plan-product", plan.product, "--plan-publisher", plan.publisher]
        return args

    def _accept_terms(self, req: BuildRequest) -> None:
        plan = req.source.plan
        if plan is None:
            return
        if self.compute.terms_accepted(plan.publisher, plan.product, plan.name):
            Log.trace(self.logger, "marketplace terms already accepted for %s/%s/%s", plan.publisher, plan.product, plan.name)
            return
        Log.step(self.logger, f"Accepting marketplace terms {plan.publisher}/{plan.product}/{plan.name}")
        self.compute.terms_accept(plan.publisher, plan.product, plan.name)

    def _apply_boot_diagnostics(self, req: BuildRequest) -> None:
        bd = req.source.boot_diagnostics
        self.compute.vm_boot_diagnostics(
            req.resource_group,
            req.vm_name,
            enabled=bd.enabled,
            storage_uri=bd.storage_uri,
        )
        Log.trace(self.logger, "boot diagnostics mirrored: %s", bd.mode)

    def _attach_data_disks(self, req: BuildRequest) -> List[CopiedDiskRecord]:
        attached: List[CopiedDiskRecord] = []
        for d in sorted(req.data_disks, key=lambda x: x.lun):
            Log.step(self.logger, f"Attaching {d.name} at LUN {d.lun} (caching {d.caching})")
            self.compute.vm_attach_disk(req.resource_group, req.vm_name, d.id, lun=d.lun, caching=d.caching)
            attached.append(d)
        return attached


class ImageRebuild(BuildStrategy):
    kind = StrategyKind.IMAGE_REBUILD

    def build(self, req: BuildRequest) -> BuildResult:
        image = req.source.image_reference
        assert image is not None
        self._accept_terms(req)

        Log.step(self.logger, f"Creating {req.vm_name} from image {image.urn}")
        args = self._create_args(req) + [
            "--image", image.urn,
            "--admin-username", req.admin_username,
            "--admin-password", req.admin_password or "",
        ]
        self.compute.vm_create(args)
        self._apply_boot_diagnostics(req)

        created = self.compute.vm_show(req.resource_group, req.vm_name) or {}
        image_os_disk = ((created.get("storageProfile") or {}).get("osDisk") or {}).get("managedDisk") or {}

        Log.step(self.logger, f"Stopping {req.vm_name} to swap in the cloned OS disk")
        self.compute.vm_deallocate(req.resource_group, req.vm_name)
        self.compute.vm_set_os_disk(req.resource_group, req.vm_name, req.os_disk.id)
        attached = self._attach_data_disks(req)
        self.compute.vm_start(req.resource_group, req.vm_name)

        return BuildResult(
            vm_name=req.vm_name,
            strategy=self.kind,
            attached=attached,
            replaced_os_disk_id=image_os_disk.get("id"),
        )


class DirectAttach(BuildStrategy):
    kind = StrategyKind.DIRECT_ATTACH

    def build(self, req: BuildRequest) -> BuildResult:
        self._accept_terms(req)

        Log.step(self.logger, f"Creating {req.vm_name} from cloned OS disk {req.os_disk.name}")
        args = self._create_args(req) + [
            "--attach-os-disk", req.os_disk.id,
            "--os-type", req.source.os_type or req.os_disk.os_type or "Windows",
        ]
        self.compute.vm_create(args)
        self._apply_boot_diagnostics(req)
        attached = self._attach_data_disks(req)
        return BuildResult(vm_name=req.vm_name, strategy=self.kind, attached=attached)


_STRATEGIES: Dict[StrategyKind, Type[BuildStrategy]] = {
    StrategyKind.IMAGE_REBUILD: ImageRebuild,
    StrategyKind.DIRECT_ATTACH: DirectAttach,
}


class VmBuilder:
    def __init__(self, logger: logging.Logger, compute: AzureCompute):
        self.logger = logger
        self.compute = compute

    def build(self, req: BuildRequest) -> BuildResult:
        kind = select_strategy(req.source, req.admin_password)

        if self.compute.vm_show(req.resource_group, req.vm_name) is not None:
            Log.warn(self.logger, f"VM {req.vm_name} already exists; treating as already migrated, skipping build")
            return BuildResult(vm_name=req.vm_name, strategy=kind, skipped=True)

        Log.step(self.logger, f"Building {req.vm_name} ({kind.value}, size {req.size})")
        result = _STRATEGIES[kind](self.logger, self.compute).build(req)
        Log.ok(self.logger, f"VM {req.vm_name} built ({kind.value})")
        return result
