# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/orchestrator.py

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, List, Optional

from rich.console import Console

from ..azure.cli import AzureCompute
from ..azure.models import (
    CopiedDiskRecord,
    DiskRecord,
    DomainInfo,
    EncryptionScope,
    ReclaimedNic,
    parse_domain_info,
)
from ..core.exceptions import ExitCode, precondition
from ..core.logger import Log
from ..core.logging_utils import log_step
from ..core.utils import U
from . import guest_scripts
from .data_disks import DataDiskMapper
from .decryption import DecryptionWaiter
from .disk_clone import CopyRunner, DiskCloneService
from .finisher import PostBuildFinisher
from .nics import NicReclaimer
from .options import MigrationOptions, data_disk_target_name
from .placement import PlacementValidator
from .preflight import Preflight, PreflightResult
from .report import MigrationReport, render_plan, render_summary, write_report
from .vm_builder import BuildRequest, BuildResult, VmBuilder, select_strategy


class MigrationOrchestrator:
    """
    Runs one ADE -> encryption-at-host migration, strictly in order:

      preflight -> placement check (optional) -> decrypt -> stop source
      -> clone OS disk -> clone data disks -> delete source (frees NICs)
      -> build -> verify -> initialize data disks -> report

    Nothing is rolled back. The source VM's original disks are left detached
    as the manual fallback. Creating steps reuse what already exists, but a
    reused disk is always copied into again; one left behind by a failed copy
    refuses the write grant and stops the run before the source is deleted.
    """

    def __init__(
        self,
        logger: logging.Logger,
        options: MigrationOptions,
        compute: AzureCompute,
        *,
        console: Optional[Console] = None,
        copy_runner: Optional[CopyRunner] = None,
        which: Callable[[str], Optional[str]] = U.which,
        sleep: Optional[Callable[[float], Any]] = None,
        clock: Callable[[], float] = time.monotonic,
        cancel: Optional[threading.Event] = None,
    ):
        self.logger = logger
        self.options = options
        self.compute = compute
        self.console = console
        self.cancel = cancel

        self.preflight = Preflight(logger, options, compute, which=which, sleep=sleep, clock=clock, cancel=cancel)
        self.validator = PlacementValidator(logger, compute)
        self.decryption = DecryptionWaiter(
            logger,
            compute,
            interval_s=options.decrypt_poll_interval_s,
            timeout_s=options.decrypt_timeout_s,
            clock=clock,
            sleep=sleep,
            cancel=cancel,
        )
        self._copy_runner = copy_runner
        self.mapper = DataDiskMapper(logger, compute)
        self.nics = NicReclaimer(logger, compute)
        self.builder = VmBuilder(logger, compute)
        self.finisher = PostBuildFinisher(
            logger,
            compute,
            restart_interval_s=options.restart_poll_interval_s,
            restart_attempts=options.restart_poll_attempts,
            sleep=sleep,
            clock=clock,
            cancel=cancel,
        )

        self.report = MigrationReport(
            resource_group=options.resource_group,
            source_vm=options.source_vm,
            new_vm=options.new_vm,
            dry_run=options.dry_run,
        )
        Log.trace(
            self.logger,
            "orchestrator init: rg=%s source=%s new=%s dry_run=%s",
            options.resource_group,
            options.source_vm,
            options.new_vm,
            options.dry_run,
        )

    # ------------------------------------------------------------------ steps

    def _validate_placement(self, pre: PreflightResult) -> Optional[bool]:
        if not (self.options.dry_run or self.options.validate_placement):
            return None
        p = pre.placement
        ok = self.validator.validate(p.location, pre.size, p.zones, p.availability_set_id)
        if not ok:
            raise precondition(
                ExitCode.INVALID_PLACEMENT,
                f"VM size {pre.size} cannot be placed in {p.location}",
                size=pre.size,
                location=p.location,
                zones=",".join(p.zones or ()),
            )
        return ok

    def _capture_domain(self, pre: PreflightResult) -> DomainInfo:
        """Read domain membership while the source still runs; failure only loses the checklist detail."""
        if self.options.dry_run:
            return DomainInfo.unknown()
        vm = pre.vm
        try:
            info = parse_domain_info(self.compute.run_powershell(vm.resource_group, vm.name, guest_scripts.DOMAIN_INFO))
        except Exception as e:
            Log.warn(self.logger, f"Could not read domain membership from {vm.name}: {e}")
            return DomainInfo.unknown()
        if info.part_of_domain:
            self.logger.info("Source %s is joined to %s", info.computer_name or vm.name, info.domain)
        else:
            self.logger.info("Source %s is not domain-joined", info.computer_name or vm.name)
        return info

    def _read_scope(self, pre: PreflightResult) -> Optional[EncryptionScope]:
        try:
            return self.decryption.determine_scope(pre.vm)
        except Exception as e:
            if not self.options.dry_run:
                raise
            Log.warn(self.logger, f"Could not read encryption state of {pre.vm.name}: {e}")
            return None

    def _decrypt(self, pre: PreflightResult, scope: EncryptionScope) -> None:
        if not scope.any:
            Log.ok(self.logger, f"{pre.vm.name} reports no guest encryption; nothing to decrypt")
            return
        self.decryption.disable_and_wait(pre.vm, scope)

    def _stop_source(self, pre: PreflightResult) -> None:
        vm = pre.vm
        Log.step(self.logger, f"Deallocating source VM {vm.name}")
        self.compute.vm_deallocate(vm.resource_group, vm.name)
        Log.ok(self.logger, f"{vm.name} deallocated")

    def _cloner(self, pre: PreflightResult) -> DiskCloneService:
        return DiskCloneService(
            self.logger,
            self.compute,
            azcopy_path=pre.azcopy_path or "azcopy",
            runner=self._copy_runner,
        )

    def _clone_os_disk(self, pre: PreflightResult, cloner: DiskCloneService) -> DiskRecord:
        assert pre.vm.os_disk_id is not None
        source = self.compute.disk_show_by_id(pre.vm.os_disk_id)
        return cloner.clone_disk(
            source,
            pre.os_disk_name,
            zones=pre.placement.zones,
            resource_group=self.options.resource_group,
            sas_duration_hours=self.options.sas_duration_hours,
        )

    def _clone_data_disks(self, pre: PreflightResult, cloner: DiskCloneService) -> List[CopiedDiskRecord]:
        if not pre.vm.data_disks:
            return []
        if not self.options.include_data_disks:
            Log.warn(
                self.logger,
                f"{len(pre.vm.data_disks)} data disk(s) will not be migrated (--include-data-disks not set)",
            )
            return []

        copied: List[CopiedDiskRecord] = []
        for info in self.mapper.map(pre.vm):
            target = cloner.clone_disk(
                info.disk,
                data_disk_target_name(info.name),
                zones=pre.placement.zones,
                resource_group=self.options.resource_group,
                sas_duration_hours=self.options.sas_duration_hours,
            )
            copied.append(CopiedDiskRecord(name=target.name, id=target.id, lun=info.lun, caching=info.caching))
        return copied

    def _build(
        self,
        pre: PreflightResult,
        os_disk: DiskRecord,
        data: List[CopiedDiskRecord],
        nics: List[ReclaimedNic],
    ) -> BuildResult:
        return self.builder.build(
            BuildRequest(
                resource_group=self.options.resource_group,
                vm_name=self.options.new_vm,
                size=pre.size,
                placement=pre.placement,
                nics=nics,
                os_disk=os_disk,
                data_disks=data,
                source=pre.vm,
                admin_username=self.options.admin_username,
                admin_password=self.options.admin_password,
            )
        )

    def _leftovers(self, pre: PreflightResult, built: BuildResult) -> List[str]:
        out: List[str] = []
        if pre.vm.os_disk_name:
            out.append(f"source OS disk (detached): {pre.vm.os_disk_name}")
        for d in pre.vm.data_disks:
            out.append(f"source data disk LUN {d.lun} (detached): {d.name}")
        if built.replaced_os_disk_id:
            out.append(f"image OS disk replaced by the swap: {built.replaced_os_disk_id.rsplit('/', 1)[-1]}")
        return out

    # ------------------------------------------------------------------ entry

    def run(self) -> int:
        opts = self.options
        self.report.started = U.now_ts()
        Log.banner(self.logger, f"ADE -> encryption at host: {opts.source_vm} -> {opts.new_vm}")

        with log_step(self.logger, "Preflight"):
            pre = self.preflight.run()
        self.report.source = pre.vm.to_jsonable()
        self.report.size = pre.size
        self.report.placement = asdict(pre.placement)

        placement_ok = self._validate_placement(pre)
        domain = self._capture_domain(pre)
        self.report.domain = asdict(domain)
        scope = self._read_scope(pre)
        if scope is not None:
            self.report.encryption_scope = asdict(scope)

        strategy = select_strategy(pre.vm, opts.admin_password)
        self.report.strategy = strategy.value

        if opts.dry_run:
            render_plan(
                pre,
                scope,
                new_vm=opts.new_vm,
                include_data_disks=opts.include_data_disks,
                strategy=strategy.value,
                placement_ok=placement_ok,
                console=self.console,
            )
            Log.ok(self.logger, "Dry run complete; nothing was changed")
            return int(ExitCode.OK)

        assert scope is not None
        with log_step(self.logger, "Decrypt guest volumes"):
            self._decrypt(pre, scope)

        self._stop_source(pre)

        cloner = self._cloner(pre)
        with log_step(self.logger, "Clone OS disk"):
            os_disk = self._clone_os_disk(pre, cloner)
        self.report.os_disk = os_disk.name

        with log_step(self.logger, "Clone data disks"):
            data = self._clone_data_disks(pre, cloner)
        self.report.data_disks = [asdict(d) for d in data]

        with log_step(self.logger, "Reclaim network interfaces"):
            nics = self.nics.reclaim(pre.vm)
        self.report.nics = [asdict(n) for n in nics]

        with log_step(self.logger, "Build VM"):
            built = self._build(pre, os_disk, data, nics)
        self.report.strategy = built.strategy.value
        self.report.build_skipped = built.skipped
        self.report.leftovers = self._leftovers(pre, built)

        finished = self.finisher.finish(
            opts.resource_group,
            opts.new_vm,
            has_data_disks=bool(built.attached),
            domain=domain,
        )
        self.report.encryption_at_host_verified = finished.encryption_at_host
        self.report.volumes = [asdict(v) for v in finished.volumes]
        self.report.checklist = finished.checklist
        self.report.finished = U.now_ts()

        write_report(self.logger, self.report, Path(opts.output_dir))
        render_summary(self.report, console=self.console)
        for line in finished.checklist:
            self.logger.info("☑️  %s", line)
        Log.ok(self.logger, f"Migration of {opts.source_vm} to {opts.new_vm} complete")
        return int(ExitCode.OK)
