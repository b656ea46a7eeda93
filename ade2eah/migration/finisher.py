# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/finisher.py
"""
Post-build steps on the replacement VM: check that encryption at host landed,
bring the copied data disks up inside the guest, and tell the operator what is
left to do by hand.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from ..azure.cli import AzureCompute
from ..azure.models import DomainInfo, VirtualMachineDescriptor, VolumeInfo, parse_volumes
from ..core.logger import Log
from ..core.polling import Poller, PollState
from . import guest_scripts

RUNNING = "running"


@dataclass
class FinishResult:
    encryption_at_host: bool = False
    disks_initialized: bool = False
    restarted: bool = False
    volumes: List[VolumeInfo] = field(default_factory=list)
    checklist: List[str] = field(default_factory=list)


def operator_checklist(domain: DomainInfo) -> List[str]:
    if not domain.captured:
        return [
            "Domain membership of the source could not be read; check it in the guest "
            "(Get-CimInstance Win32_ComputerSystem) before signing off.",
        ]
    if not domain.part_of_domain:
        return ["Source VM was not domain-joined; no manual DNS or identity steps are needed."]

    name = domain.computer_name or "<computer>"
    dom = domain.domain or "<domain>"
    return [
        f"Source VM was joined to {dom}; run these in the new VM as an administrator:",
        "ipconfig /flushdns",
        "ipconfig /registerdns",
        f"Test-ComputerSecureChannel -Server <dc>.{dom} (use -Repair if it returns False)",
        "klist purge; gpupdate /force",
        f"Confirm the A record for {name}.{dom} in DNS points at the NIC's private IP",
    ]


class PostBuildFinisher:
    def __init__(
        self,
        logger: logging.Logger,
        compute: AzureCompute,
        *,
        restart_interval_s: float = 15.0,
        restart_attempts: int = 20,
        sleep: Optional[Callable[[float], Any]] = None,
        clock: Callable[[], float] = time.monotonic,
        cancel: Optional[threading.Event] = None,
    ):
        self.logger = logger
        self.compute = compute
        self.restart_interval_s = restart_interval_s
        self.restart_attempts = restart_attempts
        self.sleep = sleep
        self.clock = clock
        self.cancel = cancel

    def verify_encryption_at_host(self, rg: str, vm_name: str) -> bool:
        """Re-read the VM; a missing flag is reported, never raised."""
        try:
            raw = self.compute.vm_show(rg, vm_name)
        except Exception as e:
            Log.warn(self.logger, f"Could not re-read {vm_name} to verify encryption at host: {e}")
            return False
        if raw and VirtualMachineDescriptor.from_az(raw).encryption_at_host:
            Log.ok(self.logger, f"Encryption at host is enabled on {vm_name}")
            return True
        Log.warn(self.logger, f"Encryption at host is NOT reported on {vm_name}; check the VM's security profile")
        return False

    def _wait_running(self, rg: str, vm_name: str) -> bool:
        poller = Poller(
            self.logger,
            interval_s=self.restart_interval_s,
            max_attempts=self.restart_attempts,
            clock=self.clock,
            sleep=self.sleep,
            cancel=self.cancel,
            name="restart",
        )
        outcome = poller.run(lambda: self.compute.vm_power_state(rg, vm_name), lambda s: s == RUNNING, initial_delay=True)
        if outcome.state is PollState.DONE:
            Log.ok(self.logger, f"{vm_name} is running again")
            return True
        Log.warn(self.logger, f"{vm_name} not running after {outcome.attempts} check(s) (last state: {outcome.value})")
        return False

    def read_volumes(self, rg: str, vm_name: str) -> List[VolumeInfo]:
        try:
            return parse_volumes(self.compute.run_powershell(rg, vm_name, guest_scripts.LIST_VOLUMES))
        except Exception as e:
            Log.warn(self.logger, f"Could not read volumes from {vm_name}: {e}")
            return []

    def initialize_data_disks(self, rg: str, vm_name: str, result: Optional[FinishResult] = None) -> FinishResult:
        res = result or FinishResult()
        Log.step(self.logger, f"Initializing raw data disks inside {vm_name}")
        try:
            out = self.compute.run_powershell(rg, vm_name, guest_scripts.INITIALIZE_DATA_DISKS)
            for line in out.splitlines():
                if line.strip():
                    self.logger.info("guest: %s", line.strip())
            res.disks_initialized = True
        except Exception as e:
            Log.warn(self.logger, f"Data disk initialization failed in {vm_name}: {e}")

        Log.step(self.logger, f"Restarting {vm_name}")
        try:
            self.compute.vm_restart(rg, vm_name, wait=False)
        except Exception as e:
            Log.warn(self.logger, f"Restart request for {vm_name} failed: {e}")
        res.restarted = self._wait_running(rg, vm_name)
        if res.restarted:
            res.volumes = self.read_volumes(rg, vm_name)
            for v in res.volumes:
                self.logger.info("volume %s: label=%r size=%s", v.drive_letter, v.label, v.size_bytes)
        return res

    def finish(self, rg: str, vm_name: str, *, has_data_disks: bool, domain: DomainInfo) -> FinishResult:
        res = FinishResult()
        res.encryption_at_host = self.verify_encryption_at_host(rg, vm_name)
        if has_data_disks:
            self.initialize_data_disks(rg, vm_name, res)
        res.checklist = operator_checklist(domain)
        return res
