# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/decryption.py
"""
Turn guest-level (BitLocker) disk encryption off and wait until the volumes
report fully decrypted.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ..azure.cli import ADE_EXTENSION_NAME, AzureCompute
from ..azure.models import EncryptionScope, VirtualMachineDescriptor, parse_encryption_scope
from ..core.exceptions import ExitCode, Fatal
from ..core.logger import Log
from ..core.polling import Poller, PollOutcome, PollState
from . import guest_scripts

FULLY_DECRYPTED_MARKER = "Fully Decrypted"
IN_PROGRESS_MARKER = "in progress"

_VOLUME_RE = re.compile(r"^\s*Volume\s+([A-Za-z]:)")
_OS_VOLUME_RE = re.compile(r"^\s*\[OS Volume\]", re.IGNORECASE)
_STATUS_RE = re.compile(r"^\s*Conversion Status:\s*(.+?)\s*$", re.IGNORECASE)
_PERCENT_RE = re.compile(r"^\s*Percentage Encrypted:\s*([0-9]+(?:[.,][0-9]+)?)\s*%", re.IGNORECASE)


@dataclass
class VolumeStatus:
    volume: str
    conversion_status: str = ""
    percentage: Optional[float] = None
    is_os: bool = False

    @property
    def in_progress(self) -> bool:
        return IN_PROGRESS_MARKER in self.conversion_status.lower()


def parse_bitlocker_status(text: str) -> List[VolumeStatus]:
    """Line-oriented parse of 'manage-bde -status' output."""
    volumes: List[VolumeStatus] = []
    cur: Optional[VolumeStatus] = None
    for line in (text or "").splitlines():
        m = _VOLUME_RE.match(line)
        if m:
            cur = VolumeStatus(volume=m.group(1).upper(), is_os="[os volume]" in line.lower())
            volumes.append(cur)
            continue
        if cur is None:
            continue
        if _OS_VOLUME_RE.match(line):
            cur.is_os = True
            continue
        m = _STATUS_RE.match(line)
        if m:
            cur.conversion_status = m.group(1)
            continue
        m = _PERCENT_RE.match(line)
        if m:
            cur.percentage = float(m.group(1).replace(",", "."))

    if volumes and not any(v.is_os for v in volumes):
        for v in volumes:
            if v.volume == "C:":
                v.is_os = True
    return volumes


def os_volume(volumes: List[VolumeStatus]) -> Optional[VolumeStatus]:
    for v in volumes:
        if v.is_os:
            return v
    return None


def summarize(volumes: List[VolumeStatus]) -> str:
    if not volumes:
        return "no volumes reported"
    parts = []
    for v in volumes:
        pct = "?" if v.percentage is None else f"{v.percentage:.1f}%"
        parts.append(f"{v.volume} {v.conversion_status or 'unknown'} {pct}")
    return " | ".join(parts)


def is_fully_decrypted(text: str, volumes: List[VolumeStatus], scope: EncryptionScope) -> bool:
    """
    OS-only scope: the 'Fully Decrypted' marker is present AND the OS volume
    reads exactly 0.0%. Both are required.

    OS+Data scope: every volume reports a conversion status that is not in
    progress and a percentage of exactly 0.0. A volume missing either line
    counts as still encrypted.
    """
    if not volumes:
        return False

    if not scope.data_encrypted:
        osv = os_volume(volumes)
        if osv is None or osv.percentage is None:
            return False
        return FULLY_DECRYPTED_MARKER.lower() in (text or "").lower() and osv.percentage == 0.0

    return all(v.conversion_status and not v.in_progress and v.percentage == 0.0 for v in volumes)


class DecryptionWaiter:
    def __init__(
        self,
        logger: logging.Logger,
        compute: AzureCompute,
        *,
        interval_s: float = 30.0,
        timeout_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Any]] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.logger = logger
        self.compute = compute
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self.clock = clock
        self.sleep = sleep
        self.cancel = cancel

    def determine_scope(self, vm: VirtualMachineDescriptor) -> EncryptionScope:
        payload = self.compute.vm_encryption_show(vm.resource_group, vm.name)
        scope = parse_encryption_scope(payload, vm.os_disk_name)
        Log.trace(self.logger, "encryption scope: os=%s data=%s", scope.os_encrypted, scope.data_encrypted)
        return scope

    def _probe(self, vm: VirtualMachineDescriptor) -> str:
        return self.compute.run_powershell(vm.resource_group, vm.name, guest_scripts.BITLOCKER_STATUS)

    def disable_and_wait(self, vm: VirtualMachineDescriptor, scope: EncryptionScope) -> PollOutcome:
        Log.step(self.logger, f"Disabling guest encryption (volume type {scope.volume_type})")
        self.compute.vm_encryption_disable(vm.resource_group, vm.name, scope.volume_type)

        def _done(text: str) -> bool:
            volumes = parse_bitlocker_status(text)
            self.logger.info("Decryption status: %s", summarize(volumes))
            return is_fully_decrypted(text, volumes, scope)

        poller = Poller(
            self.logger,
            interval_s=self.interval_s,
            timeout_s=self.timeout_s,
            clock=self.clock,
            sleep=self.sleep,
            cancel=self.cancel,
            name="decryption",
        )
        outcome = poller.run(lambda: self._probe(vm), _done)

        if outcome.state is PollState.TIMED_OUT:
            raise Fatal(
                code=int(ExitCode.DECRYPTION_TIMEOUT),
                msg=f"Decryption did not complete within {self.timeout_s:.0f}s",
                context={"vm": vm.name, "attempts": outcome.attempts},
            )
        if outcome.state is PollState.CANCELLED:
            raise Fatal(code=int(ExitCode.INTERRUPTED), msg="Decryption wait cancelled")

        Log.ok(self.logger, f"Volumes fully decrypted after {outcome.attempts} check(s)")
        self.remove_extension(vm)
        return outcome

    def remove_extension(self, vm: VirtualMachineDescriptor) -> bool:
        """Best-effort removal of the disk-encryption extension; never raises."""
        try:
            self.compute.vm_extension_delete(vm.resource_group, vm.name, ADE_EXTENSION_NAME)
            Log.trace(self.logger, "removed extension %s", ADE_EXTENSION_NAME)
            return True
        except Exception as e:
            Log.warn(self.logger, f"cleanup: could not remove {ADE_EXTENSION_NAME} extension: {e}")
            return False
