# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/preflight.py
"""
Checks that must pass before anything is touched, plus resolution of the
inputs the rest of the run works from (frozen source snapshot, size,
placement, new OS disk name).

Every failure here is a Fatal with its own exit code and nothing has been
mutated yet.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..azure.cli import EAH_FEATURE_NAME, EAH_FEATURE_NAMESPACE, AzureCompute
from ..azure.exceptions import AzureCLIError
from ..azure.models import Placement, VirtualMachineDescriptor
from ..core.exceptions import ExitCode, Fatal, precondition
from ..core.logger import Log
from ..core.polling import Poller, PollState
from ..core.utils import U
from .options import MigrationOptions
from .placement import resolve_placement

REGISTERED = "Registered"
DEFAULT_COPY_TOOL = "azcopy"


@dataclass(frozen=True)
class PreflightResult:
    vm: VirtualMachineDescriptor
    size: str
    placement: Placement
    os_disk_name: str
    azcopy_path: Optional[str]


class Preflight:
    def __init__(
        self,
        logger: logging.Logger,
        options: MigrationOptions,
        compute: AzureCompute,
        *,
        which: Callable[[str], Optional[str]] = U.which,
        sleep: Optional[Callable[[float], Any]] = None,
        clock: Callable[[], float] = time.monotonic,
        cancel: Optional[threading.Event] = None,
    ):
        self.logger = logger
        self.options = options
        self.compute = compute
        self.which = which
        self.sleep = sleep
        self.clock = clock
        self.cancel = cancel

    # ------------------------------------------------------------------ tools / session

    def check_az_cli(self) -> str:
        path = self.which("az")
        if not path:
            raise precondition(ExitCode.AZ_CLI_MISSING, "Azure CLI 'az' not found on PATH")
        Log.trace(self.logger, "az: %s", path)
        return path

    def resolve_copy_tool(self) -> Optional[str]:
        if self.options.dry_run:
            Log.trace(self.logger, "dry-run: copy tool not required")
            return self.options.azcopy_path or self.which(DEFAULT_COPY_TOOL)

        wanted = self.options.azcopy_path
        if wanted:
            if os.path.isfile(wanted) and os.access(wanted, os.X_OK):
                return wanted
            found = self.which(wanted)
            if found:
                return found
            raise precondition(ExitCode.COPY_TOOL_MISSING, f"Copy tool not found or not executable: {wanted}", path=wanted)

        found = self.which(DEFAULT_COPY_TOOL)
        if not found:
            raise precondition(
                ExitCode.COPY_TOOL_MISSING,
                "azcopy not found on PATH (install it or pass --azcopy-path)",
            )
        return found

    def check_session(self) -> None:
        acct = self.compute.account_show()
        Log.ok(
            self.logger,
            f"Signed in to subscription {acct.get('name') or ''} ({self.compute.session.subscription})",
        )

    def ensure_feature_registered(self) -> str:
        try:
            state = self.compute.feature_state()
        except AzureCLIError as e:
            raise Fatal(
                code=int(ExitCode.FEATURE_NOT_REGISTERED),
                msg=f"Could not read feature {EAH_FEATURE_NAMESPACE}/{EAH_FEATURE_NAME}",
                cause=e,
            )
        if state == REGISTERED:
            Log.ok(self.logger, f"Feature {EAH_FEATURE_NAMESPACE}/{EAH_FEATURE_NAME} is registered")
            return state

        if self.options.dry_run:
            Log.warn(self.logger, f"Feature {EAH_FEATURE_NAME} is {state}; a real run would register it and wait")
            return state

        Log.step(self.logger, f"Registering feature {EAH_FEATURE_NAMESPACE}/{EAH_FEATURE_NAME} (currently {state})")
        try:
            self.compute.feature_register()
        except AzureCLIError as e:
            raise Fatal(
                code=int(ExitCode.FEATURE_NOT_REGISTERED),
                msg=f"Could not register feature {EAH_FEATURE_NAME}",
                cause=e,
            )

        poller = Poller(
            self.logger,
            interval_s=self.options.feature_poll_interval_s,
            clock=self.clock,
            sleep=self.sleep,
            cancel=self.cancel,
            name="feature-registration",
        )
        outcome = poller.run(self.compute.feature_state, lambda s: s == REGISTERED, initial_delay=True)
        if outcome.state is PollState.CANCELLED:
            raise Fatal(code=int(ExitCode.INTERRUPTED), msg="Feature registration wait cancelled")
        if not outcome.done:
            raise Fatal(
                code=int(ExitCode.FEATURE_NOT_REGISTERED),
                msg=f"Feature {EAH_FEATURE_NAME} did not reach {REGISTERED}",
                context={"state": outcome.value},
            )

        # the provider has to pick the feature up before VMs can use it
        self.compute.provider_register(EAH_FEATURE_NAMESPACE)
        Log.ok(self.logger, f"Feature {EAH_FEATURE_NAME} registered after {outcome.attempts} check(s)")
        return REGISTERED

    # ------------------------------------------------------------------ source VM

    def read_source(self) -> VirtualMachineDescriptor:
        rg, name = self.options.resource_group, self.options.source_vm
        raw = self.compute.vm_show(rg, name)
        if raw is None:
            raise precondition(ExitCode.VM_NOT_FOUND, f"VM {name} not found in resource group {rg}", vm=name, resource_group=rg)
        vm = VirtualMachineDescriptor.from_az(raw)

        if vm.encryption_at_host:
            raise precondition(
                ExitCode.ALREADY_ENCRYPTED_AT_HOST,
                f"Encryption at host is already enabled on {name}; nothing to do",
                vm=name,
            )
        if not vm.os_disk_id:
            raise precondition(ExitCode.NO_OS_DISK, f"VM {name} has no managed OS disk", vm=name)
        if not vm.nics:
            raise precondition(ExitCode.NO_NETWORK_INTERFACES, f"VM {name} has no network interfaces", vm=name)

        Log.ok(
            self.logger,
            f"Source {name}: size={vm.size} location={vm.location} data_disks={len(vm.data_disks)} nics={len(vm.nics)}",
        )
        return vm

    def run(self) -> PreflightResult:
        self.check_az_cli()
        azcopy = self.resolve_copy_tool()
        self.check_session()
        self.ensure_feature_registered()
        vm = self.read_source()

        size = self.options.vm_size or vm.size
        if self.options.vm_size and self.options.vm_size != vm.size:
            self.logger.info("Resizing: %s -> %s", vm.size, self.options.vm_size)
        return PreflightResult(
            vm=vm,
            size=size,
            placement=resolve_placement(vm),
            os_disk_name=self.options.os_disk_name,
            azcopy_path=azcopy,
        )
