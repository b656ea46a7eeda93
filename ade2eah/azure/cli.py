# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/azure/cli.py

from __future__ import annotations

import json
import logging
import random
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..core.exceptions import ExitCode
from .exceptions import AzureCLIError, AzureNotFoundError, wrap_azure_auth_error
from .models import DiskRecord, SkuInfo

LOG = logging.getLogger(__name__)

EAH_FEATURE_NAMESPACE = "Microsoft.Compute"
EAH_FEATURE_NAME = "EncryptionAtHost"
ADE_EXTENSION_NAME = "AzureDiskEncryption"


def _is_transient(stderr: str) -> bool:
    s = (stderr or "").lower()
    return any(
        x in s
        for x in (
            "throttle",
            "too many requests",
            "timeout",
            "timed out",
            "temporarily unavailable",
            "internal server error",
            "gateway timeout",
            "connection reset",
            "connection aborted",
            "rate limit",
            "server busy",
            "retry later",
        )
    )


def _is_not_found(stderr: str) -> bool:
    s = (stderr or "").lower()
    return "resourcenotfound" in s or "was not found" in s or "could not be found" in s or "notfound" in s


def _backoff_sleep(attempt: int, base: float, cap: float) -> None:
    # exp backoff with jitter
    t = min(cap, base * (2 ** attempt))
    t = t * (0.7 + random.random() * 0.6)
    time.sleep(t)


def run_az_json(args: List[str], *, timeout_s: int = 300, retries: int = 3) -> Any:
    """
    Run 'az <args> --output json --only-show-errors' and parse JSON.
    Retries transient failures.
    """
    cmd = ["az"] + args + ["--output", "json", "--only-show-errors"]

    last_err = ""
    for attempt in range(max(1, retries)):
        try:
            p = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout_s)
        except FileNotFoundError:
            raise AzureCLIError(code=int(ExitCode.AZ_CLI_MISSING), msg="Azure CLI 'az' not found. Install Azure CLI.")
        except subprocess.TimeoutExpired:
            last_err = f"az timed out after {timeout_s}s"
            if attempt + 1 < retries:
                _backoff_sleep(attempt, 1.0, 15.0)
                continue
            raise AzureCLIError(code=int(ExitCode.INTERNAL), msg=last_err)

        if p.returncode == 0:
            out = (p.stdout or "").strip()
            if out == "":
                return None
            try:
                return json.loads(out)
            except ValueError as e:
                raise AzureCLIError(code=int(ExitCode.INTERNAL), msg=f"Failed to parse az JSON output: {e}")

        last_err = (p.stderr or p.stdout or "").strip()
        if attempt + 1 < retries and _is_transient(last_err):
            _backoff_sleep(attempt, 1.0, 15.0)
            continue

        if _is_not_found(last_err):
            raise AzureNotFoundError(code=int(ExitCode.INTERNAL), msg=f"az: not found: {' '.join(args[:3])} :: {last_err}")
        raise AzureCLIError(code=int(ExitCode.INTERNAL), msg=f"az failed: {' '.join(args[:3])} :: {last_err}")

    raise AzureCLIError(code=int(ExitCode.INTERNAL), msg=f"az failed: {' '.join(args[:3])} :: {last_err}")


@dataclass
class AzSession:
    """
    Explicit az context. Every call carries the subscription instead of
    relying on whatever 'az account set' left behind.
    """

    subscription: Optional[str] = None
    tenant: Optional[str] = None
    timeout_s: int = 300
    retries: int = 3

    def run(self, args: Sequence[str], *, timeout_s: Optional[int] = None, retries: Optional[int] = None) -> Any:
        argv = list(args)
        if self.subscription:
            argv += ["--subscription", self.subscription]
        return run_az_json(
            argv,
            timeout_s=timeout_s or self.timeout_s,
            retries=self.retries if retries is None else retries,
        )


class AzureCompute:
    """
    The cloud-management operations the migration consumes, on top of 'az'.
    """

    def __init__(self, session: AzSession):
        self.session = session

    # ------------------------------------------------------------------ account

    def account_show(self) -> Dict[str, Any]:
        try:
            acct = run_az_json(["account", "show"], timeout_s=30, retries=2)
        except AzureCLIError as e:
            if e.code == int(ExitCode.AZ_CLI_MISSING):
                raise
            raise wrap_azure_auth_error("Azure CLI not logged in (run 'az login')", e)
        if not acct:
            raise wrap_azure_auth_error("Azure CLI returned no account (run 'az login')")

        if self.session.subscription:
            acct = run_az_json(["account", "show", "--subscription", self.session.subscription], timeout_s=30, retries=2)
        if self.session.tenant and str(acct.get("tenantId")) != str(self.session.tenant):
            raise wrap_azure_auth_error(f"Tenant mismatch: expected {self.session.tenant}, got {acct.get('tenantId')}")
        self.session.subscription = self.session.subscription or acct.get("id")
        return acct

    # ------------------------------------------------------------------ features

    def feature_state(self, namespace: str = EAH_FEATURE_NAMESPACE, name: str = EAH_FEATURE_NAME) -> str:
        out = self.session.run(["feature", "show", "--namespace", namespace, "--name", name], retries=3)
        return str(((out or {}).get("properties") or {}).get("state") or "NotRegistered")

    def feature_register(self, namespace: str = EAH_FEATURE_NAMESPACE, name: str = EAH_FEATURE_NAME) -> None:
        self.session.run(["feature", "register", "--namespace", namespace, "--name", name], retries=3)

    def provider_register(self, namespace: str = EAH_FEATURE_NAMESPACE) -> None:
        self.session.run(["provider", "register", "--namespace", namespace], retries=3)

    # ------------------------------------------------------------------ VMs

    def vm_show(self, rg: str, name: str) -> Optional[Dict[str, Any]]:
        try:
            return self.session.run(["vm", "show", "--resource-group", rg, "--name", name], timeout_s=120)
        except AzureNotFoundError:
            return None

    def vm_power_state(self, rg: str, name: str) -> str:
        iv = self.session.run(["vm", "get-instance-view", "--resource-group", rg, "--name", name], timeout_s=120)
        statuses = ((iv or {}).get("instanceView") or iv or {}).get("statuses") or []
        for st in statuses:
            code = st.get("code") or ""
            if code.lower().startswith("powerstate/"):
                return code.split("/", 1)[1].lower()
        return "unknown"

    def vm_deallocate(self, rg: str, name: str) -> None:
        self.session.run(["vm", "deallocate", "--resource-group", rg, "--name", name], timeout_s=900)

    def vm_start(self, rg: str, name: str) -> None:
        self.session.run(["vm", "start", "--resource-group", rg, "--name", name], timeout_s=900)

    def vm_restart(self, rg: str, name: str, *, wait: bool = True) -> None:
        args = ["vm", "restart", "--resource-group", rg, "--name", name]
        if not wait:
            args.append("--no-wait")
        self.session.run(args, timeout_s=900)

    def vm_delete(self, rg: str, name: str) -> None:
        self.session.run(["vm", "delete", "--resource-group", rg, "--name", name, "--yes"], timeout_s=1200, retries=1)

    def vm_create(self, args: Sequence[str]) -> Dict[str, Any]:
        return self.session.run(["vm", "create", *args], timeout_s=1800, retries=1) or {}

    def vm_set_os_disk(self, rg: str, name: str, disk_id: str) -> None:
        self.session.run(["vm", "update", "--resource-group", rg, "--name", name, "--os-disk", disk_id], timeout_s=900)

    def vm_attach_disk(self, rg: str, vm_name: str, disk_id: str, *, lun: int, caching: str) -> None:
        self.session.run(
            [
                "vm", "disk", "attach",
                "--resource-group", rg,
                "--vm-name", vm_name,
                "--name", disk_id,
                "--lun", str(lun),
                "--caching", caching,
            ],
            timeout_s=900,
        )

    def vm_boot_diagnostics(self, rg: str, name: str, *, enabled: bool, storage_uri: Optional[str] = None) -> None:
        if not enabled:
            self.session.run(["vm", "boot-diagnostics", "disable", "--resource-group", rg, "--name", name], timeout_s=300)
            return
        args = ["vm", "boot-diagnostics", "enable", "--resource-group", rg, "--name", name]
        if storage_uri:
            args += ["--storage", storage_uri]
        self.session.run(args, timeout_s=300)

    # ------------------------------------------------------------------ encryption / guest

    def vm_encryption_show(self, rg: str, name: str) -> Any:
        return self.session.run(["vm", "encryption", "show", "--resource-group", rg, "--name", name], timeout_s=180)

    def vm_encryption_disable(self, rg: str, name: str, volume_type: str) -> None:
        self.session.run(
            ["vm", "encryption", "disable", "--resource-group", rg, "--name", name, "--volume-type", volume_type, "--force"],
            timeout_s=1800,
            retries=1,
        )

    def vm_extension_delete(self, rg: str, vm_name: str, ext_name: str = ADE_EXTENSION_NAME) -> None:
        self.session.run(
            ["vm", "extension", "delete", "--resource-group", rg, "--vm-name", vm_name, "--name", ext_name],
            timeout_s=900,
            retries=1,
        )

    def run_powershell(self, rg: str, name: str, script: str) -> str:
        """Run a PowerShell script in the guest; return its captured stdout."""
        out = self.session.run(
            [
                "vm", "run-command", "invoke",
                "--resource-group", rg,
                "--name", name,
                "--command-id", "RunPowerShellScript",
                "--scripts", script,
            ],
            timeout_s=1800,
            retries=1,
        )
        stdout: List[str] = []
        for item in (out or {}).get("value") or []:
            code = str(item.get("code") or "")
            if "StdErr" in code and item.get("message"):
                LOG.debug("run-command stderr: %s", item.get("message"))
                continue
            if item.get("message"):
                stdout.append(str(item["message"]))
        return "\n".join(stdout)

    # ------------------------------------------------------------------ disks

    def disk_show(self, rg: str, name: str) -> Optional[DiskRecord]:
        try:
            d = self.session.run(["disk", "show", "--resource-group", rg, "--name", name], timeout_s=120)
        except AzureNotFoundError:
            return None
        return DiskRecord.from_az(d) if d else None

    def disk_show_by_id(self, disk_id: str) -> DiskRecord:
        return DiskRecord.from_az(self.session.run(["disk", "show", "--ids", disk_id], timeout_s=120))

    def disk_create_for_upload(
        self,
        *,
        rg: str,
        name: str,
        location: str,
        upload_size_bytes: int,
        sku: str,
        hyper_v_generation: Optional[str],
        os_type: Optional[str],
        zone: Optional[str],
    ) -> DiskRecord:
        args = [
            "disk", "create",
            "--resource-group", rg,
            "--name", name,
            "--location", location,
            "--for-upload",
            "--upload-size-bytes", str(upload_size_bytes),
            "--sku", sku,
        ]
        if hyper_v_generation:
            args += ["--hyper-v-generation", hyper_v_generation]
        if os_type:
            args += ["--os-type", os_type]
        if zone:
            args += ["--zone", zone]
        return DiskRecord.from_az(self.session.run(args, timeout_s=600, retries=3))

    def disk_grant_access(self, disk_id: str, *, duration_s: int, access: str) -> str:
        out = self.session.run(
            ["disk", "grant-access", "--ids", disk_id, "--duration-in-seconds", str(duration_s), "--access-level", access],
            timeout_s=300,
            retries=3,
        )
        sas = (out or {}).get("accessSas") or (out or {}).get("accessSAS")
        if not sas:
            raise AzureCLIError(code=int(ExitCode.INTERNAL), msg="disk grant-access returned no accessSas")
        return sas

    def disk_revoke_access(self, disk_id: str) -> None:
        self.session.run(["disk", "revoke-access", "--ids", disk_id], timeout_s=300, retries=3)

    # ------------------------------------------------------------------ catalog / network / marketplace

    def list_skus(self, location: str, size: str) -> List[SkuInfo]:
        out = self.session.run(
            ["vm", "list-skus", "--location", location, "--size", size, "--resource-type", "virtualMachines", "--all"],
            timeout_s=300,
        )
        return [SkuInfo.from_az(s, location) for s in out or [] if str(s.get("name", "")).lower() == size.lower()]

    def nic_show_by_id(self, nic_id: str) -> Dict[str, Any]:
        return self.session.run(["network", "nic", "show", "--ids", nic_id], timeout_s=120) or {}

    def terms_accepted(self, publisher: str, offer: str, plan: str) -> bool:
        out = self.session.run(
            ["vm", "image", "terms", "show", "--publisher", publisher, "--offer", offer, "--plan", plan],
            timeout_s=120,
        )
        return bool((out or {}).get("accepted"))

    def terms_accept(self, publisher: str, offer: str, plan: str) -> None:
        self.session.run(
            ["vm", "image", "terms", "accept", "--publisher", publisher, "--offer", offer, "--plan", plan],
            timeout_s=120,
        )
