# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/disk_clone.py
"""
Byte-level disk clone: empty upload-mode target disk, time-boxed SAS grants on
both ends, azcopy in between.
"""

from __future__ import annotations

import logging
import subprocess
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Sequence

from ..azure.cli import AzureCompute
from ..azure.exceptions import AzureCLIError, wrap_copy_tool_error
from ..azure.models import DiskRecord
from ..core.logger import Log
from ..core.utils import U

READ = "Read"
WRITE = "Write"

CopyRunner = Callable[[List[str]], int]


def build_copy_command(azcopy: str, source_sas: str, target_sas: str) -> List[str]:
    return [azcopy, "copy", source_sas, target_sas, "--blob-type", "PageBlob"]


class DiskCloneService:
    def __init__(
        self,
        logger: logging.Logger,
        compute: AzureCompute,
        *,
        azcopy_path: str = "azcopy",
        runner: Optional[CopyRunner] = None,
    ):
        self.logger = logger
        self.compute = compute
        self.azcopy_path = azcopy_path
        self._runner = runner or self._run_azcopy

    def _run_azcopy(self, cmd: List[str]) -> int:
        display = f"{cmd[0]} copy <source-sas> <target-sas> " + " ".join(cmd[4:])
        cp = U.run_cmd(self.logger, cmd, check=False, stream=True, display=display)
        return int(cp.returncode)

    def ensure_target(
        self,
        source: DiskRecord,
        target_name: str,
        zones: Optional[Sequence[str]] = None,
        resource_group: Optional[str] = None,
    ) -> DiskRecord:
        """
        Return the target disk, creating an empty upload-mode disk shaped like
        `source` unless one named `target_name` already exists.
        """
        rg = resource_group or source.resource_group
        existing = self.compute.disk_show(rg, target_name)
        if existing is not None:
            Log.warn(self.logger, f"Disk {target_name} already exists; reusing it as-is (not verified)")
            if not existing.awaiting_upload:
                Log.warn(
                    self.logger,
                    f"Disk {target_name} is {existing.disk_state or 'in an unknown state'}, not an upload target; "
                    "the copy into it will be refused",
                )
            return existing

        zone = zones[0] if zones else None
        Log.step(
            self.logger,
            f"Creating disk {target_name} ({U.human_bytes(source.size_bytes)}, {source.sku}"
            f"{', zone ' + zone if zone else ''})",
        )
        return self.compute.disk_create_for_upload(
            rg=rg,
            name=target_name,
            location=source.location,
            upload_size_bytes=source.upload_size_bytes,
            sku=source.sku,
            hyper_v_generation=source.hyper_v_generation,
            os_type=source.os_type,
            zone=zone,
        )

    @contextmanager
    def _granted(self, disk: DiskRecord, access: str, duration_s: int) -> Iterator[str]:
        """SAS for `disk`, revoked when the block exits however it exits."""
        try:
            sas = self.compute.disk_grant_access(disk.id, duration_s=duration_s, access=access)
        except AzureCLIError as e:
            if access != WRITE:
                raise
            # only upload-mode disks accept a write grant
            raise wrap_copy_tool_error(
                f"Write access to {disk.name} was refused (state: {disk.disk_state or 'unknown'}); "
                "it may hold a partial copy. Delete the disk and re-run.",
                returncode=-1,
                exc=e,
                target=disk.name,
            )
        Log.trace(self.logger, "granted %s on %s (sas#%s)", access, disk.name, U.hash10(sas))
        try:
            yield sas
        finally:
            self._revoke(disk)

    def _revoke(self, disk: DiskRecord) -> None:
        try:
            self.compute.disk_revoke_access(disk.id)
        except Exception as e:
            Log.warn(self.logger, f"cleanup: failed to revoke access on {disk.name}: {e}")

    def clone(self, source: DiskRecord, target: DiskRecord, sas_duration_hours: int = 24) -> None:
        duration_s = int(sas_duration_hours) * 3600
        with self._granted(source, READ, duration_s) as src_sas:
            with self._granted(target, WRITE, duration_s) as dst_sas:
                Log.step(self.logger, f"Copying {source.name} -> {target.name} ({U.human_bytes(source.size_bytes)})")
                try:
                    rc = self._runner(build_copy_command(self.azcopy_path, src_sas, dst_sas))
                except (OSError, subprocess.SubprocessError) as e:
                    raise wrap_copy_tool_error(f"copy tool could not run: {e}", returncode=-1, source=source.name)
                if rc != 0:
                    raise wrap_copy_tool_error(
                        f"copy tool exited with status {rc} copying {source.name} -> {target.name}",
                        returncode=rc,
                        source=source.name,
                        target=target.name,
                    )
        Log.ok(self.logger, f"Copied {source.name} -> {target.name}")

    def clone_disk(
        self,
        source: DiskRecord,
        target_name: str,
        *,
        zones: Optional[Sequence[str]] = None,
        resource_group: Optional[str] = None,
        sas_duration_hours: int = 24,
    ) -> DiskRecord:
        """
        Create or reuse the target, then always copy into it. A reused disk
        that is no longer an upload target refuses the write grant, which
        stops the run with COPY_FAILED before anything else changes.
        """
        target = self.ensure_target(source, target_name, zones, resource_group)
        self.clone(source, target, sas_duration_hours=sas_duration_hours)
        return target
