# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/report.py
"""
Operator-facing output: the dry-run plan, the end-of-run summary and the JSON
run report written under the output directory.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..azure.models import EncryptionScope
from ..core.utils import U
from .options import data_disk_target_name
from .preflight import PreflightResult


@dataclass
class MigrationReport:
    resource_group: str
    source_vm: str
    new_vm: str
    dry_run: bool = False
    started: str = ""
    finished: str = ""
    source: Dict[str, Any] = field(default_factory=dict)
    size: str = ""
    placement: Dict[str, Any] = field(default_factory=dict)
    encryption_scope: Dict[str, Any] = field(default_factory=dict)
    domain: Dict[str, Any] = field(default_factory=dict)
    os_disk: Optional[str] = None
    data_disks: List[Dict[str, Any]] = field(default_factory=list)
    nics: List[Dict[str, Any]] = field(default_factory=list)
    strategy: Optional[str] = None
    build_skipped: bool = False
    encryption_at_host_verified: Optional[bool] = None
    volumes: List[Dict[str, Any]] = field(default_factory=list)
    checklist: List[str] = field(default_factory=list)
    leftovers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def report_path(output_dir: Path, rg: str, new_vm: str, ts: str) -> Path:
    return Path(output_dir) / rg / new_vm / f"migration-{ts}.json"


def write_report(logger: logging.Logger, report: MigrationReport, output_dir: Path, ts: Optional[str] = None) -> Path:
    path = report_path(output_dir, report.resource_group, report.new_vm, ts or U.now_ts())
    U.ensure_dir(path.parent)
    path.write_text(json.dumps(report.to_dict(), indent=2, sort_keys=True, default=str) + "\n", encoding="utf-8")
    logger.info("📝 Run report: %s", path)
    return path


def _console(console: Optional[Console]) -> Console:
    return console or Console(stderr=False)


def render_plan(
    pre: PreflightResult,
    scope: Optional[EncryptionScope],
    *,
    new_vm: str,
    include_data_disks: bool,
    strategy: str,
    placement_ok: Optional[bool] = None,
    console: Optional[Console] = None,
) -> None:
    """Dry-run plan: what a real run would do, in order."""
    con = _console(console)
    vm = pre.vm

    t = Table(title=f"Migration plan: {vm.name} -> {new_vm}", show_lines=False)
    t.add_column("#", justify="right", style="dim")
    t.add_column("Step")
    t.add_column("Detail")

    if scope is None:
        decrypt = "unknown (encryption state could not be read)"
    elif scope.any:
        decrypt = f"disable --volume-type {scope.volume_type}, wait for full decryption"
    else:
        decrypt = "not encrypted, skipped"

    steps = [
        ("Decrypt guest volumes", decrypt),
        ("Stop source", f"deallocate {vm.name}"),
        ("Clone OS disk", f"{vm.os_disk_name} -> {pre.os_disk_name}"),
    ]
    if vm.data_disks:
        if include_data_disks:
            for d in vm.data_disks:
                steps.append(("Clone data disk", f"LUN {d.lun}: {d.name} -> {data_disk_target_name(d.name)} (caching {d.caching})"))
        else:
            steps.append(("Data disks", f"{len(vm.data_disks)} left behind (--include-data-disks not set)"))
    steps += [
        ("Delete source VM", f"{vm.name} (disks and NICs kept): " + ", ".join(n.name for n in vm.nics)),
        ("Build VM", f"{new_vm} via {strategy}, size {pre.size}, encryption at host on"),
        ("Verify", "encryption at host flag; initialize data disks" if include_data_disks and vm.data_disks else "encryption at host flag"),
    ]
    for i, (step, detail) in enumerate(steps, 1):
        t.add_row(str(i), step, detail)
    con.print(t)

    p = pre.placement
    where = f"location={p.location}"
    if p.availability_set_id:
        where += f" availability-set={p.availability_set_id.rsplit('/', 1)[-1]}"
    elif p.zones:
        where += f" zones={','.join(p.zones)}"
    if placement_ok is not None:
        where += f"  placement: {'valid' if placement_ok else 'INVALID'}"
    con.print(Panel(where, title="Placement", title_align="left", expand=True))
    con.print("[bold]Dry run:[/bold] nothing was changed.")


def render_summary(report: MigrationReport, console: Optional[Console] = None) -> None:
    con = _console(console)
    t = Table(title=f"Migrated {report.source_vm} -> {report.new_vm}")
    t.add_column("Item")
    t.add_column("Value")
    t.add_row("Strategy", (report.strategy or "-") + (" (skipped, VM existed)" if report.build_skipped else ""))
    t.add_row("Size", report.size)
    t.add_row("OS disk", report.os_disk or "-")
    for d in report.data_disks:
        t.add_row(f"Data disk LUN {d.get('lun')}", f"{d.get('name')} ({d.get('caching')})")
    verified = report.encryption_at_host_verified
    t.add_row("Encryption at host", "-" if verified is None else ("verified" if verified else "NOT verified"))
    for v in report.volumes:
        t.add_row(f"Volume {v.get('drive_letter')}:", f"{v.get('label') or ''} {U.human_bytes(v.get('size_bytes'))}")
    con.print(t)

    if report.leftovers:
        con.print(Panel("\n".join(report.leftovers), title="Left in place (delete manually once verified)", title_align="left"))
    if report.checklist:
        con.print(Panel("\n".join(report.checklist), title="Operator checklist", title_align="left"))
