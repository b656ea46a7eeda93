# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/__init__.py
"""
ade2eah - move an Azure VM from Azure Disk Encryption (guest BitLocker) to
encryption at host.

Encryption at host can only be set when a VM is created, so the VM is rebuilt:
guest encryption is turned off, disks are copied byte for byte into new
disks, the source VM is deleted to free its NICs, and a new VM is created with
encryption at host on.

Usage as a library:

    from ade2eah import AzSession, AzureCompute, MigrationOptions, MigrationOrchestrator

    compute = AzureCompute(AzSession(subscription="..."))
    opts = MigrationOptions(resource_group="rg", source_vm="web01", new_vm="web01-eah", dry_run=True)
    rc = MigrationOrchestrator(logger, opts, compute).run()
"""

__version__ = "0.1.0"

from .azure import AzSession, AzureCompute, VirtualMachineDescriptor
from .migration import MigrationOptions, MigrationOrchestrator

__all__ = [
    "__version__",
    "AzSession",
    "AzureCompute",
    "VirtualMachineDescriptor",
    "MigrationOptions",
    "MigrationOrchestrator",
]
