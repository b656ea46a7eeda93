# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/__init__.py
"""
Migration package.

The ordered steps that move a VM from guest-level disk encryption to
encryption at host, and the orchestrator that sequences them.
"""

from .options import MigrationOptions
from .orchestrator import MigrationOrchestrator
from .vm_builder import DirectAttach, ImageRebuild, StrategyKind, VmBuilder, select_strategy

__all__ = [
    "MigrationOptions",
    "MigrationOrchestrator",
    "VmBuilder",
    "StrategyKind",
    "ImageRebuild",
    "DirectAttach",
    "select_strategy",
]
