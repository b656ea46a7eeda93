# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""Azure collaborator (az CLI) and typed payload models."""

from __future__ import annotations

from .cli import AzSession, AzureCompute
from .models import VirtualMachineDescriptor

__all__ = ["AzSession", "AzureCompute", "VirtualMachineDescriptor"]
