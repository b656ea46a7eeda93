# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/migration/guest_scripts.py
"""PowerShell run inside the guest via 'az vm run-command invoke'."""

from __future__ import annotations

BITLOCKER_STATUS = "manage-bde -status"

DOMAIN_INFO = r"""
$cs = Get-CimInstance -ClassName Win32_ComputerSystem
[pscustomobject]@{
    PartOfDomain = [bool]$cs.PartOfDomain
    Domain       = $cs.Domain
    Name         = $cs.Name
} | ConvertTo-Json -Compress
"""

# Offline disks are brought online first (SAN policy keeps attached clones offline).
# RAW disks are numbered in discovery order so labels are deterministic.
INITIALIZE_DATA_DISKS = r"""
$ErrorActionPreference = 'Stop'
Get-Disk | Where-Object { $_.IsOffline } | ForEach-Object {
    Set-Disk -Number $_.Number -IsOffline $false
    Set-Disk -Number $_.Number -IsReadOnly $false
}
$raw = @(Get-Disk | Where-Object { $_.PartitionStyle -eq 'RAW' } | Sort-Object Number)
$i = 0
foreach ($d in $raw) {
    $i++
    $style = if ($d.Size -gt 2TB) { 'GPT' } else { 'MBR' }
    Initialize-Disk -Number $d.Number -PartitionStyle $style -PassThru |
        New-Partition -AssignDriveLetter -UseMaximumSize |
        Format-Volume -FileSystem NTFS -NewFileSystemLabel ("Data" + $i) -Confirm:$false | Out-Null
    Write-Output ("initialized disk {0} ({1}) as Data{2}" -f $d.Number, $style, $i)
}
Write-Output ("raw disks initialized: {0}" -f $i)
"""

LIST_VOLUMES = r"""
Get-Volume | Where-Object { $_.DriveLetter } |
    Select-Object DriveLetter, FileSystemLabel, Size, SizeRemaining |
    ConvertTo-Json -Compress
"""
