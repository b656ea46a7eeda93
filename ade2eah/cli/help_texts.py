# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/cli/help_texts.py
from __future__ import annotations

# NOTE:
# Pure help text for the argparse epilog. No imports beyond __future__.

YAML_EXAMPLE = r"""# ade2eah configuration example (YAML)
#
# Run:
#   ./ade2eah.py --config migrate-web01.yaml
#   ./ade2eah.py --config base.yaml --config web01.yaml --dry-run
#
# Later files override earlier ones; CLI flags override every file.
# Keys are the option names in snake_case (dashes also accepted).
#
# resource_group: rg-prod-web
# source_vm: web01
# new_vm: web01-eah
# new_os_disk_name: web01-OSDisk-EAH      # default: <source_vm>-OSDisk-EAH
# vm_size: Standard_D4s_v5                # default: the source VM's size
# include_data_disks: true
# azcopy_path: /usr/local/bin/azcopy      # default: azcopy from PATH
# validate_placement: true
# admin_username: azureadmin
# admin_password_env: WEB01_ADMIN_PASSWORD  # image rebuild needs a credential
# subscription: 00000000-0000-0000-0000-000000000000
# output_dir: ./out
# sas_duration_hours: 24
# decrypt_poll_interval: 30
# decrypt_timeout: 21600                  # seconds; unset = wait forever
# az_timeout: 300
"""

FLOW_SUMMARY = """ 1. Preflight: az present, azcopy present, signed in, EncryptionAtHost feature registered, source VM sane
 2. Placement check (dry-run or --validate-placement): size offered in the location / zones
 3. Turn guest (BitLocker) encryption off and wait for full decryption
 4. Deallocate the source VM
 5. Copy the OS disk (and with --include-data-disks every data disk) into new upload-mode disks via azcopy
 6. Delete the source VM to free its NICs (its disks and NICs are kept)
 7. Create the new VM with --encryption-at-host true (image rebuild + OS disk swap, or direct attach)
 8. Verify encryption at host, initialize data disks in the guest, write the run report
"""

EXIT_CODES = """ 0 ok | 1 az missing | 2 not signed in | 3 azcopy missing | 4 feature not registered | 5 bad arguments
 6 VM not found | 7 encryption at host already on | 8 no OS disk | 9 no NICs | 10 invalid placement
 11 copy failed | 12 decryption timeout | 99 unexpected failure | 130 interrupted
"""
