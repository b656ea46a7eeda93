# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/cli/args/groups.py
from __future__ import annotations

import argparse


def _add_global_config_logging(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Global config/logging (two-phase parse relies on these)
    # ------------------------------------------------------------------
    from ... import __version__

    p.add_argument(
        "--config",
        action="append",
        default=[],
        help="YAML/JSON config file (repeatable; later overrides earlier).",
    )
    p.add_argument("--dump-config", action="store_true", help="Print merged config and exit.")
    p.add_argument("--dump-args", action="store_true", help="Print final parsed args (secrets masked) and exit.")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v: debug, -vv: trace and error context.")
    p.add_argument("--log-file", dest="log_file", default=None, help="Write logs to file.")
    p.add_argument("--json-logs", dest="json_logs", action="store_true", help="Emit NDJSON log lines on stderr.")


def _add_target_selection(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Which VM, and what to call the new one.
    # Required, but may come from config, so enforced in validate_args.
    # ------------------------------------------------------------------
    g = p.add_argument_group("Target")
    g.add_argument("-g", "--resource-group", dest="resource_group", default=None, help="Resource group of the source VM (required).")
    g.add_argument("--source-vm", dest="source_vm", default=None, help="Name of the ADE-encrypted source VM (required).")
    g.add_argument("--new-vm", dest="new_vm", default=None, help="Name of the replacement VM (required).")
    g.add_argument(
        "--new-os-disk-name",
        dest="new_os_disk_name",
        default=None,
        help="Name of the cloned OS disk (default: <source-vm>-OSDisk-EAH).",
    )
    g.add_argument("--vm-size", dest="vm_size", default=None, help="Size for the new VM (default: the source VM's size).")
    g.add_argument("--subscription", dest="subscription", default=None, help="Subscription id or name (default: az's current one).")


def _add_migration_behavior(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Migration behavior
    # ------------------------------------------------------------------
    g = p.add_argument_group("Migration")
    g.add_argument(
        "--include-data-disks",
        dest="include_data_disks",
        action="store_true",
        help="Also clone data disks and attach them at their original LUNs.",
    )
    g.add_argument("--dry-run", dest="dry_run", action="store_true", help="Print the plan; change nothing.")
    g.add_argument(
        "--validate-placement",
        dest="validate_placement",
        action="store_true",
        help="Check the size against the location/zone catalog before decrypting (always on for --dry-run).",
    )
    g.add_argument("--output-dir", dest="output_dir", default="./out", help="Where run reports are written.")


def _add_credentials(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # Admin credential: only needed for the image-rebuild path
    # ------------------------------------------------------------------
    g = p.add_argument_group("Credential")
    g.add_argument("--admin-username", dest="admin_username", default="azureadmin", help="Admin user for the image-rebuild path.")
    g.add_argument(
        "--admin-password",
        dest="admin_password",
        default=None,
        help="Admin password for the image-rebuild path (prefer --admin-password-env).",
    )
    g.add_argument(
        "--admin-password-env",
        dest="admin_password_env",
        default=None,
        help="Name of an environment variable holding the admin password.",
    )


def _add_tooling_knobs(p: argparse.ArgumentParser) -> None:
    # ------------------------------------------------------------------
    # azcopy / az / polling knobs
    # ------------------------------------------------------------------
    g = p.add_argument_group("Tooling")
    g.add_argument("--azcopy-path", dest="azcopy_path", default=None, help="azcopy binary (default: azcopy from PATH).")
    g.add_argument("--sas-duration-hours", dest="sas_duration_hours", type=int, default=24, help="Lifetime of disk access grants.")
    g.add_argument(
        "--decrypt-poll-interval",
        dest="decrypt_poll_interval",
        type=float,
        default=30.0,
        help="Seconds between BitLocker status checks.",
    )
    g.add_argument(
        "--decrypt-timeout",
        dest="decrypt_timeout",
        type=float,
        default=None,
        help="Give up waiting for decryption after this many seconds (default: wait forever).",
    )
    g.add_argument("--az-timeout", dest="az_timeout", type=int, default=300, help="Default timeout for one az call, seconds.")
