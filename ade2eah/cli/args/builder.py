# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/cli/args/builder.py
from __future__ import annotations

import argparse

from ...core.logger import c
from ..help_texts import EXIT_CODES, FLOW_SUMMARY, YAML_EXAMPLE


class HelpFormatter(argparse.RawDescriptionHelpFormatter, argparse.ArgumentDefaultsHelpFormatter):
    pass


def build_epilog() -> str:
    sections = (
        ("What a run does", FLOW_SUMMARY),
        ("Exit codes", EXIT_CODES),
        ("YAML example", YAML_EXAMPLE),
    )
    return "\n".join(c(f"{title}:\n", "cyan", ["bold"]) + c(body, "cyan") for title, body in sections)
