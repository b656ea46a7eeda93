# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/core/utils.py
from __future__ import annotations

import datetime as _dt
import hashlib
import json
import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Any, List, Optional

_UNITS = ("KiB", "MiB", "GiB", "TiB", "PiB")


class U:
    @staticmethod
    def ensure_dir(p: Path) -> None:
        p.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def which(prog: str) -> Optional[str]:
        return shutil.which(prog)

    @staticmethod
    def now_ts() -> str:
        """Local timestamp used in report file names."""
        return _dt.datetime.now().strftime("%Y%m%d-%H%M%S")

    @staticmethod
    def json_dump(obj: Any) -> str:
        return json.dumps(obj, indent=2, sort_keys=True, default=str)

    @staticmethod
    def human_bytes(n: Optional[int]) -> str:
        if n is None:
            return "unknown"
        if n < 1024:
            return f"{int(n)} B"
        x = float(n)
        for unit in _UNITS:
            x /= 1024
            if x < 1024 or unit == _UNITS[-1]:
                return f"{x:.2f} {unit}"
        return f"{n} B"

    @staticmethod
    def hash10(secret: str) -> str:
        """Short fingerprint for referring to a SAS URL in logs without printing it."""
        return hashlib.sha256(secret.encode("utf-8")).hexdigest()[:10]

    @staticmethod
    def run_cmd(
        logger: logging.Logger,
        cmd: List[str],
        *,
        check: bool = True,
        stream: bool = False,
        display: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> subprocess.CompletedProcess:
        """
        Run an external tool.

        stream=True merges stderr into stdout and logs each line as it
        arrives (long copies report progress this way). `display` replaces
        the logged command line when argv carries credentials.
        """
        shown = display or " ".join(shlex.quote(x) for x in cmd)
        logger.debug("Running: %s", shown)

        if not stream:
            try:
                return subprocess.run(cmd, check=check, capture_output=True, text=True, timeout=timeout)
            except subprocess.CalledProcessError as e:
                logger.error("Command failed (rc=%s): %s", e.returncode, shown)
                raise

        lines: List[str] = []
        with subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True) as proc:
            assert proc.stdout is not None
            for raw in proc.stdout:
                line = raw.rstrip("\n")
                lines.append(line)
                if line.strip():
                    logger.info("%s", line)
            rc = proc.wait(timeout=timeout)

        out = "\n".join(lines)
        if rc != 0:
            logger.error("Command failed (rc=%s): %s", rc, shown)
            if check:
                raise subprocess.CalledProcessError(rc, cmd, output=out)
        return subprocess.CompletedProcess(cmd, rc, stdout=out, stderr="")
