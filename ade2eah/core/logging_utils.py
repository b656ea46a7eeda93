# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""
Shared logging helpers for migration phases.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Generator

from .logger import Log


@contextmanager
def log_step(logger: logging.Logger, description: str) -> Generator[None, None, None]:
    """
    Log the start of a phase, run the block, then log completion with elapsed
    time. Logs the failure and re-raises on exception.

    Example:
        with log_step(logger, "Clone OS disk"):
            service.clone_disk(...)
    """
    t0 = time.monotonic()
    Log.step(logger, f"{description} ...")
    try:
        yield
    except Exception as e:
        Log.fail(logger, f"{description} failed ({time.monotonic() - t0:.1f}s): {e}")
        raise
    Log.ok(logger, f"{description} done ({time.monotonic() - t0:.1f}s)")
