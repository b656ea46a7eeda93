# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/core/polling.py
"""
Probe-then-check polling with an optional deadline and cancellation.

The clock and sleep functions are injectable so convergence can be tested
without real delays.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from .logger import Log

T = TypeVar("T")


class PollState(str, Enum):
    POLLING = "polling"
    DONE = "done"
    TIMED_OUT = "timed_out"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self is not PollState.POLLING


@dataclass
class PollOutcome(Generic[T]):
    state: PollState
    attempts: int
    elapsed_s: float
    value: Optional[T] = None
    last_error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.state is PollState.DONE


class Poller:
    """
    Runs `probe()` then `done(value)` every `interval_s` seconds until done,
    the deadline passes, `max_attempts` is used up, or `cancel` is set.

    Probe exceptions are logged and counted as a not-done tick.
    """

    def __init__(
        self,
        logger: logging.Logger,
        *,
        interval_s: float,
        timeout_s: Optional[float] = None,
        max_attempts: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Any]] = None,
        cancel: Optional[threading.Event] = None,
        name: str = "poll",
    ):
        self.logger = logger
        self.interval_s = float(interval_s)
        self.timeout_s = timeout_s
        self.max_attempts = max_attempts
        self.clock = clock
        self.cancel = cancel
        self.name = name
        self._sleep = sleep

    def _wait(self, seconds: float) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        elif self.cancel is not None:
            self.cancel.wait(seconds)
        else:
            time.sleep(seconds)

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def run(
        self,
        probe: Callable[[], T],
        done: Callable[[T], bool],
        *,
        initial_delay: bool = False,
    ) -> PollOutcome[T]:
        start = self.clock()
        deadline = (start + float(self.timeout_s)) if self.timeout_s is not None else None
        attempts = 0
        value: Optional[T] = None
        last_error: Optional[str] = None

        def _outcome(state: PollState) -> PollOutcome[T]:
            return PollOutcome(
                state=state,
                attempts=attempts,
                elapsed_s=self.clock() - start,
                value=value,
                last_error=last_error,
            )

        if initial_delay:
            self._wait(self.interval_s)

        while True:
            if self._cancelled():
                return _outcome(PollState.CANCELLED)

            attempts += 1
            try:
                value = probe()
                last_error = None
                if done(value):
                    return _outcome(PollState.DONE)
            except Exception as e:
                last_error = str(e)
                Log.warn(self.logger, f"{self.name}: probe failed (attempt {attempts}), will retry: {e}")

            if self.max_attempts is not None and attempts >= self.max_attempts:
                return _outcome(PollState.EXHAUSTED)

            if deadline is not None and self.clock() + self.interval_s > deadline:
                return _outcome(PollState.TIMED_OUT)

            Log.trace(self.logger, "%s: sleeping %.0fs (attempt %d)", self.name, self.interval_s, attempts)
            self._wait(self.interval_s)
