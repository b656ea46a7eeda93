# SPDX-License-Identifier: LGPL-3.0-or-later
# ade2eah/core/__init__.py
from .exceptions import Ade2EahError, ExitCode, Fatal
from .logger import Log
from .polling import Poller, PollOutcome, PollState

__all__ = ["Ade2EahError", "ExitCode", "Fatal", "Log", "Poller", "PollOutcome", "PollState"]
