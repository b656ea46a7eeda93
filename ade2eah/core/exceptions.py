# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from .logger import scrub


class ExitCode(IntEnum):
    OK = 0

    # preconditions: raised before anything is mutated
    AZ_CLI_MISSING = 1
    NOT_AUTHENTICATED = 2
    COPY_TOOL_MISSING = 3
    FEATURE_NOT_REGISTERED = 4
    BAD_ARGS = 5
    VM_NOT_FOUND = 6
    ALREADY_ENCRYPTED_AT_HOST = 7
    NO_OS_DISK = 8
    NO_NETWORK_INTERFACES = 9
    INVALID_PLACEMENT = 10

    # run-time
    COPY_FAILED = 11
    DECRYPTION_TIMEOUT = 12

    INTERNAL = 99
    INTERRUPTED = 130


_REDACTED = "<redacted>"
_SECRET_HINTS = ("pass", "secret", "token", "sas", "sig", "key", "credential", "auth")


def _as_exit_code(code: Any) -> int:
    try:
        n = int(code)
    except (TypeError, ValueError):
        return 1
    if n < 0:
        return 1
    return min(n, 255)


def _flatten(s: Any, limit: int = 600) -> str:
    """Single line, collapsed whitespace, bounded length."""
    text = " ".join(str(s or "").split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _looks_secret(key: Any) -> bool:
    k = str(key).lower()
    return any(h in k for h in _SECRET_HINTS)


def redact(value: Any, key: Any = None) -> Any:
    """
    Copy of `value` safe to print: values under secret-looking keys are
    replaced, and SAS tokens inside any string are blanked.
    """
    if key is not None and _looks_secret(key):
        return _REDACTED
    if isinstance(value, dict):
        return {k: redact(v, k) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v) for v in value)
    if isinstance(value, str):
        return scrub(value)
    return value


@dataclass(eq=False)
class Ade2EahError(Exception):
    """
    Project error: an exit code, a one-line message, an optional cause and a
    context dict for diagnostics. Context is redacted whenever it is rendered.
    """

    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _as_exit_code(self.code)
        self.msg = _flatten(self.msg) or type(self).__name__
        super().__init__(self.msg)

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        out = self.msg
        if include_context and self.context:
            safe = redact(self.context)
            out += " [" + _flatten(", ".join(f"{k}={safe[k]!r}" for k in sorted(safe))) + "]"
        if include_cause and self.cause is not None:
            out += f" (cause: {type(self.cause).__name__}: {_flatten(scrub(str(self.cause)))})"
        return out

    def __str__(self) -> str:
        return self.msg


class Fatal(Ade2EahError):
    """Stops the run; main() exits with its code."""


def precondition(code: ExitCode, msg: str, **context: Any) -> Fatal:
    """Fatal for a failed precondition; raised before anything is mutated."""
    return Fatal(code=int(code), msg=msg, context=context or None)


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One line for the terminal: the message, plus redacted context at -v and
    the cause at -vv.
    """
    if isinstance(e, Ade2EahError):
        return e.user_message(include_context=verbose >= 1, include_cause=verbose >= 2)
    text = _flatten(scrub(str(e)))
    if verbose >= 2:
        return f"{type(e).__name__}: {text}"
    return text or type(e).__name__
