# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/core/logger.py
"""
Console/file/NDJSON logging for ade2eah.

Every handler carries a SecretScrubber: SAS query strings and admin
passwords are rewritten before a record is formatted, whichever code path
logged them (our own messages, streamed azcopy output, az error text).
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from termcolor import colored

TRACE = 5
if not hasattr(logging, "TRACE"):
    logging.TRACE = TRACE  # type: ignore[attr-defined]
    logging.addLevelName(TRACE, "TRACE")


def _logger_trace(self: logging.Logger, msg: str, *args, **kwargs) -> None:
    if self.isEnabledFor(TRACE):
        self._log(TRACE, msg, args, **kwargs)


if not hasattr(logging.Logger, "trace"):
    logging.Logger.trace = _logger_trace  # type: ignore[attr-defined]

# Marker carried on records emitted through Log.ok.
_OK_ATTR = "ade2eah_ok"

_LEVELS = {
    # levelname: (emoji, color)
    "TRACE": ("🧬", "cyan"),
    "DEBUG": ("🔍", "blue"),
    "INFO": ("ℹ️ ", None),
    "WARNING": ("⚠️ ", "yellow"),
    "ERROR": ("💥", "red"),
    "CRITICAL": ("🧨", "red"),
}

# ---------------------------------------------------------------------------
# Secret scrubbing
# ---------------------------------------------------------------------------

_SAS_RE = re.compile(r"([?&](?:sig|se|st|sp|sv|sr|skoid|sktid|skt|ske|sks|skv)=)[^&\s\"']+", re.IGNORECASE)
_PASSWORD_FLAG_RE = re.compile(r"(--admin-password\s+)(\S+)")
_REDACTED = "<redacted>"


def scrub(text: str) -> str:
    """Blank SAS tokens and --admin-password values in free text."""
    if not text:
        return text
    out = _SAS_RE.sub(lambda m: m.group(1) + _REDACTED, text)
    return _PASSWORD_FLAG_RE.sub(lambda m: m.group(1) + _REDACTED, out)


class SecretScrubber(logging.Filter):
    """
    Rewrites the message, the `ctx` values and the traceback of a record
    in place; never drops a record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        clean = scrub(msg)
        if clean != msg:
            record.msg = clean
            record.args = None

        ctx = getattr(record, "ctx", None)
        if ctx:
            record.ctx = {
                k: v if v is None or isinstance(v, (bool, int, float)) else scrub(str(v)) for k, v in dict(ctx).items()
            }

        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = scrub(record.exc_text)
        return True


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _is_tty() -> bool:
    try:
        return bool(sys.stderr.isatty())
    except Exception:
        return False


def _supports_unicode() -> bool:
    enc = getattr(sys.stderr, "encoding", None) or "utf-8"
    try:
        "✅".encode(enc)
        return True
    except (LookupError, UnicodeEncodeError):
        return False


def c(
    text: str,
    color: Optional[str] = None,
    attrs: Optional[List[str]] = None,
    *,
    enable: bool = True,
) -> str:
    if not enable or not color:
        return text
    return colored(text, color=color, attrs=attrs or [])


Ctx = Mapping[str, Any]


def _short(v: Any, limit: int = 240) -> str:
    s = str(v).replace("\r", "\\r").replace("\n", "\\n")
    return s if len(s) <= limit else s[: limit - 1] + "…"


def _ctx_suffix(ctx: Optional[Ctx]) -> str:
    if not ctx:
        return ""
    return " " + " ".join(f"{k}={_short(ctx[k])}" for k in sorted(ctx, key=str))


def _is_ok(record: logging.LogRecord) -> bool:
    return bool(getattr(record, _OK_ATTR, False))


def _exc_text(fmt: logging.Formatter, record: logging.LogRecord) -> str:
    """Traceback text, preferring the copy a SecretScrubber already cleaned."""
    if record.exc_text:
        return record.exc_text
    return fmt.formatException(record.exc_info) if record.exc_info else ""


@dataclass(frozen=True)
class LogStyle:
    color: bool = True
    unicode: bool = True
    detailed: bool = False  # ms timestamps plus logger and module:line


class ConsoleFormatter(logging.Formatter):
    """`<time> <emoji> <LEVEL> <message> k=v ...`, one record per line."""

    def __init__(self, style: LogStyle):
        super().__init__()
        self._style = style

    def _stamp(self, created: float) -> str:
        dt = _dt.datetime.fromtimestamp(created)
        if self._style.detailed:
            return dt.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        return dt.strftime("%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        ok = _is_ok(record)
        emoji, color = _LEVELS.get(record.levelname, ("•", None))
        label = "OK" if ok else record.levelname
        if ok:
            emoji, color = "✅", "green"
        if not self._style.unicode:
            emoji = "·"

        paint = self._style.color and _is_tty()
        msg = record.getMessage()
        if ok or record.levelno >= logging.WARNING:
            msg = c(msg, color, ["bold"], enable=paint)

        where = f" [{record.name} {record.module}:{record.lineno}]" if self._style.detailed else ""
        line = f"{self._stamp(record.created)} {emoji} {c(f'{label:<7}', color, enable=paint)}{where} {msg}"
        line += _ctx_suffix(getattr(record, "ctx", None))

        if record.exc_info or record.exc_text:
            tb = "\n".join("  " + ln for ln in _exc_text(self, record).splitlines())
            line += "\n" + c(tb, "red", enable=paint)
        return line


class JsonFormatter(logging.Formatter):
    """NDJSON, one object per record."""

    def format(self, record: logging.LogRecord) -> str:
        obj: Dict[str, Any] = {
            "ts": _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc).isoformat(timespec="milliseconds"),
            "level": "OK" if _is_ok(record) else record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "lineno": record.lineno,
        }
        ctx = getattr(record, "ctx", None)
        if ctx:
            obj["ctx"] = {str(k): _short(v) for k, v in dict(ctx).items()}
        if record.exc_info or record.exc_text:
            obj["exc_type"] = record.exc_info[0].__name__ if record.exc_info and record.exc_info[0] else "Exception"
            obj["traceback"] = _exc_text(self, record)
        return json.dumps(obj, ensure_ascii=False, default=str)


def _extra(ctx: Dict[str, Any], **flags: Any) -> Optional[Dict[str, Any]]:
    extra: Dict[str, Any] = dict(flags)
    if ctx:
        extra["ctx"] = ctx
    return extra or None


class Log:
    @staticmethod
    def level_for(verbose: int) -> int:
        """0: INFO, -v: DEBUG, -vv and up: TRACE."""
        if verbose >= 2:
            return TRACE
        if verbose == 1:
            return logging.DEBUG
        return logging.INFO

    @staticmethod
    def banner(logger: logging.Logger, title: str, *, char: str = "─") -> None:
        width = 72
        t = f" {title.strip()} "
        side = char * max(8, (width - len(t)) // 2)
        logger.info((side + t + side)[:width])

    @staticmethod
    def step(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("➡️  %s", msg, extra=_extra(ctx))

    @staticmethod
    def ok(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("%s", msg, extra=_extra(ctx, **{_OK_ATTR: True}))

    @staticmethod
    def warn(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.warning("%s", msg, extra=_extra(ctx))

    @staticmethod
    def fail(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.error("%s", msg, extra=_extra(ctx))

    @staticmethod
    def trace(logger: logging.Logger, msg: str, *args: Any, **ctx: Any) -> None:
        fn = getattr(logger, "trace", None)
        if fn is None:
            logger.debug(msg, *args)
            return
        if ctx:
            fn(msg, *args, extra={"ctx": ctx})
        else:
            fn(msg, *args)

    @staticmethod
    def setup(
        verbose: int = 0,
        log_file: Optional[str] = None,
        *,
        json_logs: bool = False,
        color: bool = True,
        logger_name: str = "ade2eah",
    ) -> logging.Logger:
        """
        Configure and return the project logger: stderr handler (console or
        NDJSON) plus an optional detailed, uncolored file handler.
        """
        logger = logging.getLogger(logger_name)
        logger.propagate = False
        level = Log.level_for(verbose)
        logger.setLevel(level)

        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

        unicode_ok = _supports_unicode()
        scrubber = SecretScrubber()

        sh = logging.StreamHandler(stream=sys.stderr)
        sh.setLevel(level)
        sh.addFilter(scrubber)
        sh.setFormatter(JsonFormatter() if json_logs else ConsoleFormatter(LogStyle(color=color, unicode=unicode_ok, detailed=verbose >= 2)))
        logger.addHandler(sh)

        if log_file:
            fp = Path(log_file).expanduser().resolve()
            fp.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(fp, encoding="utf-8")
            fh.setLevel(level)
            fh.addFilter(scrubber)
            fh.setFormatter(JsonFormatter() if json_logs else ConsoleFormatter(LogStyle(color=False, unicode=unicode_ok, detailed=True)))
            logger.addHandler(fh)

        logger.debug("Logger initialized (level=%s)", logging.getLevelName(level))
        return logger
