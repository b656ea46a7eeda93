# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ade2eah/core/props.py
"""
Optional-field access over loosely-typed az JSON payloads.

Only the boundary parsers (ade2eah.azure.models) should use these; everything
past the boundary works on typed dataclasses.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

_MISSING = object()


def _step(obj: Any, key: str) -> Any:
    if obj is None:
        return _MISSING
    if isinstance(obj, dict):
        return obj.get(key, _MISSING)
    if isinstance(obj, (list, tuple)):
        try:
            return obj[int(key)]
        except (ValueError, IndexError):
            return _MISSING
    return getattr(obj, key, _MISSING)


def prop(obj: Any, path: str, default: Any = None) -> Any:
    """
    Walk a dotted path ("storageProfile.osDisk.managedDisk.id") and return the
    value, or `default` when any hop is missing or None.
    """
    cur = obj
    for key in path.split("."):
        cur = _step(cur, key)
        if cur is _MISSING or cur is None:
            return default
    return cur


def first_present(obj: Any, names: Iterable[str], default: Any = None) -> Any:
    """
    Return the value of the first path in `names` that is present (not None).

    Maps the several spellings a platform version may use for one value onto a
    single canonical read.
    """
    for name in names:
        v = prop(obj, name, _MISSING)
        if v is not _MISSING:
            return v
    return default


def as_bool(v: Any, default: bool = False) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    if s in ("true", "yes", "1", "enabled", "on"):
        return True
    if s in ("false", "no", "0", "disabled", "off", ""):
        return False
    return default


def as_int(v: Any, default: Optional[int] = None) -> Optional[int]:
    if v is None:
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default
