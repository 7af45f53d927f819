"""JSON helpers that tolerate non-serializable values in logs and responses."""

from __future__ import annotations

import json
import math
from datetime import date, datetime
from pathlib import Path


def safe_json(value):
    """Return a JSON-compatible copy of ``value``.

    Paths and datetimes become strings, NaN/inf become ``None``, sets and
    tuples become lists. Unknown objects fall back to ``str()``.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {str(k): safe_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [safe_json(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return [safe_json(v) for v in sorted(value, key=str)]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    return str(value)


def safe_json_dumps(value, **kwargs):
    kwargs.setdefault("ensure_ascii", False)
    return json.dumps(safe_json(value), allow_nan=False, **kwargs)
