"""Correlation id helpers."""

from __future__ import annotations

import itertools
import secrets
import time

_sequence = itertools.count(1)


def new_request_id(prefix: str = "mcp") -> str:
    """Return a correlation id that is unique within this process."""

    millis = int(time.time() * 1000)
    return f"{prefix}_{millis}_{next(_sequence)}_{secrets.token_hex(4)}"
