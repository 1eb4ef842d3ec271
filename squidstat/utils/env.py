"""Environment parsing helpers.

Small helpers to consistently parse env vars with sane defaults.
"""
from __future__ import annotations

from typing import Optional
import os


def env_str(name: str, default: str = "") -> str:
    val = os.getenv(name)
    return default if val is None else val


def env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None or val == "":
        return bool(default)
    return val in ("1", "true", "True", "TRUE", "YES", "yes", "on", "On")


def env_int(name: str, default: int, minimum: int | None = None) -> int:
    try:
        v = int(os.getenv(name, str(default)))
    except ValueError:
        v = int(default)
    if minimum is not None:
        v = max(minimum, v)
    return v


def env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    """Parse a float; empty, missing or invalid values give ``default``."""
    s = os.getenv(name, "")
    if not s:
        return default
    try:
        return float(s)
    except ValueError:
        return default
