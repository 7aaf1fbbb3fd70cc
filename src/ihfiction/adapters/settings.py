"""Environment readers shared by adapters and the API factory."""

from __future__ import annotations

import os


def env_str(name: str, default: str = "") -> str:
    """Return a stripped env value, falling back when unset or blank."""
    return os.environ.get(name, "").strip() or default


def int_env(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def csv_env(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name, "")
    values = [item.strip() for item in raw.split(",") if item.strip()]
    return values or list(default)
