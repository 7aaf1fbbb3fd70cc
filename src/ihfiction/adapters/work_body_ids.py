"""Object-id style identifiers for content documents."""

from __future__ import annotations

import secrets
import time


def new_work_body_id() -> str:
    """Return a 24-hex id: 8 hex seconds since epoch plus 16 random hex chars."""
    return f"{int(time.time()):08x}{secrets.token_hex(8)}"
