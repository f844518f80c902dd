"""
Client-side identifier generation.
"""

from __future__ import annotations

import os
import time
import uuid


def generate_uuid() -> str:
    """
    Generate a version-4 UUID string with a timestamp-first (COMB) layout.

    The first 48 bits hold the current Unix time in milliseconds and the rest
    is random, so ids created later sort later and inserts stay close to the
    right-hand edge of a btree index.
    """
    millis = time.time_ns() // 1_000_000
    raw = (millis & 0xFFFF_FFFF_FFFF).to_bytes(6, "big") + os.urandom(10)
    return str(uuid.UUID(bytes=raw, version=4))


__all__ = ["generate_uuid"]
