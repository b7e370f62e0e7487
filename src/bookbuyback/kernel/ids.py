"""
Entity ids

Ids are UUIDv7 strings behind a short readable prefix ("ord-", "lst-",
"appr-"). The leading 48 bits are a millisecond timestamp, so ids sort by
creation time and in-memory listings come out in the order they were made.
"""

import secrets
import time
import uuid


def generate_id(prefix: str | None = None, timestamp_ms: int | None = None) -> str:
    """
    Args:
        prefix: Readable entity prefix, e.g. "ord"
        timestamp_ms: Unix time in milliseconds (defaults to now)

    Returns:
        "<prefix>-<uuid7>" or a bare UUIDv7 string
    """
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    value = (timestamp_ms & 0xFFFF_FFFF_FFFF) << 80
    value |= 0x7 << 76  # version
    value |= secrets.randbits(12) << 64
    value |= 0b10 << 62  # RFC 4122 variant
    value |= secrets.randbits(62)
    uid = str(uuid.UUID(int=value))
    return f"{prefix}-{uid}" if prefix else uid
