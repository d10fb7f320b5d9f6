"""Time-ordered identifiers for traces and spans.

Ids are UUID version 7 strings: a 48-bit unix millisecond timestamp followed
by a 12-bit sequence counter and 62 random bits. Lexicographic order of the
text form matches creation order.
"""

import secrets
import time
from datetime import UTC, datetime
from threading import Lock
from uuid import UUID

_lock = Lock()
_last_ms: int = 0
_seq: int = 0

_SEQ_MAX = 0xFFF


def _next_timestamp_and_seq() -> tuple[int, int]:
    """Return a (millis, sequence) pair strictly greater than the previous one."""
    global _last_ms, _seq  # noqa: PLW0603
    with _lock:
        now_ms = time.time_ns() // 1_000_000
        if now_ms > _last_ms:
            _last_ms = now_ms
            _seq = secrets.randbits(8)
        else:
            # Same millisecond or clock stepped backwards: keep the last
            # timestamp and bump the counter, borrowing a millisecond on overflow.
            _seq += 1
            if _seq > _SEQ_MAX:
                _last_ms += 1
                _seq = 0
        return _last_ms, _seq


def new_id() -> str:
    """Generate a new UUIDv7 string. Thread-safe."""
    ms, seq = _next_timestamp_and_seq()
    rand_b = secrets.randbits(62)
    value = (ms & 0xFFFF_FFFF_FFFF) << 80
    value |= 0x7 << 76
    value |= seq << 64
    value |= 0b10 << 62
    value |= rand_b
    return str(UUID(int=value))


def id_timestamp(identifier: str) -> datetime:
    """Return the creation time embedded in a UUIDv7 string."""
    value = UUID(identifier)
    if value.version != 7:
        raise ValueError(f"Not a UUIDv7 identifier: {identifier}")
    return datetime.fromtimestamp((value.int >> 80) / 1000, tz=UTC)
