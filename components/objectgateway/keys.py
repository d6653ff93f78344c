"""Server-side object key generation.

Keys are a ULID (26 Crockford Base32 chars: 48-bit millisecond timestamp
followed by 80 bits of ``secrets`` entropy) plus the original file's
extension. The extension is a download convenience only; content type is
decided by sniffing.
"""
from __future__ import annotations

import re
import secrets
import threading
import time
from typing import Callable, Optional

_ULID_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ENTROPY_BITS = 80
_MAX_ENTROPY = (1 << _ENTROPY_BITS) - 1
_MAX_TIMESTAMP_MS = (1 << 48) - 1
_EXT_RE = re.compile(r"[^a-z0-9]")
MAX_EXTENSION_LEN = 16

ClockMs = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


def encode_ulid(timestamp_ms: int, entropy: int) -> str:
    number = (timestamp_ms << _ENTROPY_BITS) | entropy
    chars = []
    for _ in range(26):
        number, remainder = divmod(number, 32)
        chars.append(_ULID_ALPHABET[remainder])
    return "".join(reversed(chars))


def decode_timestamp_ms(key: str) -> int:
    """Millisecond timestamp embedded in a generated key."""
    number = 0
    for char in key[:10].upper():
        idx = _ULID_ALPHABET.find(char)
        if idx < 0:
            raise ValueError(f"Invalid ULID character: {char!r}")
        number = (number << 5) | idx
    return number


def key_extension(original_name: Optional[str]) -> str:
    """Lower-cased extension of ``original_name`` including the dot, or ''."""
    if not original_name:
        return ""
    base = original_name.replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in base.strip("."):
        return ""
    ext = _EXT_RE.sub("", base.rsplit(".", 1)[-1].lower())[:MAX_EXTENSION_LEN]
    return f".{ext}" if ext else ""


class KeyGenerator:
    """Monotonic ULID source.

    Within one millisecond (or if the clock steps backwards) the previous
    entropy is incremented, so keys compare lexically in generation order.
    """

    def __init__(self, clock_ms: Optional[ClockMs] = None) -> None:
        self._clock_ms = clock_ms or _now_ms
        self._lock = threading.Lock()
        self._last_ms = -1
        self._last_entropy = 0

    def new_ulid(self) -> str:
        with self._lock:
            ts = self._clock_ms()
            if ts < 0 or ts > _MAX_TIMESTAMP_MS:
                raise ValueError("timestamp out of ULID 48-bit range")
            if ts <= self._last_ms:
                ts = self._last_ms
                entropy = self._last_entropy + 1
                if entropy > _MAX_ENTROPY:
                    # Entropy exhausted for this millisecond; borrow the next one.
                    ts += 1
                    entropy = secrets.randbits(_ENTROPY_BITS - 1)
            else:
                entropy = secrets.randbits(_ENTROPY_BITS)
            self._last_ms = ts
            self._last_entropy = entropy
        return encode_ulid(ts, entropy)

    def new_key(self, original_name: Optional[str]) -> str:
        return self.new_ulid() + key_extension(original_name)


_default = KeyGenerator()


def new_key(original_name: Optional[str]) -> str:
    return _default.new_key(original_name)
