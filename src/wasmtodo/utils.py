from __future__ import annotations

import base64
import hashlib
import math
from decimal import Decimal


def sha256_digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(value: str | None) -> bytes:
    if not value:
        return b""
    return base64.b64decode(value)


def decimal_ceil(value: Decimal) -> int:
    """Round a non-negative decimal up to the next integer."""
    return int(math.ceil(value))


def mask_secret(value: str, keep: int = 4) -> str:
    """Render a secret for display: first word or first few characters only."""
    if not value:
        return ""
    words = value.split()
    if len(words) > 1:
        return f"{words[0]} ... ({len(words)} words)"
    return value[:keep] + "..." if len(value) > keep else "..."
