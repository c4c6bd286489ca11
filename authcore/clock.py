"""Clock and random-source collaborators."""

import secrets
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]
RandomSource = Callable[[int], bytes]


def utc_now() -> datetime:
    """Return the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def secure_random_bytes(length: int) -> bytes:
    """Return ``length`` cryptographically secure random bytes."""
    return secrets.token_bytes(length)
