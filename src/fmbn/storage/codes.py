"""Referral code and wallet address generation.

Both embed the owner id and a base36 millisecond timestamp. Wallet
addresses carry a random suffix so two wallets created in the same
millisecond still differ.
"""

from __future__ import annotations

import secrets
import string
import time
from collections.abc import Awaitable, Callable

BASE36 = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 4
MAX_ATTEMPTS = 10


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def make_referral_code(user_id: int, suffix: str = "") -> str:
    """``REF{user_id}{base36 ms}``, with an optional collision suffix."""
    return f"REF{user_id}{to_base36(now_ms())}{suffix}"


def make_wallet_address(user_id: int, wallet_type: str) -> str:
    """``FMBN{user_id}{TYPE}{base36 ms}{4 random chars}``."""
    return f"FMBN{user_id}{wallet_type.upper()}{to_base36(now_ms())}{random_suffix()}"


async def generate_unique(
    make: Callable[[int], str],
    exists: Callable[[str], Awaitable[bool]],
    what: str,
) -> str:
    """Call ``make(attempt)`` until ``exists`` reports a free value."""
    for attempt in range(MAX_ATTEMPTS):
        candidate = make(attempt)
        if not await exists(candidate):
            return candidate
    raise RuntimeError(f"Failed to generate unique {what} after {MAX_ATTEMPTS} attempts")
