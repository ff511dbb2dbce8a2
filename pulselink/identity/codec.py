"""
Synthetic senior identities and the virtual login addresses derived from them.

Format: ``SNR-`` + 12 characters from ``[A-Z0-9]``.

- first 8: base-36 encoding of the current clock in milliseconds (last 8
  digits, left padded with ``0``)
- last 4: random uppercase letters

The clock prefix keeps ids roughly time ordered but, once truncated, ordering
is not guaranteed. Uniqueness is probabilistic. Generation reads only the
clock and the random source, so concurrent callers need no coordination.
"""

from __future__ import annotations

import random
import re
import string
import time
from typing import Optional

SNR_ID_PREFIX = "SNR-"
SNR_ID_CONTENT_LENGTH = 12
SNR_ID_FULL_LENGTH = len(SNR_ID_PREFIX) + SNR_ID_CONTENT_LENGTH
SNR_ID_PATTERN = r"SNR-[A-Z0-9]{12}"
SNR_ID_REGEX = re.compile(rf"^{SNR_ID_PATTERN}$")

TIMESTAMP_LENGTH = 8
RANDOM_LENGTH = SNR_ID_CONTENT_LENGTH - TIMESTAMP_LENGTH

DEFAULT_EMAIL_PREFIX = "senior_"
DEFAULT_EMAIL_DOMAIN = "pulselink.app"

_BASE36_DIGITS = string.digits + string.ascii_uppercase
_random = random.SystemRandom()


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36_DIGITS[rem])
    return "".join(reversed(out))


class IdentityCodec:
    """Generates identities and maps them to and from virtual addresses."""

    def __init__(
        self,
        email_prefix: str = DEFAULT_EMAIL_PREFIX,
        email_domain: str = DEFAULT_EMAIL_DOMAIN,
    ):
        if not email_domain:
            raise ValueError("email_domain must be non-empty")
        self.email_prefix = email_prefix
        self.email_domain = email_domain
        self._address_regex = re.compile(
            rf"^{re.escape(email_prefix)}({SNR_ID_PATTERN})@{re.escape(email_domain)}$"
        )

    @staticmethod
    def generate() -> str:
        millis = time.time_ns() // 1_000_000
        timestamp_part = to_base36(millis)[-TIMESTAMP_LENGTH:].rjust(
            TIMESTAMP_LENGTH, "0"
        )
        random_part = "".join(
            _random.choice(string.ascii_uppercase) for _ in range(RANDOM_LENGTH)
        )
        return f"{SNR_ID_PREFIX}{timestamp_part}{random_part}"

    @staticmethod
    def is_valid(identity: Optional[str]) -> bool:
        return bool(identity) and SNR_ID_REGEX.match(identity) is not None  # type: ignore[arg-type]

    def derive_address(self, identity: str) -> str:
        return f"{self.email_prefix}{identity}@{self.email_domain}"

    def extract_identity(self, address: Optional[str]) -> Optional[str]:
        if not address:
            return None
        m = self._address_regex.match(address)
        return m.group(1) if m else None

    # Debug helpers
    @classmethod
    def timestamp_part(cls, identity: str) -> Optional[str]:
        if not cls.is_valid(identity):
            return None
        return identity[len(SNR_ID_PREFIX) : len(SNR_ID_PREFIX) + TIMESTAMP_LENGTH]

    @classmethod
    def random_part(cls, identity: str) -> Optional[str]:
        if not cls.is_valid(identity):
            return None
        return identity[len(SNR_ID_PREFIX) + TIMESTAMP_LENGTH :]
