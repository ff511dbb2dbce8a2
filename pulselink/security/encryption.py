"""
At-rest protection for the virtual-account password copy kept on relations.
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class SecretCipher:
    """Fernet wrapper; without a key values pass through unchanged."""

    def __init__(self, key: Optional[str] = None):
        self._cipher: Optional[Fernet] = Fernet(key.encode()) if key else None

    @property
    def enabled(self) -> bool:
        return self._cipher is not None

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def protect(self, value: Optional[str]) -> Optional[str]:
        if value is None or not self._cipher:
            return value
        return self._cipher.encrypt(value.encode("utf-8")).decode("utf-8")

    def reveal(self, value: Optional[str]) -> Optional[str]:
        if value is None or not self._cipher:
            return value
        try:
            return self._cipher.decrypt(value.encode("utf-8")).decode("utf-8")
        except InvalidToken:
            logger.warning("Stored secret could not be decrypted with the current key")
            return None
