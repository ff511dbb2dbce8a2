from .encryption import SecretCipher

__all__ = ["SecretCipher"]
