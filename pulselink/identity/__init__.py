from .codec import IdentityCodec, SNR_ID_REGEX

__all__ = ["IdentityCodec", "SNR_ID_REGEX"]
