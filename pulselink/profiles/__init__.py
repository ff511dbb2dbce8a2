from .models import RegistrationType, SeniorProfile
from .store import InMemoryProfileStore, ProfileStore, SqlProfileStore

__all__ = [
    "RegistrationType",
    "SeniorProfile",
    "ProfileStore",
    "SqlProfileStore",
    "InMemoryProfileStore",
]
