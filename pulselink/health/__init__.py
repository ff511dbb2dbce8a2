from .gateway import HealthRecordGateway
from .models import HealthRecord, HealthRecordType, HealthSummary
from .store import HealthRecordStore, InMemoryHealthRecordStore, SqlHealthRecordStore

__all__ = [
    "HealthRecordGateway",
    "HealthRecord",
    "HealthRecordType",
    "HealthSummary",
    "HealthRecordStore",
    "SqlHealthRecordStore",
    "InMemoryHealthRecordStore",
]
