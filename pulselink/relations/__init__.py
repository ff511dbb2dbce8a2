from .models import (
    CaregiverRelation,
    RelationPermissions,
    RelationStatus,
    generate_relation_id,
)
from .store import InMemoryRelationshipStore, RelationshipStore, SqlRelationshipStore

__all__ = [
    "CaregiverRelation",
    "RelationPermissions",
    "RelationStatus",
    "generate_relation_id",
    "RelationshipStore",
    "SqlRelationshipStore",
    "InMemoryRelationshipStore",
]
