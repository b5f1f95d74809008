"""
Entities - Persistable records and their lifecycle rules

🎯 Entity-Centric Persistence:
- entity.py: the Entity base model and stored field names
- lifecycle.py: version/timestamp/soft-delete stamping
"""

from .entity import (
    Entity, EntityType, ID, DELETED, DATE_CREATED, DATE_UPDATED, DATE_DELETED, VERSION
)
from .lifecycle import (
    now_millis, next_version, stamp_for_write, mark_deleted, merge_for_update, clear_deletion
)

__all__ = [
    "Entity", "EntityType",
    "ID", "DELETED", "DATE_CREATED", "DATE_UPDATED", "DATE_DELETED", "VERSION",
    "now_millis", "next_version", "stamp_for_write", "mark_deleted", "merge_for_update",
    "clear_deletion"
]
