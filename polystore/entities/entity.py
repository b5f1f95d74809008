"""
Entity - The Unit of Persistence

Every record stored through polystore is an Entity: a pydantic model with
an id, lifecycle timestamps, a version counter and a soft-delete flag.
Applications subclass it to declare their own fields:

    class User(Entity):
        name: str
        email: str

Unknown fields are accepted and persisted (``extra="allow"``); storage
documents use the camelCase names (``dateCreated``, ``dateUpdated``...).
"""

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

EntityType = TypeVar('EntityType', bound='Entity')

# Lifecycle fields by stored name
ID = "id"
DELETED = "deleted"
DATE_CREATED = "dateCreated"
DATE_UPDATED = "dateUpdated"
DATE_DELETED = "dateDeleted"
VERSION = "version"


class Entity(BaseModel):
    """
    Base persistable record.

    Lifecycle fields are left as None on new instances; repositories stamp
    them on write.
    """

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        validate_assignment=True,
    )

    id: Optional[str] = None
    deleted: Optional[bool] = None
    date_created: Optional[int] = Field(default=None, alias=DATE_CREATED)
    date_updated: Optional[int] = Field(default=None, alias=DATE_UPDATED)
    date_deleted: Optional[int] = Field(default=None, alias=DATE_DELETED)
    version: Optional[int] = None

    def to_document(self) -> Dict[str, Any]:
        """Storage representation: stored field names, unset values dropped"""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_partial(self) -> Dict[str, Any]:
        """Only the fields explicitly set by the caller, for updates and filters"""
        return self.model_dump(by_alias=True, exclude_unset=True)

    @classmethod
    def from_document(cls: Type[EntityType], document: Dict[str, Any]) -> EntityType:
        return cls.model_validate(document)

    @classmethod
    def field_aliases(cls) -> Dict[str, str]:
        """Map python attribute names to stored names where they differ"""
        return {
            name: info.alias
            for name, info in cls.model_fields.items()
            if info.alias and info.alias != name
        }


__all__ = [
    "Entity", "EntityType",
    "ID", "DELETED", "DATE_CREATED", "DATE_UPDATED", "DATE_DELETED", "VERSION"
]
