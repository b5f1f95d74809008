"""
Persistence Repository Interface

💾 Standard Data Access Contract:
This module defines the contract every storage backend implements, so a
caller can create, read, update, delete and search any backend with the
same entity lifecycle rules (versioning, soft delete, optimistic locking,
duplicate detection).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, Awaitable, Callable, Dict, Generic, List, Mapping, Optional, Union
)

from ...entities.entity import Entity, EntityType
from ...utils.option import Option


class LogicalOperator(Enum):
    """Combinator applied to the field predicates of a filter"""
    AND = "and"
    OR = "or"
    NOR = "nor"


class SortOrder(Enum):
    """Sort direction for ordering"""
    ASC = "asc"
    DESC = "desc"


OPTIMISTIC = "optimistic"


@dataclass
class DeletionOptions:
    """How remove() treats a record"""
    soft_delete: bool = True


@dataclass
class QueryOptions:
    """
    Options attached to a read or write call.

    ``session`` carries a backend session handle and is only honoured by
    the transactional (Mongo) backend.
    """
    logical_operator: LogicalOperator = LogicalOperator.AND
    deletion_options: DeletionOptions = field(default_factory=DeletionOptions)
    limit: Optional[int] = None
    offset: int = 0
    sort_by: Dict[str, SortOrder] = field(default_factory=dict)
    locking: Optional[str] = None
    session: Any = None

    @property
    def soft_delete(self) -> bool:
        return self.deletion_options.soft_delete

    @property
    def optimistic(self) -> bool:
        return self.locking == OPTIMISTIC

    def order_by(self, field_name: str, order: SortOrder = SortOrder.ASC) -> 'QueryOptions':
        """Append an explicit ordering key"""
        self.sort_by[field_name] = order
        return self

    @classmethod
    def hard_delete(cls, **kwargs) -> 'QueryOptions':
        """Options for a permanent removal"""
        return cls(deletion_options=DeletionOptions(soft_delete=False), **kwargs)


Filter = Union[Mapping[str, Any], Entity]
Payload = Union[Mapping[str, Any], Entity]


class CrudRepository(ABC, Generic[EntityType]):
    """
    Abstract repository interface for entity persistence.

    All operations are coroutines except create_id(). Reads return
    Option/list values; failures raise PersistenceError.
    """

    @abstractmethod
    def create_id(self) -> str:
        """Generate a fresh id suitable for this backend"""
        pass

    @abstractmethod
    async def find_by_id(self, entity_id: str,
                         options: Optional[QueryOptions] = None) -> Option[EntityType]:
        """
        Find a non-deleted record by id.

        Args:
            entity_id: The id to look up
            options: Optional query options (session)

        Returns:
            Option holding the entity, empty on a miss
        """
        pass

    @abstractmethod
    async def find_one_by(self, filter: Filter,
                          options: Optional[QueryOptions] = None) -> Option[EntityType]:
        """
        Find the first non-deleted record matching the filter.

        Args:
            filter: field -> required value
            options: Logical operator, ordering, session

        Returns:
            Option holding the first match in query order
        """
        pass

    @abstractmethod
    async def find_all(self, filter: Optional[Filter] = None,
                       options: Optional[QueryOptions] = None) -> List[EntityType]:
        """
        Find every non-deleted record matching the filter.

        Args:
            filter: field -> required value; None or empty matches all
            options: Logical operator, ordering, limit/offset, session

        Returns:
            Matching entities, newest first unless sort_by says otherwise
        """
        pass

    @abstractmethod
    async def create(self, entity: EntityType,
                     options: Optional[QueryOptions] = None) -> EntityType:
        """
        Persist a new entity.

        Args:
            entity: The entity to store; a caller-supplied id must be unused
            options: Optional query options (session)

        Returns:
            The stored entity with id, version and timestamps assigned
        """
        pass

    @abstractmethod
    async def create_all(self, entities: List[EntityType],
                         options: Optional[QueryOptions] = None) -> List[EntityType]:
        """
        Persist several entities, all or nothing at submission.

        Args:
            entities: Entities to store; ids must be unique within the batch
            options: Optional query options (session)

        Returns:
            The stored entities
        """
        pass

    @abstractmethod
    async def update(self, entity_id: str, payload: Payload,
                     options: Optional[QueryOptions] = None) -> bool:
        """
        Merge a partial payload over a stored record.

        Args:
            entity_id: Id of the record to update
            payload: Fields to change; its version is compared under optimistic locking
            options: Locking mode, session

        Returns:
            True once the write succeeded
        """
        pass

    @abstractmethod
    async def remove(self, entity_id: str,
                     options: Optional[QueryOptions] = None) -> bool:
        """
        Soft-delete (default) or permanently erase a record.

        Args:
            entity_id: Id of the record to remove
            options: deletion_options.soft_delete, session

        Returns:
            True once the write succeeded
        """
        pass

    @abstractmethod
    def get_database(self) -> Any:
        """Native backend handle"""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the shared backend client has been established"""
        pass


TransactionBody = Callable[[Any], Awaitable[Any]]


class TransactionalCrudRepository(CrudRepository[EntityType]):
    """Repository whose backend offers multi-operation atomicity"""

    @abstractmethod
    async def execute_transaction(self, body: TransactionBody) -> Any:
        """
        Run body(session) inside a backend transaction.

        Commits and returns the body's result on success; aborts and
        re-raises the original error otherwise. The session is always ended.
        """
        pass


Listener = Callable[..., Any]
Unsubscribe = Callable[[], None]


class EventfulRepository(ABC, Generic[EntityType]):
    """Repository that can push live changes to listeners"""

    @abstractmethod
    async def add_listener(self, listener: Listener, filter: Optional[Filter] = None,
                           options: Optional[QueryOptions] = None) -> Unsubscribe:
        """Call listener(entity, change_type) for each change matching the filter"""
        pass

    @abstractmethod
    async def add_listener_by_id(self, listener: Listener, entity_id: str) -> Unsubscribe:
        """Call listener(entity) whenever the record with this id changes"""
        pass


# Export main components
__all__ = [
    "CrudRepository", "TransactionalCrudRepository", "EventfulRepository",
    "QueryOptions", "DeletionOptions", "LogicalOperator", "SortOrder", "OPTIMISTIC",
    "Filter", "Payload", "TransactionBody", "Listener", "Unsubscribe"
]
