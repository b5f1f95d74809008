"""
Base Repository - Common Repository Functionality

🏗️ Shared Repository Foundation:
The entity lifecycle, the duplicate guard and the filter compiler are the
same for every backend, so the public contract is implemented once here.
Backends only supply a handful of storage primitives over plain documents
(dicts keyed by stored field names):

    _connect()                         establish the shared client
    _load(id, options)                 one non-deleted document or None
    _select(plan, options)             documents matching a QueryPlan
    _insert(document, options)
    _insert_many(documents, options)   all or nothing
    _write(current, updated, options)  replace a stored document
    _erase(current, options)           permanent removal
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple, Type
import logging

from ...entities.entity import ID, VERSION, Entity, EntityType
from ...entities.lifecycle import (
    clear_deletion, mark_deleted, merge_for_update, now_millis, stamp_for_write
)
from ...utils import Option, generate_id, require_non_empty, require_non_null
from ..errors import PersistenceError
from .filters import QueryPlan, compile_query, normalize_filter
from .guards import reject_batch_duplicates, reject_existing_id
from .interface import CrudRepository, Filter, Payload, QueryOptions

logger = logging.getLogger(__name__)


@dataclass
class RepositoryMetrics:
    """Metrics collected by repository implementations"""
    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    average_response_time_ms: float = 0.0
    uptime_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary"""
        return {
            "total_operations": self.total_operations,
            "successful_operations": self.successful_operations,
            "failed_operations": self.failed_operations,
            "success_rate": self.successful_operations / max(self.total_operations, 1),
            "average_response_time_ms": self.average_response_time_ms,
            "uptime_seconds": self.uptime_seconds
        }


class BaseRepository(CrudRepository[EntityType], ABC):
    """
    Base repository implementation providing the unified contract.

    This class provides:
    - Entity lifecycle stamping (version, timestamps, soft delete)
    - Duplicate detection for single and batch creates
    - Optimistic locking on update
    - Metrics collection and logging
    - Wrapping of driver failures into PersistenceError(INTERNAL)
    """

    # Exceptions raised by the backend driver, wrapped as INTERNAL
    driver_errors: Tuple[Type[BaseException], ...] = ()

    def __init__(self, collection: str, entity_class: Type[EntityType] = Entity):
        require_non_empty(collection, PersistenceError.configuration("No collection name provided"))
        require_non_null(entity_class, PersistenceError.configuration("No entity class provided"))
        self.collection = collection
        self.entity_class = entity_class
        self.metrics = RepositoryMetrics()
        self.start_time = datetime.now()
        self._aliases = entity_class.field_aliases()
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    # Storage primitives
    @abstractmethod
    async def _connect(self) -> None:
        pass

    @abstractmethod
    async def _load(self, entity_id: str, options: QueryOptions) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def _select(self, plan: QueryPlan, options: QueryOptions) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def _insert(self, document: Dict[str, Any], options: QueryOptions) -> None:
        pass

    @abstractmethod
    async def _insert_many(self, documents: List[Dict[str, Any]], options: QueryOptions) -> None:
        pass

    @abstractmethod
    async def _write(self, current: Dict[str, Any], updated: Dict[str, Any],
                     options: QueryOptions) -> None:
        pass

    @abstractmethod
    async def _erase(self, current: Dict[str, Any], options: QueryOptions) -> None:
        pass

    # Unified contract
    def create_id(self) -> str:
        entity_id = generate_id()
        self._logger.debug(f"create_id: {entity_id}")
        return entity_id

    async def find_by_id(self, entity_id: str,
                         options: Optional[QueryOptions] = None) -> Option[EntityType]:
        options = options or QueryOptions()
        self._logger.debug(f"find_by_id {self.collection}: {entity_id}")
        async with self._operation("find_by_id"):
            self._require_id(entity_id)
            document = await self._load(entity_id, options)
            return Option.of_nullable(document).map(self._hydrate)

    async def find_one_by(self, filter: Filter,
                          options: Optional[QueryOptions] = None) -> Option[EntityType]:
        options = options or QueryOptions()
        self._logger.debug(f"find_one_by {self.collection}: {filter}")
        async with self._operation("find_one_by"):
            plan = compile_query(filter, options, self._aliases)
            plan.limit = 1
            documents = await self._select(plan, options)
            return Option.of_nullable(documents[0] if documents else None).map(self._hydrate)

    async def find_all(self, filter: Optional[Filter] = None,
                       options: Optional[QueryOptions] = None) -> List[EntityType]:
        options = options or QueryOptions()
        self._logger.debug(f"find_all {self.collection}: {filter}")
        async with self._operation("find_all"):
            plan = compile_query(filter, options, self._aliases)
            documents = await self._select(plan, options) if plan.limit != 0 else []
            self._logger.debug(f"find_all {self.collection}: {len(documents)} records found")
            return [self._hydrate(document) for document in documents]

    async def create(self, entity: EntityType,
                     options: Optional[QueryOptions] = None) -> EntityType:
        options = options or QueryOptions()
        self._logger.debug(f"create {self.collection}: {entity}")
        async with self._operation("create"):
            document = self._to_document(entity)
            if document.get(ID):
                await reject_existing_id(self._load, self.collection, document[ID], options)
            else:
                document[ID] = self.create_id()
            stamp_for_write(clear_deletion(document))
            await self._insert(document, options)
            self._logger.debug(f"Created {self.collection} record {document[ID]}")
            return self._hydrate(document)

    async def create_all(self, entities: List[EntityType],
                         options: Optional[QueryOptions] = None) -> List[EntityType]:
        options = options or QueryOptions()
        self._logger.debug(f"create_all {self.collection}: {len(entities or [])} entities")
        if not entities:
            return []
        async with self._operation("create_all"):
            documents = [self._to_document(entity) for entity in entities]
            with_ids = [document for document in documents if document.get(ID)]
            reject_batch_duplicates(with_ids)
            for document in with_ids:
                await reject_existing_id(self._load, self.collection, document[ID], options)

            now = now_millis()
            for document in documents:
                if not document.get(ID):
                    document[ID] = self.create_id()
                stamp_for_write(clear_deletion(document), now)
            await self._insert_many(documents, options)
            self._logger.debug(f"Created {len(documents)} {self.collection} records")
            return [self._hydrate(document) for document in documents]

    async def update(self, entity_id: str, payload: Payload,
                     options: Optional[QueryOptions] = None) -> bool:
        options = options or QueryOptions()
        self._logger.debug(f"update {self.collection}: {entity_id} {payload}")
        async with self._operation("update"):
            current = await self._expect_record(entity_id, options)
            partial = self._to_partial(payload)
            if options.optimistic and partial.get(VERSION) != current.get(VERSION):
                self._logger.error(
                    f"Optimistic locking update: Record version mismatch "
                    f"(stored {current.get(VERSION)}, given {partial.get(VERSION)})"
                )
                raise PersistenceError.optimistic_lock()

            updated = stamp_for_write(merge_for_update(current, partial))
            await self._write(current, updated, options)
            return True

    async def remove(self, entity_id: str,
                     options: Optional[QueryOptions] = None) -> bool:
        options = options or QueryOptions()
        self._logger.debug(f"remove {self.collection}: {entity_id} (soft={options.soft_delete})")
        async with self._operation("remove"):
            current = await self._expect_record(entity_id, options)
            if options.soft_delete:
                updated = stamp_for_write(mark_deleted(dict(current)))
                await self._write(current, updated, options)
            else:
                await self._erase(current, options)
            return True

    def is_connected(self) -> bool:
        return False

    async def get_metrics(self) -> Dict[str, Any]:
        """Get repository performance metrics"""
        self.metrics.uptime_seconds = (datetime.now() - self.start_time).total_seconds()
        return self.metrics.to_dict()

    # Helpers
    async def _expect_record(self, entity_id: str, options: QueryOptions) -> Dict[str, Any]:
        self._require_id(entity_id)
        document = await self._load(entity_id, options)
        if document is None:
            raise PersistenceError.not_found(self.collection, entity_id)
        return document

    def _require_id(self, entity_id: str) -> None:
        if not isinstance(entity_id, str) or not entity_id:
            raise PersistenceError.invalid_request(f"Invalid {self.collection} record id: {entity_id!r}")

    def _to_document(self, entity: Any) -> Dict[str, Any]:
        require_non_null(entity, PersistenceError.invalid_request("No entity provided"))
        if isinstance(entity, Entity):
            return entity.to_document()
        if isinstance(entity, Mapping):
            return {
                key: value
                for key, value in normalize_filter(entity, self._aliases).items()
                if value is not None
            }
        raise PersistenceError.invalid_request(
            f"Cannot store {type(entity).__name__} in {self.collection}"
        )

    def _to_partial(self, payload: Payload) -> Dict[str, Any]:
        require_non_null(payload, PersistenceError.invalid_request("No update payload provided"))
        return normalize_filter(payload, self._aliases)

    def _hydrate(self, document: Mapping[str, Any]) -> EntityType:
        return self.entity_class.from_document(
            {key: value for key, value in document.items() if key != "_id"}
        )

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        """Connect, time the call and normalize its failures"""
        start = self._record_operation_start()
        try:
            await self._connect()
            yield
        except PersistenceError as error:
            self._record_operation_failure(start, error)
            raise
        except self.driver_errors as error:
            self._record_operation_failure(start, error)
            raise PersistenceError.internal(
                f"{self.__class__.__name__} {name} failed for {self.collection}: {error}", error
            ) from error
        else:
            self._record_operation_success(start)

    def _record_operation_start(self) -> datetime:
        """Record the start of an operation"""
        return datetime.now()

    def _record_operation_success(self, start_time: datetime):
        """Record a successful operation"""
        duration = (datetime.now() - start_time).total_seconds() * 1000
        self.metrics.total_operations += 1
        self.metrics.successful_operations += 1

        total_time = self.metrics.average_response_time_ms * (self.metrics.successful_operations - 1)
        self.metrics.average_response_time_ms = (total_time + duration) / self.metrics.successful_operations

    def _record_operation_failure(self, start_time: datetime, error: BaseException):
        """Record a failed operation"""
        self.metrics.total_operations += 1
        self.metrics.failed_operations += 1
        self._logger.error(f"Operation failed: {error}")


# Export main components
__all__ = ["BaseRepository", "RepositoryMetrics"]
