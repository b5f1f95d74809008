"""
Mongo Backend - Transactional Document Storage

🍃 MongoDB through Motor:
MongoConnection owns one AsyncIOMotorClient shared by every repository of
the process; MongoRepository implements the unified contract over one
collection and adds multi-document transactions.

Stored documents keep the record id in both ``id`` and ``_id`` so Mongo's
primary key index enforces id uniqueness as well.
"""

from typing import Any, Dict, List, Optional, Type
import asyncio
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from ...entities.entity import DELETED, ID, Entity, EntityType
from ...infrastructure.configuration import MongoConnectionProperties
from ..errors import PersistenceError
from ..repositories.base import BaseRepository
from ..repositories.filters import QueryPlan
from ..repositories.interface import (
    LogicalOperator, QueryOptions, SortOrder, TransactionBody, TransactionalCrudRepository
)
from ..transactions.unit_of_work import MongoUnitOfWork

logger = logging.getLogger(__name__)

NOT_DELETED = {DELETED: {"$ne": True}}


class MongoConnection:
    """
    Lazily connected Motor client plus the collection registry.

    ``client`` may be given to reuse an existing Motor (or Motor compatible)
    client; otherwise one is created on first use from the properties.
    """

    def __init__(self, properties: Optional[MongoConnectionProperties] = None,
                 client: Any = None):
        self.properties = (properties or MongoConnectionProperties.from_environment()).validate()
        self._client = client
        self._lock = asyncio.Lock()

    @property
    def client(self) -> Any:
        return self._client

    @property
    def database(self) -> Any:
        if self._client is None:
            return None
        return self._client[self.properties.database]

    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> Any:
        """Create the shared client once; concurrent callers wait for it"""
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                options = dict(self.properties.connection_options)
                if self.properties.app_name:
                    options.setdefault("appname", self.properties.app_name)
                logger.info(f"Connecting to MongoDB database {self.properties.database}")
                self._client = AsyncIOMotorClient(self.properties.uri, **options)
                logger.info("MongoDB client created")
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB client closed")

    def entity_class(self, collection: str) -> Type[Entity]:
        """Entity class registered for a collection"""
        entity_class = self.properties.entities.get(collection)
        if entity_class is None:
            raise PersistenceError.configuration(
                f"Mongo collection with name {collection} not recognized"
            )
        return entity_class

    def unit_of_work(self) -> MongoUnitOfWork:
        return MongoUnitOfWork(self)


def to_mongo_filter(plan: QueryPlan) -> Dict[str, Any]:
    """Translate a QueryPlan into a Mongo filter document"""
    clauses = [
        {name: {"$eq": value, "$exists": True}}
        for name, value in plan.predicates
    ]
    if not clauses:
        return dict(NOT_DELETED)

    if plan.operator is LogicalOperator.AND:
        if any(name == DELETED for name, _ in plan.predicates):
            return {"$and": [NOT_DELETED, *clauses]}
        query = dict(NOT_DELETED)
        for clause in clauses:
            query.update(clause)
        return query

    operator = "$or" if plan.operator is LogicalOperator.OR else "$nor"
    return {"$and": [NOT_DELETED, {operator: clauses}]}


def to_mongo_sort(plan: QueryPlan) -> List[tuple]:
    return [
        (name, ASCENDING if order is SortOrder.ASC else DESCENDING)
        for name, order in plan.orders
    ]


def _session_kwargs(options: QueryOptions) -> Dict[str, Any]:
    return {"session": options.session} if options.session is not None else {}


class MongoRepository(BaseRepository[EntityType], TransactionalCrudRepository[EntityType]):
    """
    Mongo implementation of the unified contract.

    Every method accepts ``QueryOptions(session=...)`` to join a running
    transaction (see execute_transaction and unit_of_work).
    """

    driver_errors = (PyMongoError,)

    def __init__(self, connection: MongoConnection, collection: str,
                 entity_class: Optional[Type[EntityType]] = None):
        registered = connection.entity_class(collection)
        super().__init__(collection, entity_class or registered)
        self.connection = connection
        self._logger.info(f"MongoRepository ready for collection {collection}")

    @property
    def _collection(self) -> Any:
        return self.connection.database[self.collection]

    def get_database(self) -> Any:
        return self.connection.database

    def is_connected(self) -> bool:
        return self.connection.is_connected()

    async def _connect(self) -> None:
        await self.connection.connect()

    async def _load(self, entity_id: str, options: QueryOptions) -> Optional[Dict[str, Any]]:
        query = {**NOT_DELETED, ID: {"$eq": entity_id}}
        return await self._collection.find_one(query, **_session_kwargs(options))

    async def _select(self, plan: QueryPlan, options: QueryOptions) -> List[Dict[str, Any]]:
        query = to_mongo_filter(plan)
        self._logger.debug(f"Mongo query for {self.collection}: {query}")
        cursor = self._collection.find(
            query,
            sort=to_mongo_sort(plan),
            skip=plan.offset,
            limit=plan.limit or 0,
            **_session_kwargs(options)
        )
        return await cursor.to_list(length=None)

    async def _insert(self, document: Dict[str, Any], options: QueryOptions) -> None:
        try:
            await self._collection.insert_one(
                {**document, "_id": document[ID]}, **_session_kwargs(options)
            )
        except DuplicateKeyError as error:
            # The id belongs to a soft-deleted record
            raise PersistenceError.duplicate(self.collection, document[ID]) from error

    async def _insert_many(self, documents: List[Dict[str, Any]], options: QueryOptions) -> None:
        ids = [document[ID] for document in documents]
        taken = await self._collection.find_one({"_id": {"$in": ids}}, **_session_kwargs(options))
        if taken is not None:
            raise PersistenceError.duplicate(self.collection, taken["_id"])
        await self._collection.insert_many(
            [{**document, "_id": document[ID]} for document in documents],
            ordered=True,
            **_session_kwargs(options)
        )

    async def _write(self, current: Dict[str, Any], updated: Dict[str, Any],
                     options: QueryOptions) -> None:
        replacement = {key: value for key, value in updated.items() if key != "_id"}
        result = await self._collection.replace_one(
            {ID: current[ID]}, replacement, **_session_kwargs(options)
        )
        if result.matched_count != 1:
            raise PersistenceError.not_found(self.collection, current[ID])

    async def _erase(self, current: Dict[str, Any], options: QueryOptions) -> None:
        result = await self._collection.delete_one({ID: current[ID]}, **_session_kwargs(options))
        self._logger.debug(f"Mongo delete: {result.deleted_count} records deleted")

    def unit_of_work(self) -> MongoUnitOfWork:
        """Start a scoped transaction usable with ``async with``"""
        return self.connection.unit_of_work()

    async def execute_transaction(self, body: TransactionBody) -> Any:
        if body is None:
            raise PersistenceError.invalid_request("No transaction executor provided")
        async with self.unit_of_work() as uow:
            self._logger.debug(f"Executing transaction {uow.transaction_id}")
            return await body(uow.session)


# Export main components
__all__ = [
    "MongoConnection", "MongoRepository", "to_mongo_filter", "to_mongo_sort"
]
