"""
Firestore Backend - Cloud Document Storage with Live Queries

🔥 Google Cloud Firestore:
FirestoreConnection owns one ``AsyncClient`` for CRUD plus, once a listener
is registered, one sync ``Client`` for snapshot listeners (the async client
has no ``on_snapshot``). FirestoreRepository implements the unified contract
and pushes live changes to listeners.

Query translation:
- AND: ``deleted != true`` conjoined with one ``==`` filter per field
- OR: ``And([deleted != true, Or([...])])``
- NOR: no native equivalent (``!=`` drops documents missing the field), so
  only ``deleted != true`` runs server side and the predicates are
  evaluated in-process before offset/limit
- ordering always starts with ``deleted DESC``, required by the ``!=``
  filter, then the plan's orderings
"""

from typing import Any, Callable, Dict, List, Optional, Type
import asyncio
import logging
import os

from google.api_core.exceptions import Conflict, GoogleAPICallError
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import And, FieldFilter, Or

from ...entities.entity import DELETED, ID, Entity, EntityType
from ...infrastructure.configuration import FirestoreConnectionProperties
from ..errors import ErrorKind, PersistenceError
from ..repositories.base import BaseRepository
from ..repositories.filters import QueryPlan, compile_query, matches, paginate
from ..repositories.interface import (
    EventfulRepository, Filter, Listener, LogicalOperator, QueryOptions, SortOrder, Unsubscribe
)

logger = logging.getLogger(__name__)

EMULATOR_HOST_VARIABLE = "FIRESTORE_EMULATOR_HOST"


class FirestoreConnection:
    """Lazily created Firestore clients for one project"""

    def __init__(self, properties: Optional[FirestoreConnectionProperties] = None,
                 client: Any = None, listen_client: Any = None):
        self.properties = (properties or FirestoreConnectionProperties.from_environment()).validate()
        self._client = client
        self._listen_client = listen_client
        self._lock = asyncio.Lock()

    @property
    def client(self) -> Any:
        return self._client

    def is_connected(self) -> bool:
        return self._client is not None

    def _use_emulator(self) -> None:
        endpoint = self.properties.emulator_endpoint
        if endpoint:
            os.environ[EMULATOR_HOST_VARIABLE] = endpoint
            logger.debug(f"Using Firestore emulator at {endpoint}")

    async def connect(self) -> Any:
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                self._use_emulator()
                logger.info(f"Connecting to Firestore project {self.properties.project_id}")
                self._client = firestore.AsyncClient(project=self.properties.project_id)
        return self._client

    def listen_client(self) -> Any:
        """Sync client used only for snapshot listeners"""
        if self._listen_client is None:
            self._use_emulator()
            self._listen_client = firestore.Client(project=self.properties.project_id)
            logger.info("Firestore listener client created")
        return self._listen_client


def to_firestore_query(collection: Any, plan: QueryPlan) -> Any:
    """Apply a QueryPlan to a collection reference; returns the native query"""
    not_deleted = FieldFilter(DELETED, "!=", True)
    equals = [FieldFilter(name, "==", value) for name, value in plan.predicates]

    if not equals or plan.operator is LogicalOperator.NOR:
        query = collection.where(filter=not_deleted)
    elif plan.operator is LogicalOperator.AND:
        query = collection.where(filter=And(filters=[not_deleted, *equals]))
    else:
        query = collection.where(filter=And(filters=[not_deleted, Or(filters=equals)]))

    query = query.order_by(DELETED, direction=firestore.Query.DESCENDING)
    for name, order in plan.orders:
        direction = firestore.Query.ASCENDING if order is SortOrder.ASC else firestore.Query.DESCENDING
        query = query.order_by(name, direction=direction)

    if not evaluated_in_process(plan):
        if plan.offset:
            query = query.offset(plan.offset)
        if plan.limit is not None:
            query = query.limit(plan.limit)
    return query


def evaluated_in_process(plan: QueryPlan) -> bool:
    return plan.operator is LogicalOperator.NOR and not plan.is_empty


class FirestoreRepository(BaseRepository[EntityType], EventfulRepository[EntityType]):
    """
    Firestore implementation of the unified contract.

    Each create/update/remove is atomic on its own; batches are written with
    a WriteBatch. Sessions in QueryOptions are ignored.
    """

    driver_errors = (GoogleAPICallError,)

    def __init__(self, connection: FirestoreConnection, collection: str,
                 entity_class: Type[EntityType] = Entity):
        super().__init__(collection, entity_class)
        self.connection = connection
        self._logger.info(f"FirestoreRepository ready for collection {collection}")

    @property
    def _collection(self) -> Any:
        return self.connection.client.collection(self.collection)

    def get_database(self) -> Any:
        return self.connection.client

    def is_connected(self) -> bool:
        return self.connection.is_connected()

    async def _connect(self) -> None:
        await self.connection.connect()

    async def _load(self, entity_id: str, options: QueryOptions) -> Optional[Dict[str, Any]]:
        snapshot = await self._collection.document(entity_id).get()
        if not snapshot.exists:
            return None
        document = snapshot.to_dict()
        if document.get(DELETED) is True:
            return None
        return document

    async def _select(self, plan: QueryPlan, options: QueryOptions) -> List[Dict[str, Any]]:
        query = to_firestore_query(self._collection, plan)
        documents = [snapshot.to_dict() async for snapshot in query.stream()]
        if evaluated_in_process(plan):
            selected = [document for document in documents if matches(document, plan)]
            documents = paginate(selected, plan.offset, plan.limit)
        return documents

    async def _insert(self, document: Dict[str, Any], options: QueryOptions) -> None:
        try:
            await self._collection.document(document[ID]).create(document)
        except Conflict as error:
            # The id belongs to a soft-deleted record
            raise PersistenceError.duplicate(self.collection, document[ID]) from error

    async def _insert_many(self, documents: List[Dict[str, Any]], options: QueryOptions) -> None:
        batch = self.connection.client.batch()
        for document in documents:
            batch.create(self._collection.document(document[ID]), document)
        try:
            await batch.commit()
        except Conflict as error:
            raise PersistenceError(
                ErrorKind.DUPLICATE_RECORD,
                f"{self.collection} batch contains an id that already exists",
                error
            ) from error

    async def _write(self, current: Dict[str, Any], updated: Dict[str, Any],
                     options: QueryOptions) -> None:
        await self._collection.document(current[ID]).set(updated)

    async def _erase(self, current: Dict[str, Any], options: QueryOptions) -> None:
        await self._collection.document(current[ID]).delete()

    # Live queries
    def _notify(self, listener: Callable[..., Any], *args) -> None:
        try:
            listener(*args)
        except Exception as error:
            self._logger.error(f"Firestore listener for {self.collection} failed: {error}")

    async def add_listener(self, listener: Listener, filter: Optional[Filter] = None,
                           options: Optional[QueryOptions] = None) -> Unsubscribe:
        plan = compile_query(filter, options, self._aliases)
        in_process = evaluated_in_process(plan)
        query = to_firestore_query(self.connection.listen_client().collection(self.collection), plan)

        def on_snapshot(snapshots, changes, read_time):
            for change in changes:
                document = change.document.to_dict()
                if in_process and not matches(document, plan):
                    continue
                change_type = change.type.name.lower()
                self._logger.debug(f"Firestore listener: {self.collection}, change: {change_type}")
                self._notify(listener, self._hydrate(document), change_type)

        watch = query.on_snapshot(on_snapshot)
        self._logger.info(f"Listening to {self.collection}")
        return watch.unsubscribe

    async def add_listener_by_id(self, listener: Listener, entity_id: str) -> Unsubscribe:
        found = await self.find_by_id(entity_id)
        found.or_else_raise(PersistenceError.not_found(self.collection, entity_id))
        reference = self.connection.listen_client().collection(self.collection).document(entity_id)

        def on_snapshot(snapshots, changes, read_time):
            for snapshot in snapshots:
                if snapshot.exists:
                    self._notify(listener, self._hydrate(snapshot.to_dict()))

        watch = reference.on_snapshot(on_snapshot)
        self._logger.info(f"Listening to {self.collection} record {entity_id}")
        return watch.unsubscribe


# Export main components
__all__ = [
    "FirestoreConnection", "FirestoreRepository", "to_firestore_query", "evaluated_in_process"
]
