"""
Shared fixtures for polystore tests

🧪 Backends under test:
- local storage runs against ``tmp_path``
- Mongo runs against mongomock behind a Motor-shaped async wrapper
"""

from typing import Any, Callable, Dict, List, Optional

import mongomock
import pytest

from polystore.entities import Entity
from polystore.infrastructure.configuration import (
    LocalStorageConnectionProperties, MongoConnectionProperties
)
from polystore.persistence.backends.local import LocalStorageConnection, LocalStorageRepository
from polystore.persistence.backends.mongo import MongoConnection, MongoRepository


class User(Entity):
    """Entity used across the repository tests"""
    name: Optional[str] = None
    email: Optional[str] = None


class MockSession:
    """
    Records the transaction calls made on a client session.

    Writes made inside a transaction keep an undo entry; abort replays them
    in reverse so nothing written in the transaction survives it.
    """

    def __init__(self, fail_abort: bool = False):
        self.fail_abort = fail_abort
        self.calls: List[str] = []
        self.ended = False
        self.in_transaction = False
        self._undo: List[Callable[[], Any]] = []

    def record_undo(self, undo: Callable[[], Any]):
        if self.in_transaction:
            self._undo.append(undo)

    def start_transaction(self):
        self.calls.append("start")
        self.in_transaction = True

    async def commit_transaction(self):
        self.calls.append("commit")
        self.in_transaction = False
        self._undo.clear()

    async def abort_transaction(self):
        self.calls.append("abort")
        self.in_transaction = False
        while self._undo:
            self._undo.pop()()
        if self.fail_abort:
            raise RuntimeError("abort failed")

    async def end_session(self):
        self.calls.append("end")
        self.ended = True


class MockCursor:
    def __init__(self, cursor):
        self._cursor = cursor

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        documents = list(self._cursor)
        return documents if length is None else documents[:length]


class MockCollection:
    """Async facade over a mongomock collection; remembers sessions seen"""

    def __init__(self, collection, client: 'MockMotorClient'):
        self._collection = collection
        self._client = client

    def _seen(self, session):
        self._client.sessions_seen.append(session)

    async def find_one(self, filter=None, *args, session=None, **kwargs):
        self._seen(session)
        return self._collection.find_one(filter, *args, **kwargs)

    def find(self, filter=None, *args, session=None, **kwargs):
        self._seen(session)
        return MockCursor(self._collection.find(filter, *args, **kwargs))

    def _restore(self, previous: Optional[Dict[str, Any]], key: Any) -> Callable[[], Any]:
        def undo():
            self._collection.delete_one({"_id": key})
            if previous is not None:
                self._collection.insert_one(previous)
        return undo

    async def insert_one(self, document, session=None):
        self._seen(session)
        result = self._collection.insert_one(document)
        if session is not None:
            session.record_undo(self._restore(None, result.inserted_id))
        return result

    async def insert_many(self, documents, ordered=True, session=None):
        self._seen(session)
        result = self._collection.insert_many(documents, ordered=ordered)
        if session is not None:
            for key in result.inserted_ids:
                session.record_undo(self._restore(None, key))
        return result

    async def replace_one(self, filter, replacement, session=None):
        self._seen(session)
        previous = self._collection.find_one(filter)
        result = self._collection.replace_one(filter, replacement)
        if session is not None and previous is not None:
            session.record_undo(self._restore(previous, previous["_id"]))
        return result

    async def delete_one(self, filter, session=None):
        self._seen(session)
        previous = self._collection.find_one(filter)
        result = self._collection.delete_one(filter)
        if session is not None and previous is not None:
            session.record_undo(self._restore(previous, previous["_id"]))
        return result

    def raw(self):
        return self._collection


class MockDatabase:
    def __init__(self, database, client: 'MockMotorClient'):
        self._database = database
        self._client = client

    def __getitem__(self, name: str) -> MockCollection:
        return MockCollection(self._database[name], self._client)


class MockMotorClient:
    """Enough of AsyncIOMotorClient for MongoRepository"""

    def __init__(self, fail_abort: bool = False):
        self._client = mongomock.MongoClient()
        self.fail_abort = fail_abort
        self.sessions: List[MockSession] = []
        self.sessions_seen: List[Any] = []
        self.closed = False

    def __getitem__(self, name: str) -> MockDatabase:
        return MockDatabase(self._client[name], self)

    async def start_session(self) -> MockSession:
        session = MockSession(self.fail_abort)
        self.sessions.append(session)
        return session

    def close(self):
        self.closed = True


@pytest.fixture
def local_properties(tmp_path):
    return LocalStorageConnectionProperties(app_name="testapp", storage_path=str(tmp_path / "db"))


@pytest.fixture
def local_connection(local_properties):
    return LocalStorageConnection(local_properties)


@pytest.fixture
def local_users(local_connection):
    return LocalStorageRepository(local_connection, "Users", User)


@pytest.fixture
def mongo_client():
    return MockMotorClient()


@pytest.fixture
def mongo_properties():
    return MongoConnectionProperties(
        uri="mongodb://localhost:27017",
        database="polystore_test",
        app_name="testapp",
        entities={"users": User}
    )


@pytest.fixture
def mongo_connection(mongo_properties, mongo_client):
    return MongoConnection(mongo_properties, client=mongo_client)


@pytest.fixture
def mongo_users(mongo_connection):
    return MongoRepository(mongo_connection, "users")
