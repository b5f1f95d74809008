"""
Local Backend - Key-Value Blob Storage

🗄️ Directory-Backed Local Storage:
LocalStorage keeps one JSON blob per storage key in a directory. A
collection lives under the key ``<app_name>_<collection lowercased>`` and
its blob maps ``"<id>:<deleted flag>"`` to the record:

    {
        "3f0c...:false": {"id": "3f0c...", "name": "Ada", "deleted": false, ...},
        "91ab...:true":  {"id": "91ab...", "name": "Bob", "deleted": true, ...}
    }

Queries are evaluated in-process. Each mutation reads the blob, changes it
and writes it back without yielding to the event loop, and the write goes
through a temporary file and ``os.replace``. File I/O is synchronous:
each call holds the event loop for one blob read and one blob write, a cost
that grows with the collection's size.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Type
from urllib.parse import quote
import asyncio
import json
import logging
import os

from ...entities.entity import DELETED, ID, Entity, EntityType
from ...infrastructure.configuration import LocalStorageConnectionProperties
from ..errors import PersistenceError
from ..repositories.base import BaseRepository
from ..repositories.filters import QueryPlan, evaluate
from ..repositories.interface import QueryOptions

logger = logging.getLogger(__name__)


def entry_key(entity_id: str, deleted: bool = False) -> str:
    return f"{entity_id}:{'true' if deleted else 'false'}"


class LocalStorage:
    """Minimal persistent key-value store of JSON objects"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _file(self, key: str) -> Path:
        return self.path / f"{quote(key, safe='')}.json"

    def get_item(self, key: str) -> Dict[str, Any]:
        file = self._file(key)
        if not file.exists():
            return {}
        with open(file, "r", encoding="utf-8") as f:
            return json.load(f)

    def set_item(self, key: str, value: Dict[str, Any]) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        file = self._file(key)
        temp = file.with_name(file.name + ".tmp")
        with open(temp, "w", encoding="utf-8") as f:
            json.dump(value, f)
        os.replace(temp, file)

    def remove_item(self, key: str) -> None:
        file = self._file(key)
        if file.exists():
            file.unlink()

    def clear(self) -> None:
        if not self.path.exists():
            return
        for file in self.path.glob("*.json"):
            file.unlink()


class LocalStorageConnection:
    """Holds the LocalStorage of one app; created on first use"""

    def __init__(self, properties: Optional[LocalStorageConnectionProperties] = None):
        self.properties = (properties or LocalStorageConnectionProperties.from_environment()).validate()
        self._storage: Optional[LocalStorage] = None
        self._lock = asyncio.Lock()

    @property
    def storage(self) -> Optional[LocalStorage]:
        return self._storage

    def is_connected(self) -> bool:
        return self._storage is not None

    async def connect(self) -> LocalStorage:
        if self._storage is not None:
            return self._storage
        async with self._lock:
            if self._storage is None:
                path = Path(self.properties.storage_path)
                path.mkdir(parents=True, exist_ok=True)
                self._storage = LocalStorage(path)
                logger.info(f"Local storage opened at {path}")
        return self._storage

    def storage_key(self, collection: str) -> str:
        return f"{self.properties.app_name}_{collection.lower()}"


class LocalStorageRepository(BaseRepository[EntityType]):
    """Local implementation of the unified contract; no transactions"""

    driver_errors = (OSError, ValueError)

    def __init__(self, connection: LocalStorageConnection, collection: str,
                 entity_class: Type[EntityType] = Entity):
        super().__init__(collection, entity_class)
        self.connection = connection
        self.storage_key = connection.storage_key(collection)

    def get_database(self) -> Optional[LocalStorage]:
        return self.connection.storage

    def is_connected(self) -> bool:
        return self.connection.is_connected()

    async def _connect(self) -> None:
        await self.connection.connect()

    def _read(self) -> Dict[str, Dict[str, Any]]:
        return self.connection.storage.get_item(self.storage_key)

    def _save(self, blob: Dict[str, Dict[str, Any]]) -> None:
        self.connection.storage.set_item(self.storage_key, blob)

    def _reject_taken(self, blob: Dict[str, Any], entity_id: str) -> None:
        # Ids of soft-deleted records stay reserved
        if entry_key(entity_id) in blob or entry_key(entity_id, True) in blob:
            raise PersistenceError.duplicate(self.collection, entity_id)

    async def _load(self, entity_id: str, options: QueryOptions) -> Optional[Dict[str, Any]]:
        document = self._read().get(entry_key(entity_id))
        if document is None or document.get(DELETED) is True:
            return None
        return document

    async def _select(self, plan: QueryPlan, options: QueryOptions) -> List[Dict[str, Any]]:
        return evaluate(self._read().values(), plan)

    async def _insert(self, document: Dict[str, Any], options: QueryOptions) -> None:
        blob = self._read()
        self._reject_taken(blob, document[ID])
        blob[entry_key(document[ID])] = document
        self._save(blob)

    async def _insert_many(self, documents: List[Dict[str, Any]], options: QueryOptions) -> None:
        blob = self._read()
        for document in documents:
            self._reject_taken(blob, document[ID])
        for document in documents:
            blob[entry_key(document[ID])] = document
        self._save(blob)

    async def _write(self, current: Dict[str, Any], updated: Dict[str, Any],
                     options: QueryOptions) -> None:
        blob = self._read()
        active = entry_key(current[ID])
        if active not in blob:
            raise PersistenceError.not_found(self.collection, current[ID])
        del blob[active]
        blob[entry_key(updated[ID], bool(updated.get(DELETED)))] = updated
        self._save(blob)

    async def _erase(self, current: Dict[str, Any], options: QueryOptions) -> None:
        blob = self._read()
        blob.pop(entry_key(current[ID]), None)
        self._save(blob)


__all__ = [
    "LocalStorage", "LocalStorageConnection", "LocalStorageRepository", "entry_key"
]
