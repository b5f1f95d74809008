"""
Persistence Backends - Storage Implementation Layer

💾 Pluggable Storage Implementations:
Concrete implementations of the repository contract.

Available Backends:
- MongoRepository: MongoDB through Motor, with transactions
- FirestoreRepository: Google Cloud Firestore, with live listeners
  (requires the ``firestore`` extra)
- LocalStorageRepository: JSON blobs in a local directory
"""

from .mongo import MongoConnection, MongoRepository
from .local import LocalStorage, LocalStorageConnection, LocalStorageRepository

try:
    from .firestore import FirestoreConnection, FirestoreRepository
    FIRESTORE_AVAILABLE = True
except ImportError:
    FIRESTORE_AVAILABLE = False

__all__ = [
    "MongoConnection", "MongoRepository",
    "LocalStorage", "LocalStorageConnection", "LocalStorageRepository",
    "FIRESTORE_AVAILABLE"
]

if FIRESTORE_AVAILABLE:
    __all__ += ["FirestoreConnection", "FirestoreRepository"]
