"""
Transactions - scoped Mongo sessions

Only the Mongo backend offers multi-operation atomicity; Firestore and
local repositories make each individual write atomic and nothing more.
"""

from .unit_of_work import MongoUnitOfWork, TransactionScope

__all__ = ["MongoUnitOfWork", "TransactionScope"]
