"""
Persistence module: entity store implementations and change subscriptions.
"""

from .database import SQLiteEntityStore
from .memory_store import InMemoryEntityStore
from .subscriptions import StoreSubscription, SubscriptionRegistry
from .factory import EntityStoreFactory

__all__ = [
    "SQLiteEntityStore",
    "InMemoryEntityStore",
    "StoreSubscription",
    "SubscriptionRegistry",
    "EntityStoreFactory",
]
