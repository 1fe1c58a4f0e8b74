"""
Factory for entity store instances.
"""

from ..core.exceptions import ConfigurationError
from ..core.interfaces import EntityStore
from .database import SQLiteEntityStore
from .memory_store import InMemoryEntityStore


class EntityStoreFactory:
    """Factory for creating entity store instances."""
    
    @staticmethod
    def create_store(store_type: str, **kwargs) -> EntityStore:
        """Create an entity store based on type."""
        if store_type.lower() == "memory":
            return InMemoryEntityStore(**kwargs)
        elif store_type.lower() == "sqlite":
            return SQLiteEntityStore(**kwargs)
        else:
            raise ConfigurationError(f"Unsupported store type: {store_type}")
