"""
Collection of artifact stores.
"""
from .local import LocalStore, LocalStoreConfig
from .memory import MemoryStore, MemoryStoreConfig

__all__ = [
    "LocalStore",
    "LocalStoreConfig",
    "MemoryStore",
    "MemoryStoreConfig",
]
