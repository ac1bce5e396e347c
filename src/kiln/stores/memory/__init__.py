from .store import MemoryStore, MemoryStoreConfig

__all__ = ["MemoryStore", "MemoryStoreConfig"]
