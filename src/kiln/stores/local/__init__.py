from .store import LocalStore, LocalStoreConfig

__all__ = ["LocalStore", "LocalStoreConfig"]
