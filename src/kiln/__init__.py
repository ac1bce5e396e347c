"""
An asset pipeline that collects, compiles, bundles and watches source files.
"""
from .core import (
    Artifact,
    Coordinator,
    FileRecord,
    Flow,
    FlowConfig,
    FlowFactory,
    KilnSettings,
    Store,
    StoreConfig,
)

# Homes, stores and built-in transforms register themselves on import, so
# they are available as soon as kiln is imported.
from .homes import LocalHome  # noqa: F401
from .stores import LocalStore, LocalStoreConfig  # noqa: F401
from .stores import MemoryStore, MemoryStoreConfig  # noqa: F401
from . import transforms  # noqa: F401, E402

__all__ = [
    "Artifact",
    "Coordinator",
    "FileRecord",
    "Flow",
    "FlowConfig",
    "FlowFactory",
    "KilnSettings",
    "Store",
    "StoreConfig",
]
