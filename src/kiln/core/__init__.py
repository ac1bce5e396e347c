"""
Core components of the kiln asset pipeline.
"""
from .configs import KilnSettings
from .coordinator import Coordinator
from .flow import Flow, FlowConfig, FlowFactory
from .home import Home
from .records import Artifact, FileRecord
from .store import Store, StoreConfig
from .transform import BuiltIn, Custom, Transform, TransformRegistry, registry
from .watch import WatchController, WatchdogBackend
from .workspace import Workspace, WorkspaceConfig

__all__ = [
    "Artifact",
    "BuiltIn",
    "Coordinator",
    "Custom",
    "FileRecord",
    "Flow",
    "FlowConfig",
    "FlowFactory",
    "Home",
    "KilnSettings",
    "Store",
    "StoreConfig",
    "Transform",
    "TransformRegistry",
    "WatchController",
    "WatchdogBackend",
    "Workspace",
    "WorkspaceConfig",
    "registry",
]
