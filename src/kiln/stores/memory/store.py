"""
In-memory store: keeps the latest artifact of every flow.
"""
from typing import Dict, Optional

from pydantic import Field

from kiln.core.records import Artifact
from kiln.core.store import BaseStoreConfig, Store, StoreConfig


class MemoryStore(Store, store_type="memory"):
    """
    Keeps the most recent artifact per flow id.

    Useful for serving bundles straight from the process that builds them,
    and as the default store when a workspace doesn't configure one.
    """

    def __init__(self, name: str, config: Optional["MemoryStoreConfig"] = None):
        config = config or MemoryStoreConfig()
        super().__init__(name, config.options)
        self.config = config
        self.artifacts: Dict[int, Artifact] = {}
        self.history = config.history
        self.saves: list = []

    async def _save(self, artifact: Artifact) -> None:
        self.artifacts[artifact.id] = artifact
        if self.history:
            self.saves.append(artifact)

    def get(self, flow_id: int) -> Optional[Artifact]:
        """Get the latest artifact saved for a flow."""
        return self.artifacts.get(flow_id)

    async def close(self) -> None:
        self.artifacts.clear()
        self.saves.clear()


class MemoryStoreConfig(StoreConfig, BaseStoreConfig, config_type="memory"):
    """Configuration for a MemoryStore."""

    type: str = Field(default="memory", description="Type of store")
    history: bool = Field(
        default=False, description="Keep every saved artifact, not just the latest"
    )
