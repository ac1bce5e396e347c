"""
Base Store class and configuration for all artifact stores.

A Store is where finished bundles go. A flow hands its Store one Artifact per
run; what happens next (keeping it in memory, writing it to disk) is the
store's business. Stores report success by returning and failure by raising;
the flow does not retry.

Example:
    ```python
    class MyStore(Store, store_type="my_type"):
        async def _save(self, artifact: Artifact) -> None:
            ...
    ```
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, Field

from kiln.messages import get_logger
from kiln.utility.exceptions import StoreError, StoreWriteError

from .records import Artifact

DEFAULT_STORE_TYPE = "memory"


class Store(ABC):
    """
    Base class for all artifact stores.

    Stores register themselves by type and are built from configuration with
    `Store.create()`.
    """

    _registry: Dict[str, Type["Store"]] = {}

    def __init_subclass__(cls, store_type: str = None):
        super().__init_subclass__()
        if store_type:
            cls._registry[store_type] = cls

    @classmethod
    def create(cls, name: str, config: "StoreConfig") -> "Store":
        """
        Create a Store instance using the registry pattern.

        Raises:
            ValueError: If store type is not registered
        """
        store_type = config.type
        if store_type not in cls._registry:
            raise ValueError(f"Unknown store type: {store_type}")
        return cls._registry[store_type](name, config)

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None):
        self.name = name
        self.options = options or {}
        self.saved = 0
        self.total_bytes = 0
        self.logger = get_logger(f"kiln.store.{self.__class__.__name__}")

    async def save(self, artifact: Artifact) -> None:
        """
        Persist an artifact.

        Raises:
            StoreError: If the artifact could not be persisted
        """
        if artifact is None:
            raise StoreError("Cannot save None artifact")

        start = asyncio.get_running_loop().time()
        try:
            await self._save(artifact)
        except StoreError:
            raise
        except Exception as e:
            self.logger.error(f"Error saving flow {artifact.id} to {self.name}: {e}")
            raise StoreWriteError(
                f"Failed to save flow {artifact.id}: {e}", flow_id=artifact.id
            ) from e

        self.saved += 1
        self.total_bytes += len(artifact)
        duration = asyncio.get_running_loop().time() - start
        self.logger.debug(
            f"Saved flow {artifact.id} ({len(artifact):,} bytes) in {duration:.3f}s"
        )

    @abstractmethod
    async def _save(self, artifact: Artifact) -> None:
        """Persist one artifact to the underlying destination."""
        pass

    async def close(self) -> None:
        """Release any resources held by the store."""
        pass


class StoreConfig(ABC):
    """Base configuration for a store, with a registry of config types."""

    _registry: Dict[str, Type["StoreConfig"]] = {}

    def __init_subclass__(cls, config_type: str = None):
        super().__init_subclass__()
        if config_type:
            cls._registry[config_type] = cls

    @classmethod
    def create(cls, data: Union[str, Dict, None]) -> "StoreConfig":
        """
        Create a StoreConfig instance using the registry pattern.

        A bare string is treated as the path of a local store.

        Raises:
            ValueError: If config type is not registered or data is invalid
        """
        if data is None:
            config_type = DEFAULT_STORE_TYPE
            config_data = {"type": config_type}
        elif isinstance(data, str):
            config_type = "local"
            config_data = {"type": config_type, "path": data}
        elif isinstance(data, dict):
            config_type = data.get("type", DEFAULT_STORE_TYPE)
            config_data = {**data, "type": config_type}
        else:
            raise ValueError(f"Invalid config data type: {type(data)}")

        if config_type not in cls._registry:
            raise ValueError(f"Unknown store config type: {config_type}")

        return cls._registry[config_type](**config_data)


class BaseStoreConfig(BaseModel):
    """Fields shared by every store configuration."""

    type: str = Field(default=DEFAULT_STORE_TYPE, description="Type of store")
    options: Dict[str, Any] = Field(
        default_factory=dict, description="Additional store-specific options"
    )
