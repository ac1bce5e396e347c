"""
Flow factory: normalizes flow specs and hands out flow ids.

Every Flow gets a unique, sequential id from the factory that built it. Ids
are assigned once, at construction, and never change; a Store keys
artifacts by them. Keeping the sequence on the factory (rather than on the
Flow class) lets tests and embedding applications start from a known id.
"""
import itertools
from pathlib import Path
from typing import Any, Dict, Optional, Union

from kiln.messages import get_logger
from kiln.utility.exceptions import ConfigError

from ..configs.settings import KilnSettings
from ..home import Home
from ..store import Store, StoreConfig
from ..transform import TransformRegistry
from ..transform import registry as default_registry
from .config import FlowConfig

DEFAULT_HOME_TYPE = "local"


class FlowFactory:
    """
    Builds Flow instances from raw flow specs.

    Args:
        settings: Process-wide defaults (minify, watch, encoding, root)
        store: Store every flow saves to (default: a MemoryStore)
        registry: Transform registry used to resolve transform names
        watch_backend: Watch backend passed on to every flow
        start_id: First id handed out
    """

    def __init__(
        self,
        settings: Optional[KilnSettings] = None,
        store: Optional[Store] = None,
        registry: Optional[TransformRegistry] = None,
        watch_backend=None,
        start_id: int = 0,
    ):
        self.settings = settings or KilnSettings()
        self.store = store or Store.create("kiln", StoreConfig.create(None))
        self.registry = registry or default_registry
        self.watch_backend = watch_backend
        self._ids = itertools.count(start_id)
        self.logger = get_logger("kiln.factory")

    def next_id(self) -> int:
        return next(self._ids)

    def create(
        self,
        raw: Union[Dict[str, Any], FlowConfig],
        flow_class: Optional[type] = None,
    ) -> "Flow":  # noqa: F821
        """
        Create a Flow from a raw spec.

        Raises:
            ConfigError: If the spec is invalid
        """
        from .flow import Flow  # Avoid circular import

        FlowCls = flow_class or Flow

        config = FlowConfig.normalize(raw, self.settings, self.registry)
        root = Path(self.settings.root)

        try:
            home = Home.create(DEFAULT_HOME_TYPE, config.display_name, config, root)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        flow = FlowCls(
            self.next_id(),
            config,
            home,
            self.store,
            registry=self.registry,
            watch_backend=self.watch_backend,
        )
        self.logger.debug(
            f"Created flow {flow.id} for route {config.route!r} "
            f"({len(config.preprocessors)} pre, "
            f"{len(config.postprocessors)} post)"
        )
        return flow
