"""
Base Home class - where a flow's source files live.

A Home knows how to turn a flow's configured paths into an ordered set of
FileRecords, and which filesystem paths should be watched for changes.
Collection always starts from an empty set, so a Home can be asked to
collect again and again without carrying anything over between runs.

Example:
    ```python
    class MyHome(Home, home_type="my_type"):
        def collect(self) -> Dict[Path, FileRecord]:
            ...

        def watch_paths(self) -> List[Path]:
            ...
    ```
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Type

from kiln.messages import get_logger

from .records import FileRecord

if TYPE_CHECKING:
    from .flow.config import FlowConfig


class Home(ABC):
    """
    Base class for all homes.

    Homes register themselves by type so they can be created from
    configuration with `Home.create()`.
    """

    _registry: Dict[str, Type["Home"]] = {}

    def __init_subclass__(cls, home_type: str = None):
        super().__init_subclass__()
        if home_type:
            cls._registry[home_type] = cls

    @classmethod
    def create(
        cls, home_type: str, name: str, config: "FlowConfig", root: Path
    ) -> "Home":
        """
        Create a Home instance using the registry pattern.

        Raises:
            ValueError: If home type is not registered
        """
        if home_type not in cls._registry:
            raise ValueError(f"Unknown home type: {home_type}")
        return cls._registry[home_type](name, config, root)

    def __init__(self, name: str, config: "FlowConfig", root: Optional[Path] = None):
        self.name = name
        self.config = config
        self.root = Path(root) if root is not None else Path.cwd()
        self.logger = get_logger(f"kiln.home.{self.__class__.__name__}")

    @property
    def base(self) -> Path:
        """Directory every configured path is resolved against."""
        if self.config.base:
            return self.root / self.config.base
        return self.root

    @abstractmethod
    def collect(self) -> Dict[Path, FileRecord]:
        """
        Collect the flow's source files.

        Returns:
            Mapping of resolved path to FileRecord, in traversal order
        """
        pass

    @abstractmethod
    def watch_paths(self) -> List[Path]:
        """Resolve the configured paths that should be watched for changes."""
        pass
