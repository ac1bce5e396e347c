"""
Workspace manages kiln project discovery and configuration loading.

The workspace is responsible for:
1. Finding kiln.yml by walking up directories
2. Reading the workspace configuration
3. Expanding environment variables
4. Turning regex routes into compiled patterns
5. Preparing a WorkspaceConfig for the Coordinator

Example kiln.yml:
```yaml
name: shop
settings:
  minify: true
  encoding: utf-8
store:
  type: local
  path: public/assets
flows:
  - route: /assets/app.css
    type: css
    paths: styles
  - route:
      regex: ^/assets/vendor-.*\\.js$
    type: js
    paths: [vendor/jquery.js, vendor/underscore.js]
```
"""
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from kiln.messages import get_logger
from kiln.utility.exceptions import ConfigError

from .configs.settings import KilnSettings

WORKSPACE_FILE = "kiln.yml"


class WorkspaceConfig(BaseModel):
    """Configuration model for a kiln workspace."""

    name: str = Field(default="kiln", description="Project name")
    settings: KilnSettings = Field(
        default_factory=KilnSettings, description="Process-wide flow defaults"
    )
    store: Optional[Union[str, Dict[str, Any]]] = Field(
        default=None, description="Store every flow saves to"
    )
    options: Dict[str, Any] = Field(
        default_factory=dict, description="Coordinator options"
    )
    flows: List[Dict[str, Any]] = Field(..., description="Flow specs")

    @field_validator("flows")
    @classmethod
    def validate_flows_not_empty(cls, v):
        """Validate flows section is not empty."""
        if not v:
            raise ValueError("At least one flow must be configured")
        return v

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkspaceConfig":
        """Create configuration from dictionary."""
        try:
            return cls(**data)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise ConfigError(f"Invalid workspace configuration: {messages}") from e


class Workspace:
    """
    Workspace represents a kiln project and manages configuration loading.
    """

    def __init__(self, kiln_yml: Path, name: Optional[str] = None):
        self.kiln_yml = Path(kiln_yml)
        self.root = self.kiln_yml.parent
        self.name = name or self.root.name
        self.config: Dict[str, Any] = {}
        self.logger = get_logger("kiln.workspace")

    @staticmethod
    def find(start_path: Optional[Path] = None) -> "Workspace":
        """
        Find kiln.yml by walking up directories from start_path.

        Raises:
            ConfigError: If kiln.yml is not found
        """
        if start_path is None:
            start_path = Path.cwd()

        current = Path(start_path).resolve()
        searched_paths = []

        while True:
            project_file = current / WORKSPACE_FILE
            searched_paths.append(str(project_file))
            if project_file.exists():
                return Workspace.from_path(project_file)
            if current == current.parent:
                break
            current = current.parent

        error_msg = f"""
No {WORKSPACE_FILE} found in current path: {Path(start_path)}

Searched locations:
{chr(10).join(f"  - {path}" for path in searched_paths)}

To get started, run:
  kiln init <project_name>
"""
        raise ConfigError(error_msg)

    @classmethod
    def from_path(cls, kiln_yml: Path) -> "Workspace":
        """Create a Workspace from a kiln.yml path."""
        kiln_yml = Path(kiln_yml)
        if not kiln_yml.exists():
            raise ConfigError(f"Workspace file not found: {kiln_yml}")
        data = cls._load_yaml(kiln_yml)
        return cls(kiln_yml, data.get("name"))

    @staticmethod
    def _load_yaml(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")
        return data

    def _read_workspace_config(self) -> None:
        """Read workspace configuration from kiln.yml."""
        self.config = self._expand_env_vars(self._load_yaml(self.kiln_yml))
        self.logger.debug(f"Raw workspace config: {self.config}")

    def _expand_env_vars(self, data: Any) -> Any:
        """
        Recursively expand environment variables in configuration data.

        Supports patterns like ${VAR_NAME} and ${VAR_NAME:-default_value}

        Raises:
            ConfigError: If environment variable is not set and no default provided
        """
        if isinstance(data, str):
            pattern = r"\$\{([^:}]+)(?::-([^}]*))?\}"

            def replace_env_var(match):
                var_name = match.group(1)
                has_default = match.group(2) is not None
                default_value = match.group(2) if has_default else ""

                env_value = os.getenv(var_name)
                if env_value is not None:
                    return env_value
                elif has_default:
                    return default_value
                else:
                    raise ConfigError(
                        f"Environment variable '{var_name}' is not set and no default"
                    )

            return re.sub(pattern, replace_env_var, data)

        elif isinstance(data, dict):
            return {key: self._expand_env_vars(value) for key, value in data.items()}

        elif isinstance(data, list):
            return [self._expand_env_vars(item) for item in data]

        else:
            return data

    def _prepare_flow(self, flow: Any, index: int) -> Dict[str, Any]:
        """Compile `route: {regex: ...}` into a pattern."""
        if not isinstance(flow, dict):
            raise ConfigError(f"Flow #{index + 1} must be a mapping")
        flow = dict(flow)
        route = flow.get("route")
        if isinstance(route, dict) and "regex" in route:
            try:
                flow["route"] = re.compile(route["regex"])
            except re.error as e:
                raise ConfigError(
                    f"Flow #{index + 1} has an invalid route regex: {e}"
                ) from e
        return flow

    def _resolve_root(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        settings = dict(settings or {})
        root = Path(settings.get("root") or ".")
        if not root.is_absolute():
            root = self.root / root
        settings["root"] = root
        return settings

    def _resolve_store(self, store: Any) -> Any:
        """Make a local store path relative to the workspace."""
        if isinstance(store, str):
            store = {"type": "local", "path": store}
        if isinstance(store, dict) and store.get("type") == "local":
            path = Path(store.get("path") or "")
            if store.get("path") and not path.is_absolute():
                store = {**store, "path": str(self.root / path)}
        return store

    def prepare(self) -> WorkspaceConfig:
        """
        Prepare workspace configuration for Coordinator execution.

        Raises:
            ConfigError: If configuration cannot be loaded
        """
        self._read_workspace_config()

        data = dict(self.config)
        data.setdefault("name", self.name)
        data["settings"] = self._resolve_root(data.get("settings"))
        data["store"] = self._resolve_store(data.get("store"))
        flows = data.get("flows") or []
        if not isinstance(flows, list):
            raise ConfigError("'flows' must be a list of flow configurations")
        data["flows"] = [self._prepare_flow(f, i) for i, f in enumerate(flows)]

        config = WorkspaceConfig.from_dict(data)

        self.logger.info(
            f"Prepared workspace '{config.name}' with {len(config.flows)} flows "
            f"from {self.kiln_yml}"
        )
        return config
