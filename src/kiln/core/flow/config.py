"""
Flow configuration model and normalizer.

A flow spec is what a user writes: a route, a type, some paths and a few
options. `FlowConfig.normalize()` turns that spec into a validated, frozen
FlowConfig with every default filled in and every transform reference
resolved, so nothing about a flow's configuration is decided at run time.

Simple:
```yaml
route: /assets/app.css
type: css
paths: styles
```

Advanced:
```yaml
route: /assets/templates.js
type: jst
base: client
paths:
  - templates
  - shared/templates/layout.jst
jst_namespace: Templates
minify: true
postprocessors:
  - banner
```
"""
import codecs
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kiln.utility.exceptions import ConfigError

from ..configs.settings import KilnSettings
from ..transform import POSTPROCESSOR, PREPROCESSOR, Transform, TransformRegistry

# Translate flow types to the MIME type of the bundle they produce
MIME_TYPES = {
    "css": "text/css",
    "js": "application/javascript",
    "jst": "application/javascript",
}

# Sub-language extensions collected alongside a flow's own type
EXTRA_EXTENSIONS = {
    "css": ["sass", "scss", "less", "styl"],
    "js": ["coffee"],
}

DEFAULT_JST_NAMESPACE = "JST"
DEFAULT_JST_LANG = "string"


def check_route(v: Any) -> Union[str, "re.Pattern"]:
    if not isinstance(v, (str, re.Pattern)):
        raise ValueError("'route' must be a string or regex")
    return v


def check_type(v: Any) -> str:
    if not isinstance(v, str):
        raise ValueError("'type' must be a string")
    if v not in MIME_TYPES:
        raise ValueError(f'invalid type: "{v}"')
    return v


def check_paths(v: Any) -> List[str]:
    if isinstance(v, (str, Path)):
        v = [v]
    if not isinstance(v, (list, tuple)) or not all(
        isinstance(p, (str, Path)) for p in v
    ):
        raise ValueError("'paths' must be a string or array of strings")
    if not v:
        raise ValueError("'paths' must not be empty")
    return [str(p) for p in v]


class FlowConfig(BaseModel):
    """
    Validated, normalized configuration of one flow.

    Build these with `FlowConfig.normalize()` so defaults and transform
    resolution are applied; constructing one directly only validates.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    route: Any = Field(..., description="URL or pattern the bundle is served under")
    type: str = Field(..., description="Flow type: css, js or jst")
    paths: List[str] = Field(..., description="Files and directories to collect")
    name: Optional[str] = Field(default=None, description="Display name")
    base: Optional[str] = Field(
        default=None, description="Directory paths are relative to (under root)"
    )
    encoding: str = Field(default="utf-8", description="Source and bundle encoding")
    extensions: List[str] = Field(
        default_factory=list, description="Extensions collected from directories"
    )
    preprocessors: List[Transform] = Field(
        default_factory=list, description="Per-file transforms, in order"
    )
    postprocessors: List[Transform] = Field(
        default_factory=list, description="Per-bundle transforms, in order"
    )
    watch: bool = Field(default=False, description="Reflow when sources change")
    minify: bool = Field(default=False, description="Minify the bundle")
    jst_namespace: Optional[str] = Field(
        default=None, description="Global object templates are attached to"
    )
    jst_lang: Optional[Union[str, Callable[..., Any]]] = Field(
        default=None,
        description="Template language for jst flows: a built-in name or a function",
    )
    options: Dict[str, Any] = Field(
        default_factory=dict, description="Options passed through to transforms"
    )

    @field_validator("route", mode="before")
    @classmethod
    def validate_route(cls, v):
        return check_route(v)

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, v):
        return check_type(v)

    @field_validator("paths", mode="before")
    @classmethod
    def validate_paths(cls, v):
        return check_paths(v)

    @field_validator("encoding")
    @classmethod
    def validate_encoding(cls, v):
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown encoding: '{v}'")
        return v

    @field_validator("extensions", mode="before")
    @classmethod
    def validate_extensions(cls, v):
        if isinstance(v, str):
            v = [v]
        return [str(ext).lstrip(".") for ext in v]

    @property
    def mime_type(self) -> str:
        """MIME type of the produced bundle, determined by the flow type."""
        return MIME_TYPES[self.type]

    @property
    def display_name(self) -> str:
        """Name used in logs and output file names."""
        if self.name:
            return self.name
        if isinstance(self.route, str):
            return self.route.strip("/").split("/")[-1] or self.type
        return self.route.pattern

    @classmethod
    def normalize(
        cls,
        raw: Union[Dict[str, Any], "FlowConfig"],
        settings: Optional[KilnSettings] = None,
        registry: Optional[TransformRegistry] = None,
    ) -> "FlowConfig":
        """
        Validate a raw flow spec and fill in every default.

        - minify, watch and encoding fall back to process-wide settings
        - extensions default to the flow type, plus the type's sub-languages
        - jst flows get their template language prepended to preprocessors
        - minify appends the minifier to postprocessors
        - transform names are resolved against the registry

        Raises:
            ConfigError: If any part of the spec is invalid
        """
        if isinstance(raw, FlowConfig):
            return raw
        if not isinstance(raw, dict):
            raise ConfigError(
                f"Flow configuration must be a mapping, got {type(raw).__name__}"
            )

        if settings is None:
            from ..configs.settings import settings as default_settings

            settings = default_settings
        if registry is None:
            from ..transform import registry as default_registry

            registry = default_registry

        data = settings.apply_flow_settings(raw)

        try:
            check_route(data.get("route"))
            flow_type = check_type(data.get("type"))
            data["paths"] = check_paths(data.get("paths"))
        except ValueError as e:
            raise ConfigError(str(e)) from e

        extensions = data.get("extensions") or [flow_type]
        if isinstance(extensions, str):
            extensions = [extensions]
        extensions = [str(ext).lstrip(".") for ext in extensions]
        for extension in EXTRA_EXTENSIONS.get(flow_type, []):
            if extension not in extensions:
                extensions.append(extension)
        data["extensions"] = extensions

        preprocessors = list(data.get("preprocessors") or [])
        postprocessors = list(data.get("postprocessors") or [])

        if flow_type == "jst":
            data["jst_namespace"] = data.get("jst_namespace") or DEFAULT_JST_NAMESPACE
            data["jst_lang"] = data.get("jst_lang") or DEFAULT_JST_LANG
            preprocessors.insert(0, data["jst_lang"])

        if data.get("minify"):
            postprocessors.append("minify")

        data["preprocessors"] = [
            registry.resolve(PREPROCESSOR, p) for p in preprocessors
        ]
        data["postprocessors"] = [
            registry.resolve(POSTPROCESSOR, p) for p in postprocessors
        ]

        unknown = set(data) - set(cls.model_fields)
        if unknown:
            raise ConfigError(
                f"Unknown flow configuration keys: {', '.join(sorted(unknown))}"
            )

        try:
            return cls(**data)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise ConfigError(f"Invalid flow configuration: {messages}") from e
