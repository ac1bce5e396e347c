"""
Process-wide settings for kiln.

Settings hold the defaults a flow falls back to when its own configuration
leaves a value unset: minification, watching, character encoding and the
project root every relative path is resolved against.
"""
import codecs
import os
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

_TRUTHY = ("true", "1", "yes", "on")


class KilnSettings(BaseModel):
    """
    Centralized defaults for kiln flows.

    A flow only consults these when its own config omits a value, so a
    workspace can switch minification on for every flow while a single flow
    still opts out with `minify: false`.
    """

    minify: bool = Field(default=False, description="Minify bundles by default")
    watch: bool = Field(default=False, description="Watch source paths by default")
    encoding: str = Field(
        default="utf-8", description="Encoding used to read sources and write bundles"
    )
    root: Path = Field(
        default_factory=Path.cwd,
        description="Project root that flow paths are resolved against",
    )

    @field_validator("encoding")
    @classmethod
    def validate_encoding(cls, v):
        """Validate the encoding is known to Python's codec registry."""
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown encoding: '{v}'")
        return v

    @field_validator("root", mode="before")
    @classmethod
    def validate_root(cls, v):
        if v is None or v == "":
            return Path.cwd()
        return Path(v)

    def get_flow_defaults(self) -> Dict[str, Any]:
        """Get configured defaults for flow configurations."""
        return {
            "minify": self.minify,
            "watch": self.watch,
            "encoding": self.encoding,
        }

    def apply_flow_settings(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """Apply defaults to a raw flow spec, preserving values that are set."""
        merged = dict(options)
        for key, value in self.get_flow_defaults().items():
            if merged.get(key) is None:
                merged[key] = value
        return merged

    @classmethod
    def load_from_env(cls) -> "KilnSettings":
        """Load settings from KILN_* environment variables."""
        data: Dict[str, Any] = {}
        if "KILN_MINIFY" in os.environ:
            data["minify"] = os.environ["KILN_MINIFY"].lower() in _TRUTHY
        if "KILN_WATCH" in os.environ:
            data["watch"] = os.environ["KILN_WATCH"].lower() in _TRUTHY
        if os.environ.get("KILN_ENCODING"):
            data["encoding"] = os.environ["KILN_ENCODING"]
        if os.environ.get("KILN_ROOT"):
            data["root"] = os.environ["KILN_ROOT"]
        return cls(**data)


# Global settings instance - can be customized
settings = KilnSettings()
