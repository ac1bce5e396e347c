"""
Utility functions and classes for kiln.
"""
from .exceptions import (
    ConfigError,
    FlowError,
    FlowExecutionError,
    InvalidPathError,
    KilnError,
    KilnWarning,
    MissingPathWarning,
    StoreError,
    StoreWriteError,
    TransformError,
)

__all__ = [
    "KilnError",
    "ConfigError",
    "FlowError",
    "FlowExecutionError",
    "InvalidPathError",
    "TransformError",
    "StoreError",
    "StoreWriteError",
    "KilnWarning",
    "MissingPathWarning",
]
