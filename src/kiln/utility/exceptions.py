"""
Custom exceptions for kiln - clear, actionable error handling.

kiln uses a hierarchical exception system. Configuration problems fail fast
when a flow is built; problems found while a flow runs fail that run only,
leaving every other flow (and the process) untouched.

Exception Hierarchy:
    KilnError (base)
    ├── ConfigError - Invalid flow or workspace configuration
    ├── FlowError
    │   ├── FlowExecutionError - Unexpected failure during a flow run
    │   ├── InvalidPathError - A path is neither a regular file nor a directory
    │   └── TransformError - A per-file or per-bundle transform failed
    └── StoreError
        └── StoreWriteError - Errors writing an artifact to a store

Warning Hierarchy:
    KilnWarning (UserWarning)
    └── MissingPathWarning - A configured path does not exist (path is skipped)

Usage Guidelines:
    - Always use exception chaining (`raise SpecificError(...) from e`) when
      wrapping exceptions to preserve the original traceback for debugging.
    - Nothing in kiln retries automatically; a failed run stays failed until
      the next build or the next watched change.
"""
from typing import Optional


class KilnError(Exception):
    """Base exception for all kiln errors."""

    pass


class ConfigError(KilnError):
    """Raised when there's an error in configuration."""

    pass


class FlowError(KilnError):
    """Base exception for flow-related errors."""

    pass


class FlowExecutionError(FlowError):
    """Error during flow execution."""

    pass


class InvalidPathError(FlowError):
    """A configured path resolved to something other than a file or directory."""

    def __init__(self, path: str):
        super().__init__(f'path "{path}" is invalid! Must be a file or directory')
        self.path = path


class TransformError(FlowError):
    """A transform failed while processing a file or a bundle."""

    def __init__(self, transform: str, message: str, path: Optional[str] = None):
        target = f" on {path}" if path else " on bundle"
        super().__init__(f"Transform '{transform}' failed{target}: {message}")
        self.transform = transform
        self.path = path


class StoreError(KilnError):
    """Base exception for store-related errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.context = kwargs


class StoreWriteError(StoreError):
    """Error writing an artifact to a store."""

    pass


class KilnWarning(UserWarning):
    """Base warning for recoverable kiln conditions."""

    pass


class MissingPathWarning(KilnWarning):
    """A configured path does not exist and was skipped."""

    pass
