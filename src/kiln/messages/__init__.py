"""
Message utilities for kiln.

- Logger: Human-readable output formatting with colors
- Summary: End-of-build summary formatting
"""
from kiln.messages.logger import KilnLogger, get_logger, set_verbose
from kiln.messages.summary import Summary  # noqa: E402

__all__ = ["KilnLogger", "get_logger", "set_verbose", "Summary"]
