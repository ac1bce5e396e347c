"""
Built-in transforms.

Importing this package registers every built-in preprocessor and
postprocessor with the default transform registry.
"""
from . import compilers, minify, styles, templates  # noqa: F401

__all__ = ["compilers", "minify", "styles", "templates"]
