"""
Collection of homes.
"""
from .local import LocalHome

__all__ = ["LocalHome"]
