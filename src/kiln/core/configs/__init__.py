"""
Configuration models shared across kiln.
"""
from .settings import KilnSettings, settings

__all__ = ["KilnSettings", "settings"]
