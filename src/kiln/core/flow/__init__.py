"""
Flow module for asset pipeline orchestration.

This module provides:
- Flow: One configured asset pipeline
- FlowConfig: Validated flow configuration (and its normalizer)
- FlowFactory: Builds flows from raw specs and assigns their ids
"""

from .config import MIME_TYPES, FlowConfig
from .factory import FlowFactory
from .flow import LINE_TERMINATOR, Flow

__all__ = ["Flow", "FlowConfig", "FlowFactory", "MIME_TYPES", "LINE_TERMINATOR"]
