"""
Core module - configuration, shared types, errors.

Components:
- config: Settings management via pydantic-settings
- types: Agent and Memory records, result shapes
- errors: Error taxonomy surfaced to callers
- logging: Structured logging setup
"""

from memvolve.core.config import Settings
from memvolve.core.types import Agent, Memory

__all__ = ["Settings", "Agent", "Memory"]
