"""
Core module.

Exports:
- Model: pydantic base for dialogue data
- EventBus, Event, DialogueEvent: observer hooks
- RunnerConfig, configure_logging: configuration
- Error taxonomy
"""

from branchline.core.model import Model
from branchline.core.events import EventBus, Event, EventHandler, DialogueEvent
from branchline.core.config import RunnerConfig, configure_logging
from branchline.core.errors import (
    DialogueError,
    ValidationError,
    DialogueStructureError,
    DialogueUsageError,
    ActionHandlerNotFoundError,
)

__all__ = [
    # Data
    "Model",
    # Events
    "EventBus",
    "Event",
    "EventHandler",
    "DialogueEvent",
    # Config
    "RunnerConfig",
    "configure_logging",
    # Errors
    "DialogueError",
    "ValidationError",
    "DialogueStructureError",
    "DialogueUsageError",
    "ActionHandlerNotFoundError",
]
