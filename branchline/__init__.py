"""
branchline - branching dialogue runner for games.

Walks a graph of dialogue nodes and player choices: gates choices on
flag conditions, runs flag and callback actions, interpolates display
text, and supports back/restart/jump and save/load of the session.

Usage:
    from branchline import DialogueRunner, MemoryFlagStore

    runner = DialogueRunner(flags=MemoryFlagStore())
    state = await runner.start(graph)
    state = await runner.choose(0)
"""

from branchline.core import (
    EventBus,
    Event,
    DialogueEvent,
    RunnerConfig,
    configure_logging,
    DialogueError,
    ValidationError,
    DialogueStructureError,
    DialogueUsageError,
    ActionHandlerNotFoundError,
)
from branchline.dialogue import (
    DialogueRunner,
    DialogueGraph,
    Node,
    Choice,
    ChoiceOption,
    Speaker,
    DialogueState,
    HistoryEntry,
    SerializedState,
    FlagStore,
    MemoryFlagStore,
    FlagScope,
    resolve_flag,
    I18nAdapter,
    create_i18n_adapter,
    validate_dialogue,
    DialogueLoader,
)

__version__ = "0.1.0"

__all__ = [
    "EventBus",
    "Event",
    "DialogueEvent",
    "RunnerConfig",
    "configure_logging",
    "DialogueError",
    "ValidationError",
    "DialogueStructureError",
    "DialogueUsageError",
    "ActionHandlerNotFoundError",
    "DialogueRunner",
    "DialogueGraph",
    "Node",
    "Choice",
    "ChoiceOption",
    "Speaker",
    "DialogueState",
    "HistoryEntry",
    "SerializedState",
    "FlagStore",
    "MemoryFlagStore",
    "FlagScope",
    "resolve_flag",
    "I18nAdapter",
    "create_i18n_adapter",
    "validate_dialogue",
    "DialogueLoader",
]
