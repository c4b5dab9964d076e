"""
Dialogue module - branching conversation runner.

Provides:
- Dialogue graph models (nodes, choices, conditions, actions)
- Flag scopes and flag stores
- Condition evaluation and action execution
- Text interpolation and translation
- The dialogue runner (start, choose, back, restart, jump, save/load)
- Structural validation and JSON loading
"""

from branchline.dialogue.models import (
    FlagValue,
    CheckCondition,
    AndCondition,
    OrCondition,
    NotCondition,
    Condition,
    SetFlagAction,
    ClearFlagAction,
    IncrementAction,
    DecrementAction,
    CallbackAction,
    Action,
    Choice,
    ChoiceOption,
    Node,
    DialogueGraph,
    Speaker,
    HistoryEntry,
    SerializedState,
    DialogueState,
)
from branchline.dialogue.flags import (
    FlagScope,
    FlagReference,
    FlagStore,
    MemoryFlagStore,
    resolve_flag,
)
from branchline.dialogue.conditions import evaluate_condition
from branchline.dialogue.actions import execute_action, execute_actions
from branchline.dialogue.interpolation import InterpolationContext, interpolate_text
from branchline.dialogue.i18n import I18nAdapter, DictI18nAdapter, create_i18n_adapter
from branchline.dialogue.runner import DialogueRunner
from branchline.dialogue.validation import ValidationResult, validate_dialogue
from branchline.dialogue.loader import DialogueLoader

__all__ = [
    # Models
    "FlagValue",
    "CheckCondition",
    "AndCondition",
    "OrCondition",
    "NotCondition",
    "Condition",
    "SetFlagAction",
    "ClearFlagAction",
    "IncrementAction",
    "DecrementAction",
    "CallbackAction",
    "Action",
    "Choice",
    "ChoiceOption",
    "Node",
    "DialogueGraph",
    "Speaker",
    "HistoryEntry",
    "SerializedState",
    "DialogueState",
    # Flags
    "FlagScope",
    "FlagReference",
    "FlagStore",
    "MemoryFlagStore",
    "resolve_flag",
    # Helpers
    "evaluate_condition",
    "execute_action",
    "execute_actions",
    "InterpolationContext",
    "interpolate_text",
    "I18nAdapter",
    "DictI18nAdapter",
    "create_i18n_adapter",
    # Runner
    "DialogueRunner",
    # Tooling
    "ValidationResult",
    "validate_dialogue",
    "DialogueLoader",
]
