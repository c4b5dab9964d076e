"""
Dialogue data models - graphs, nodes, choices, conditions, actions.

These are data-only. Field names are snake_case; the camelCase wire
names used by authored JSON (startNode, isEnd, disabledText, ...) are
accepted on input and produced by `to_wire()`.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, ConfigDict, Field

from branchline.core.model import Model
from branchline.dialogue.flags import FlagValue


def _conversation_flags_field() -> Any:
    return Field(
        default_factory=dict,
        validation_alias=AliasChoices("conversation_flags", "conversationFlags", "ephemeralFlags"),
        serialization_alias="conversationFlags",
    )


# Conditions

class CheckCondition(Model):
    """Leaf comparison: {"check": [flag, operator, value]}."""
    check: tuple[str, str, FlagValue]

    @property
    def flag(self) -> str:
        return self.check[0]

    @property
    def operator(self) -> str:
        return self.check[1]

    @property
    def value(self) -> FlagValue:
        return self.check[2]


class AndCondition(Model):
    """True iff every sub-condition is true."""
    and_: list[Condition] = Field(alias="and")


class OrCondition(Model):
    """True iff any sub-condition is true."""
    or_: list[Condition] = Field(alias="or")


class NotCondition(Model):
    """Logical negation."""
    not_: Condition = Field(alias="not")


Condition = Union[CheckCondition, AndCondition, OrCondition, NotCondition]


# Actions

class SetFlagAction(Model):
    type: Literal["set"] = "set"
    flag: str
    value: FlagValue


class ClearFlagAction(Model):
    type: Literal["clear"] = "clear"
    flag: str


class IncrementAction(Model):
    type: Literal["increment"] = "increment"
    flag: str
    amount: Union[int, float] = Field(1, alias="value")


class DecrementAction(Model):
    """Subtracts `amount`. Results below zero are kept as-is."""
    type: Literal["decrement"] = "decrement"
    flag: str
    amount: Union[int, float] = Field(1, alias="value")


class CallbackAction(Model):
    """Invokes the host handler registered under `name` with `args`."""
    type: Literal["callback"] = "callback"
    name: str
    args: list[Any] = Field(default_factory=list)


Action = Annotated[
    Union[SetFlagAction, ClearFlagAction, IncrementAction, DecrementAction, CallbackAction],
    Field(discriminator="type"),
]


# Graph

class Choice(Model):
    """A single player choice. `next` is the target node id."""
    text: str
    next: str
    conditions: Optional[Condition] = None
    actions: list[Action] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    disabled: bool = False
    disabled_text: Optional[str] = Field(None, alias="disabledText")


class ChoiceOption(Choice):
    """
    A choice annotated with its availability.

    Attributes:
        index: Position in the node's declared choice list (what choose() takes)
        available: Whether choose(index) would currently accept it
        reason: Why a condition-gated choice is unavailable
    """
    index: int
    available: bool
    reason: Optional[str] = None


class Node(Model):
    """
    A single dialogue node.

    A node with `next` and no choices is a pass-through and is left
    automatically. A node that is marked `is_end`, or has neither
    choices nor `next`, is terminal.
    """
    text: str
    speaker: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
    choices: list[Choice] = Field(default_factory=list)
    next: Optional[str] = None
    is_end: bool = Field(False, alias="isEnd")

    @property
    def has_choices(self) -> bool:
        return len(self.choices) > 0

    @property
    def is_pass_through(self) -> bool:
        return bool(self.next) and not self.choices

    @property
    def is_terminal(self) -> bool:
        return self.is_end or (not self.choices and not self.next)


class DialogueGraph(Model):
    """A complete dialogue: nodes keyed by id plus the id to start from."""
    id: str
    start_node: str = Field(alias="startNode")
    metadata: dict[str, Any] = Field(default_factory=dict)
    nodes: dict[str, Node] = Field(default_factory=dict)

    def get_node(self, node_id: Optional[str]) -> Optional[Node]:
        """Get a node by id."""
        if node_id is None:
            return None
        return self.nodes.get(node_id)


class Speaker(Model):
    """Speaker metadata. Hosts may attach arbitrary extra keys."""
    model_config = ConfigDict(extra="allow")

    name: str
    portrait: Optional[str] = None
    color: Optional[str] = None


# Runtime snapshots

class HistoryEntry(Model):
    """
    A node the runner left, with the conversation flags as they were
    before that step's actions ran.
    """
    node_id: str = Field(alias="nodeId")
    node: Optional[Node] = None
    choice_index: Optional[int] = Field(None, alias="choiceIndex")
    choice: Optional[Choice] = None
    timestamp: int
    conversation_flags: dict[str, FlagValue] = _conversation_flags_field()


class SerializedState(Model):
    """Portable snapshot of a running dialogue."""
    dialogue_id: str = Field(alias="dialogueId")
    current_node_id: str = Field(alias="currentNodeId")
    history: list[HistoryEntry] = Field(default_factory=list)
    conversation_flags: dict[str, FlagValue] = _conversation_flags_field()


class DialogueState(Model):
    """Result of a navigation call."""
    current_node: Node = Field(alias="currentNode")
    available_choices: list[Choice] = Field(default_factory=list, alias="availableChoices")
    is_ended: bool = Field(False, alias="isEnded")


for _model in (AndCondition, OrCondition, NotCondition, Choice, ChoiceOption, Node,
               DialogueGraph, HistoryEntry, SerializedState, DialogueState):
    _model.model_rebuild()
