"""
Dialogue error taxonomy.

Structural and usage errors abort the call that raised them and leave
the runner in its last committed state. Failures inside a registered
action handler are never raised; the runner logs them and reports
them through ACTION_EXECUTED instead.
"""

from __future__ import annotations

from typing import Optional


class DialogueError(Exception):
    """Base class for all dialogue errors."""


class ValidationError(DialogueError):
    """Invalid runner configuration supplied by the host."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DialogueStructureError(DialogueError):
    """
    The graph points somewhere that does not exist.

    Raised for a missing start node, a choice or `next` target missing
    from the graph, and unknown jump targets.
    """

    def __init__(
        self,
        message: str,
        dialogue_id: Optional[str] = None,
        node_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.dialogue_id = dialogue_id
        self.node_id = node_id


class DialogueUsageError(DialogueError):
    """The call is not valid in the runner's current state."""


class ActionHandlerNotFoundError(DialogueError):
    """A callback action names a handler that was never registered."""

    def __init__(self, name: str):
        super().__init__(f"Action handler not registered: {name}")
        self.name = name
