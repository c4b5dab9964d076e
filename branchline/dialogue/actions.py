"""
Action execution - flag mutations and host callbacks.

Only one failure is fatal: a callback action naming a handler that was
never registered. Everything else that goes wrong while applying an
action (a handler raising, a non-numeric flag being incremented) is
logged, reported to the observer with a None result, and traversal
carries on with the next action.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from branchline.core.errors import ActionHandlerNotFoundError
from branchline.dialogue.flags import FlagStore, add_to_flag, resolve_flag
from branchline.dialogue.models import (
    Action,
    CallbackAction,
    ClearFlagAction,
    DecrementAction,
    IncrementAction,
    SetFlagAction,
)

logger = logging.getLogger(__name__)

# handler(args) -> value or awaitable; args is the action's argument list
ActionHandler = Callable[..., Any]

# observer(action, result, error); error is None on success
ActionObserver = Callable[[Action, Any, Optional[BaseException]], None]


async def _apply(
    action: Action,
    game_flags: FlagStore,
    conversation_flags: FlagStore,
    handlers: Mapping[str, ActionHandler],
) -> Any:
    if isinstance(action, SetFlagAction):
        ref = resolve_flag(action.flag)
        ref.store(game_flags, conversation_flags).set(ref.key, action.value)
        return action.value

    if isinstance(action, ClearFlagAction):
        ref = resolve_flag(action.flag)
        ref.store(game_flags, conversation_flags).delete(ref.key)
        return True

    if isinstance(action, IncrementAction):
        ref = resolve_flag(action.flag)
        return add_to_flag(ref.store(game_flags, conversation_flags), ref.key, action.amount)

    if isinstance(action, DecrementAction):
        ref = resolve_flag(action.flag)
        return add_to_flag(ref.store(game_flags, conversation_flags), ref.key, -action.amount)

    if isinstance(action, CallbackAction):
        result = handlers[action.name](list(action.args))
        if inspect.isawaitable(result):
            result = await result
        return result

    raise TypeError(f"Unsupported action: {action!r}")


async def execute_action(
    action: Action,
    game_flags: FlagStore,
    conversation_flags: FlagStore,
    handlers: Mapping[str, ActionHandler],
    on_executed: Optional[ActionObserver] = None,
) -> Any:
    """
    Execute one action.

    Args:
        action: The action to apply
        game_flags: Persistent store
        conversation_flags: Ephemeral store
        handlers: Callback registry, name -> handler
        on_executed: Observer notified after the action completes,
                     including actions whose failure was absorbed

    Returns:
        set: the value written; clear: True; increment/decrement: the
        new value; callback: the handler's (awaited) result. None when
        the action failed and the failure was absorbed.

    Callback handlers receive the action's args as a single list.

    Raises:
        ActionHandlerNotFoundError: callback names an unregistered handler
    """
    if isinstance(action, CallbackAction) and action.name not in handlers:
        raise ActionHandlerNotFoundError(action.name)

    try:
        result = await _apply(action, game_flags, conversation_flags, handlers)
    except Exception as exc:
        logger.warning(
            "Action %s failed: %s", getattr(action, "type", action), exc, exc_info=True
        )
        if on_executed is not None:
            on_executed(action, None, exc)
        return None

    logger.debug("Action %s -> %r", action.type, result)
    if on_executed is not None:
        on_executed(action, result, None)
    return result


async def execute_actions(
    actions: Iterable[Action],
    game_flags: FlagStore,
    conversation_flags: FlagStore,
    handlers: Mapping[str, ActionHandler],
    on_executed: Optional[ActionObserver] = None,
) -> list[Any]:
    """Execute actions in order, awaiting each before starting the next."""
    results = []
    for action in actions:
        results.append(
            await execute_action(action, game_flags, conversation_flags, handlers, on_executed)
        )
    return results
