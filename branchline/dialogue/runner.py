"""
Dialogue runner - walks a dialogue graph one player choice at a time.

Handles:
- Starting, choosing, auto-advancing through pass-through nodes
- Choice gating by conditions and explicit disabling
- Entry and choice actions (flag mutations, host callbacks)
- Text interpolation of the current node
- History with back(), restart(), jump_to()
- Serialize / deserialize of the running state
- Publishing lifecycle events to observers

Navigation calls are coroutines because action handlers and
interpolation functions may be async. One runner serves one caller:
await each navigation call before issuing the next.

Usage:
    runner = DialogueRunner(flags=game_flags, action_handlers={"give_item": give_item})
    state = await runner.start(graph)
    while not state.is_ended:
        state = await runner.choose(pick(state.available_choices))
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional, Union

import pydantic

from branchline.core.config import RunnerConfig
from branchline.core.errors import (
    DialogueStructureError,
    DialogueUsageError,
    ValidationError,
)
from branchline.core.events import DialogueEvent, EventBus, EventHandler
from branchline.dialogue.actions import ActionHandler, execute_actions
from branchline.dialogue.conditions import evaluate_condition
from branchline.dialogue.flags import (
    FlagStore,
    FlagValue,
    MemoryFlagStore,
    replace_flags,
    snapshot,
)
from branchline.dialogue.i18n import I18nAdapter, create_i18n_adapter, is_i18n_adapter
from branchline.dialogue.interpolation import (
    InterpolationContext,
    InterpolationFunction,
    interpolate_text,
)
from branchline.dialogue.models import (
    Action,
    Choice,
    ChoiceOption,
    Condition,
    DialogueGraph,
    DialogueState,
    HistoryEntry,
    Node,
    SerializedState,
    Speaker,
)

logger = logging.getLogger(__name__)

_FLAG_STORE_METHODS = ("get", "set", "delete", "all")


def _now_ms() -> int:
    return int(time.time() * 1000)


class DialogueRunner:
    """
    Runs one dialogue session at a time over a host-owned graph.

    The runner is stateless until start(). It keeps the graph it was
    started with, so restart() and deserialize() can reuse it.

    Args:
        flags: Persistent (game) flag store; a private MemoryFlagStore if omitted
        action_handlers: Callback registry for callback actions
        speakers: Speaker registry, id -> Speaker or dict with at least "name"
        interpolation: Custom {{token}} functions, token -> fn(context)
        i18n: Translation adapter, or an object with t()/has_key()
        event_bus: Bus to publish DialogueEvents on; a private one if omitted
        hooks: Initial observers, event (or event name) -> handler
        config: Runner configuration
    """

    def __init__(
        self,
        flags: Optional[FlagStore] = None,
        action_handlers: Optional[Mapping[str, ActionHandler]] = None,
        speakers: Optional[Mapping[str, Union[Speaker, Mapping[str, Any]]]] = None,
        interpolation: Optional[Mapping[str, InterpolationFunction]] = None,
        i18n: Any = None,
        event_bus: Optional[EventBus] = None,
        hooks: Optional[Mapping[Union[DialogueEvent, str], EventHandler]] = None,
        config: Optional[RunnerConfig] = None,
    ):
        self.config = config or RunnerConfig()

        if flags is not None:
            missing = [m for m in _FLAG_STORE_METHODS if not callable(getattr(flags, m, None))]
            if missing:
                raise ValidationError(
                    f"flags must be a valid FlagStore (missing {', '.join(missing)})",
                    "flags",
                )
        self._game_flags = flags if flags is not None else MemoryFlagStore()

        self._handlers: dict[str, ActionHandler] = {}
        for name, handler in (action_handlers or {}).items():
            self.register_action_handler(name, handler)

        self._speakers: dict[str, Speaker] = {}
        for speaker_id, speaker in (speakers or {}).items():
            self.register_speaker(speaker_id, speaker)

        self._interpolation: dict[str, InterpolationFunction] = {}
        for token, fn in (interpolation or {}).items():
            if not callable(fn):
                raise ValidationError(
                    f'interpolation function "{token}" must be callable', "interpolation"
                )
            self._interpolation[token] = fn

        self._i18n = self._coerce_i18n(i18n)

        self.event_bus = event_bus or EventBus()
        for event, handler in (hooks or {}).items():
            self.on(event, handler)

        # Session state
        self._dialogue: Optional[DialogueGraph] = None
        self._current_node_id: Optional[str] = None
        self._current_view: Optional[Node] = None
        self._conversation_flags = MemoryFlagStore()
        self._history: list[HistoryEntry] = []

    @staticmethod
    def _coerce_i18n(i18n: Any) -> Optional[I18nAdapter]:
        if i18n is None or is_i18n_adapter(i18n):
            return i18n
        try:
            return create_i18n_adapter(i18n)
        except TypeError:
            raise ValidationError(
                "i18n adapter must provide translate() and has_key()", "i18n"
            ) from None

    # Registries

    def register_action_handler(self, name: str, handler: ActionHandler) -> None:
        """Register (or replace) the handler for callback actions named `name`."""
        if not callable(handler):
            raise ValidationError(f'actionHandler "{name}" must be a function', "action_handlers")
        self._handlers[name] = handler

    def register_speaker(self, speaker_id: str, speaker: Union[Speaker, Mapping[str, Any]]) -> None:
        """Register (or replace) a speaker."""
        if isinstance(speaker, Speaker):
            self._speakers[speaker_id] = speaker
            return
        try:
            self._speakers[speaker_id] = Speaker.model_validate(speaker)
        except pydantic.ValidationError as e:
            raise ValidationError(f'speaker "{speaker_id}" is invalid: {e}', "speakers") from e

    def get_speaker(self, speaker_id: Optional[str]) -> Optional[Speaker]:
        """Resolve a speaker id, or None when absent or unknown."""
        if not speaker_id:
            return None
        speaker = self._speakers.get(speaker_id)
        if speaker is None:
            logger.debug("Speaker not registered: %s", speaker_id)
        return speaker

    # Observers

    def on(self, event: Union[DialogueEvent, str], handler: EventHandler, priority: int = 0) -> None:
        """Subscribe an observer. Held by strong reference."""
        self.event_bus.subscribe(DialogueEvent.from_name(event), handler, priority=priority, weak=False)

    def off(self, event: Union[DialogueEvent, str], handler: EventHandler) -> None:
        """Unsubscribe an observer."""
        self.event_bus.unsubscribe(DialogueEvent.from_name(event), handler)

    def _publish(self, event: DialogueEvent, **data: Any) -> None:
        self.event_bus.publish(event, **data)

    def _publish_enter(self, node: Node) -> None:
        logger.debug("Entered node %s", self._current_node_id)
        self._publish(
            DialogueEvent.NODE_ENTERED,
            node=node,
            node_id=self._current_node_id,
            speaker=self.get_speaker(node.speaker),
        )

    def _publish_exit(self, node: Node, node_id: str) -> None:
        self._publish(DialogueEvent.NODE_EXITED, node=node, node_id=node_id)

    def _on_action_executed(self, action: Action, result: Any, error: Optional[BaseException]) -> None:
        self._publish(DialogueEvent.ACTION_EXECUTED, action=action, result=result, error=error)

    # Read-only state

    @property
    def dialogue(self) -> Optional[DialogueGraph]:
        return self._dialogue

    @property
    def current_node_id(self) -> Optional[str]:
        return self._current_node_id

    @property
    def game_flags(self) -> FlagStore:
        return self._game_flags

    @property
    def conversation_flags(self) -> FlagStore:
        return self._conversation_flags

    def _current_node(self) -> Optional[Node]:
        if self._dialogue is None:
            return None
        return self._dialogue.get_node(self._current_node_id)

    def _require_node(self, node_id: str, message: str) -> Node:
        node = self._dialogue.get_node(node_id) if self._dialogue else None
        if node is None:
            raise DialogueStructureError(
                f"{message}: {node_id}",
                dialogue_id=self._dialogue.id if self._dialogue else None,
                node_id=node_id,
            )
        return node

    def is_ended(self) -> bool:
        """True when the current node is marked terminal or has nowhere to go."""
        node = self._current_node()
        if node is None:
            return False
        return node.is_terminal

    def get_current_node(self) -> Optional[Node]:
        """
        Get the interpolated current node.

        Returns None only for a node explicitly marked is_end; nodes that
        are terminal because they have no choices and no `next` are
        still returned.
        """
        if self._current_view is None or self._current_view.is_end:
            return None
        return self._current_view

    def get_history(self) -> list[HistoryEntry]:
        """Get a copy of the history list, oldest first."""
        return list(self._history)

    def get_conversation_flags(self) -> dict[str, FlagValue]:
        """Get a copy of the conversation flags."""
        return snapshot(self._conversation_flags)

    def clear_conversation_flags(self) -> None:
        """Remove every conversation flag. Game flags are untouched."""
        self._conversation_flags.clear()

    # Choices

    def _evaluate(self, condition: Condition) -> bool:
        result = evaluate_condition(condition, self._game_flags, self._conversation_flags)
        self._publish(DialogueEvent.CONDITION_EVALUATED, condition=condition, result=result)
        return result

    def get_choices(
        self,
        include_unavailable: bool = False,
        include_disabled: bool = False,
        filter: Optional[Callable[[Choice], bool]] = None,
    ) -> Union[list[Choice], list[ChoiceOption]]:
        """
        Get the current node's choices.

        Args:
            include_unavailable: Return every choice as a ChoiceOption with
                                 `available` and, for condition failures, `reason`
            include_disabled: In the default mode, keep explicitly disabled choices
            filter: Applied to the declared choices before anything else

        Returns:
            By default only choices that are enabled and whose conditions
            pass. Indexes for choose() always refer to the declared list;
            ChoiceOption.index carries it.
        """
        node = self._current_node()
        if node is None or not node.choices:
            return []

        indexed = list(enumerate(node.choices))
        if filter is not None:
            indexed = [(i, c) for i, c in indexed if filter(c)]

        if include_unavailable:
            options = []
            for i, choice in indexed:
                if choice.disabled:
                    available = False
                elif choice.conditions is not None:
                    available = self._evaluate(choice.conditions)
                else:
                    available = True

                reason = None
                if not available and not choice.disabled:
                    reason = self.config.unavailable_reason

                options.append(ChoiceOption(**dict(choice), index=i, available=available, reason=reason))
            return options

        choices = []
        for _, choice in indexed:
            if choice.disabled:
                if include_disabled:
                    choices.append(choice)
                continue
            if choice.conditions is None or self._evaluate(choice.conditions):
                choices.append(choice)
        return choices

    # Internals

    async def _run_actions(self, actions: list[Action]) -> None:
        if actions:
            await execute_actions(
                actions,
                self._game_flags,
                self._conversation_flags,
                self._handlers,
                self._on_action_executed,
            )

    async def _refresh_view(self) -> None:
        node = self._current_node()
        if node is None:
            self._current_view = None
            return

        speaker = self.get_speaker(node.speaker)
        context = InterpolationContext(
            current_node=node,
            game_flags=self._game_flags,
            conversation_flags=self._conversation_flags,
            speaker=speaker,
        )
        text = await interpolate_text(node.text, context, self._interpolation, self._i18n)
        self._current_view = node.model_copy(update={"text": text})

    def _push_history(
        self,
        node_id: str,
        node: Node,
        choice_index: Optional[int] = None,
        choice: Optional[Choice] = None,
    ) -> None:
        self._history.append(HistoryEntry(
            node_id=node_id,
            node=node,
            choice_index=choice_index,
            choice=choice,
            timestamp=_now_ms(),
            conversation_flags=snapshot(self._conversation_flags),
        ))

        limit = self.config.max_history
        if limit is not None and len(self._history) > limit:
            dropped = len(self._history) - limit
            del self._history[:dropped]
            logger.debug("History capped at %d, dropped %d oldest", limit, dropped)

    async def _enter(self, node: Node) -> None:
        """
        Run the entry actions of the node just moved to, then announce it.

        The view is refreshed even when an action aborts the step, so the
        current node id and the view always describe the same node.
        """
        try:
            await self._run_actions(node.actions)
        finally:
            await self._refresh_view()
        self._publish_enter(node)

    async def _auto_advance(self) -> None:
        """Follow `next` links until a node with choices, no `next`, or is_end."""
        while True:
            node = self._current_node()
            if node is None or node.is_end or not node.is_pass_through:
                return

            target = self._require_node(node.next, "Next node not found")

            self._publish_exit(node, self._current_node_id)
            self._push_history(self._current_node_id, node)
            self._current_node_id = node.next

            await self._enter(target)

    def _build_state(self) -> DialogueState:
        return DialogueState(
            current_node=self._current_view,
            available_choices=self.get_choices(),
            is_ended=self.is_ended(),
        )

    def _finish_step(self) -> DialogueState:
        state = self._build_state()
        if state.is_ended:
            logger.info("Dialogue %s ended at %s", self._dialogue.id, self._current_node_id)
            self._publish(
                DialogueEvent.DIALOGUE_ENDED,
                dialogue_id=self._dialogue.id,
                node=self._current_node(),
            )
        return state

    # Navigation

    async def start(self, dialogue: Union[DialogueGraph, Mapping[str, Any]]) -> DialogueState:
        """
        Start a new session at the graph's start node.

        Resets conversation flags and history, runs the start node's
        actions, then follows any pass-through chain.

        Raises:
            DialogueStructureError: the start node is missing
        """
        if not isinstance(dialogue, DialogueGraph):
            dialogue = DialogueGraph.model_validate(dialogue)

        node = dialogue.get_node(dialogue.start_node)
        if node is None:
            raise DialogueStructureError(
                f"Start node not found: {dialogue.start_node}",
                dialogue_id=dialogue.id,
                node_id=dialogue.start_node,
            )

        self._dialogue = dialogue
        self._current_node_id = dialogue.start_node
        self._current_view = None
        self._conversation_flags.clear()
        self._history = []

        logger.info("Starting dialogue %s at %s", dialogue.id, dialogue.start_node)

        try:
            await self._run_actions(node.actions)
        finally:
            await self._refresh_view()
        self._publish(DialogueEvent.DIALOGUE_STARTED, dialogue=dialogue)
        self._publish_enter(node)

        await self._auto_advance()
        await self._refresh_view()

        return self._finish_step()

    async def choose(self, index: int) -> DialogueState:
        """
        Select a choice by its position in the node's declared choice list.

        Raises:
            DialogueUsageError: no session, dialogue ended, no choices,
                                bad index, disabled choice, failed condition
            DialogueStructureError: the choice targets a missing node
        """
        if self._dialogue is None or self._current_node_id is None:
            raise DialogueUsageError("No active dialogue")

        if self.is_ended():
            raise DialogueUsageError("Dialogue has ended")

        node = self._current_node()
        if not node.choices:
            raise DialogueUsageError("No choices available")

        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(node.choices):
            raise DialogueUsageError(f"Invalid choice index: {index}")

        choice = node.choices[index]
        if choice.disabled:
            raise DialogueUsageError("Cannot select disabled choice")

        if choice.conditions is not None and not evaluate_condition(
            choice.conditions, self._game_flags, self._conversation_flags
        ):
            raise DialogueUsageError("Choice conditions not met")

        target = self._require_node(choice.next, "Target node not found")
        previous_id = self._current_node_id

        self._publish(DialogueEvent.CHOICE_SELECTED, choice=choice, index=index)
        self._publish_exit(node, previous_id)
        self._push_history(previous_id, node, index, choice)

        await self._run_actions(choice.actions)

        self._current_node_id = choice.next
        logger.debug("Choice %d: %s -> %s", index, previous_id, choice.next)

        await self._enter(target)

        await self._auto_advance()
        await self._refresh_view()

        return self._finish_step()

    async def back(self) -> None:
        """
        Return to the node recorded by the last history entry.

        Conversation flags are replaced by that entry's snapshot. No
        actions are re-run. Does nothing when history is empty.
        """
        if not self._history:
            return

        entry = self._history.pop()
        self._current_node_id = entry.node_id
        replace_flags(self._conversation_flags, entry.conversation_flags)
        logger.debug("Back to %s (%d entries left)", entry.node_id, len(self._history))

        await self._refresh_view()

        node = self._current_node()
        if node is not None:
            self._publish_enter(node)

    async def restart(self, preserve_conversation_flags: bool = False) -> DialogueState:
        """
        Start the current graph again from scratch.

        Start node actions run again. Unless preserve_conversation_flags
        is set, conversation flags are cleared afterwards, including any
        the start node just set. Game flags are never touched.
        """
        if self._dialogue is None:
            raise DialogueUsageError("No active dialogue")

        logger.info("Restarting dialogue %s", self._dialogue.id)
        self._history = []
        state = await self.start(self._dialogue)

        if not preserve_conversation_flags:
            self._conversation_flags.clear()
            await self._refresh_view()
            state = self._build_state()

        return state

    async def jump_to(self, node_id: str) -> None:
        """
        Move directly to a node.

        Skips choice gating and runs no actions. The node being left is
        recorded in history so back() can return to it.

        Raises:
            DialogueUsageError: no session
            DialogueStructureError: unknown node id
        """
        if self._dialogue is None:
            raise DialogueUsageError("No active dialogue")

        target = self._require_node(node_id, "Node not found")

        previous = self._current_node()
        if previous is not None:
            self._publish_exit(previous, self._current_node_id)
            self._push_history(self._current_node_id, previous)

        self._current_node_id = node_id
        await self._refresh_view()
        self._publish_enter(target)

    def serialize(self) -> SerializedState:
        """
        Snapshot the running state.

        The snapshot is independent of the runner; use `.to_wire()` for
        plain JSON-compatible data.
        """
        if self._dialogue is None or self._current_node_id is None:
            raise DialogueUsageError("No active dialogue to serialize")

        return SerializedState(
            dialogue_id=self._dialogue.id,
            current_node_id=self._current_node_id,
            history=[entry.clone() for entry in self._history],
            conversation_flags=snapshot(self._conversation_flags),
        )

    async def deserialize(self, state: Union[SerializedState, Mapping[str, Any]]) -> None:
        """
        Restore a snapshot onto the graph this runner was started with.

        Nothing is replayed: current node, history and conversation
        flags are overwritten as-is.

        Raises:
            DialogueUsageError: start() was never called
            DialogueStructureError: the snapshot's node is not in the graph
        """
        if self._dialogue is None:
            raise DialogueUsageError("Start a dialogue before deserializing state")

        if not isinstance(state, SerializedState):
            state = SerializedState.model_validate(state)

        if state.dialogue_id != self._dialogue.id:
            logger.warning(
                "Restoring state from dialogue %s onto %s", state.dialogue_id, self._dialogue.id
            )

        node = self._require_node(state.current_node_id, "Node not found")

        self._current_node_id = state.current_node_id
        self._history = [entry.clone() for entry in state.history]
        replace_flags(self._conversation_flags, state.conversation_flags)
        logger.info("Restored dialogue %s at %s", self._dialogue.id, self._current_node_id)

        await self._refresh_view()
        self._publish_enter(node)
