import asyncio
from unittest.mock import MagicMock

import pytest

from branchline.core.config import RunnerConfig
from branchline.core.errors import (
    ActionHandlerNotFoundError,
    DialogueStructureError,
    DialogueUsageError,
    ValidationError,
)
from branchline.dialogue.i18n import DictI18nAdapter
from branchline.dialogue.models import ChoiceOption, DialogueGraph
from branchline.dialogue.runner import DialogueRunner


def test_door_scenario(run, runner, game_flags, door_graph):
    game_flags.set("hasKey", False)
    state = run(runner.start(door_graph))

    assert state.current_node.text == "A locked door."
    assert not state.is_ended
    assert [c.text for c in state.available_choices] == ["Leave"]
    assert [c.text for c in runner.get_choices()] == ["Leave"]

    with pytest.raises(DialogueUsageError, match="conditions not met"):
        run(runner.choose(0))
    assert runner.current_node_id == "door"
    assert runner.get_history() == []

    state = run(runner.choose(1))
    assert runner.current_node_id == "outside"
    assert state.current_node.text == "You walk away."


def test_door_opens_with_key(run, runner, game_flags, door_graph):
    game_flags.set("hasKey", True)
    run(runner.start(door_graph))

    assert [c.text for c in runner.get_choices()] == ["Open door", "Leave"]

    state = run(runner.choose(0))
    assert state.is_ended
    assert runner.is_ended()
    assert runner.get_current_node() is None


def test_implicit_end_still_has_a_view(run, runner, door_graph):
    run(runner.start(door_graph))
    state = run(runner.choose(1))

    assert state.is_ended
    assert runner.is_ended()
    assert runner.get_current_node().text == "You walk away."


def test_start_node_without_choices_ends_immediately(run, runner):
    state = run(runner.start({"id": "solo", "startNode": "only", "nodes": {"only": {"text": "Bye"}}}))

    assert state.is_ended
    assert state.available_choices == []
    assert runner.get_current_node().text == "Bye"


def test_start_accepts_model(run, runner, door_graph):
    graph = DialogueGraph.model_validate(door_graph)
    run(runner.start(graph))
    assert runner.dialogue is graph


def test_missing_start_node_is_fatal(run, runner, door_graph):
    run(runner.start(door_graph))
    broken = {"id": "broken", "startNode": "nowhere", "nodes": {"a": {"text": "A"}}}

    with pytest.raises(DialogueStructureError, match="nowhere") as exc_info:
        run(runner.start(broken))

    assert exc_info.value.node_id == "nowhere"
    # The running session is untouched
    assert runner.dialogue.id == "door"
    assert runner.current_node_id == "door"


def test_missing_choice_target_is_fatal_and_leaves_state(run, runner):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {"a": {"text": "A", "choices": [{"text": "go", "next": "ghost"}]}},
    }
    run(runner.start(graph))

    with pytest.raises(DialogueStructureError, match="ghost"):
        run(runner.choose(0))

    assert runner.current_node_id == "a"
    assert runner.get_history() == []


def test_choose_usage_errors(run, runner):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {
            "a": {"text": "A", "choices": [
                {"text": "ok", "next": "end"},
                {"text": "nope", "next": "end", "disabled": True, "disabledText": "Locked"},
            ]},
            "end": {"text": "End", "isEnd": True},
        },
    }

    with pytest.raises(DialogueUsageError, match="No active dialogue"):
        run(runner.choose(0))

    run(runner.start(graph))
    for bad in (-1, 2, True, "0"):
        with pytest.raises(DialogueUsageError, match="Invalid choice index"):
            run(runner.choose(bad))

    with pytest.raises(DialogueUsageError, match="disabled"):
        run(runner.choose(1))

    run(runner.choose(0))
    with pytest.raises(DialogueUsageError, match="ended"):
        run(runner.choose(0))


def test_get_choices_modes(run, runner, game_flags):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {
            "a": {"text": "A", "choices": [
                {"text": "free", "next": "a", "tags": ["common"]},
                {"text": "rich", "next": "a", "conditions": {"check": ["gold", ">=", 100]}},
                {"text": "off", "next": "a", "disabled": True},
            ]},
        },
    }
    game_flags.set("gold", 5)
    run(runner.start(graph))

    assert [c.text for c in runner.get_choices()] == ["free"]
    assert [c.text for c in runner.get_choices(include_disabled=True)] == ["free", "off"]

    options = runner.get_choices(include_unavailable=True)
    assert all(isinstance(o, ChoiceOption) for o in options)
    assert [(o.index, o.available, o.reason) for o in options] == [
        (0, True, None),
        (1, False, "Conditions not met"),
        (2, False, None),
    ]

    filtered = runner.get_choices(include_unavailable=True, filter=lambda c: "common" not in c.tags)
    assert [o.index for o in filtered] == [1, 2]


def test_get_choices_is_deterministic(run, runner, branching_graph):
    run(runner.start(branching_graph))
    flags_before = runner.get_conversation_flags()

    first = runner.get_choices(include_unavailable=True)
    second = runner.get_choices(include_unavailable=True)

    assert first == second
    assert runner.get_conversation_flags() == flags_before


def test_get_choices_before_start(runner):
    assert runner.get_choices() == []
    assert runner.get_current_node() is None
    assert not runner.is_ended()


def test_custom_unavailable_reason(run, game_flags, door_graph):
    runner = DialogueRunner(flags=game_flags, config=RunnerConfig(unavailable_reason="Locked"))
    run(runner.start(door_graph))

    assert runner.get_choices(include_unavailable=True)[0].reason == "Locked"


def test_entry_action_increment(run, runner, game_flags):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {"a": {"text": "A", "actions": [{"type": "increment", "flag": "counter"}]}},
    }
    run(runner.start(graph))
    assert game_flags.get("counter") == 1


def test_choice_decrement_is_not_clamped(run, runner, game_flags):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {
            "a": {"text": "A", "choices": [{
                "text": "ouch",
                "next": "b",
                "actions": [{"type": "decrement", "flag": "health", "value": 20}],
            }]},
            "b": {"text": "B"},
        },
    }
    game_flags.set("health", 10)
    run(runner.start(graph))
    run(runner.choose(0))

    assert game_flags.get("health") == -10


def callback_graph(name):
    return {
        "id": "cb",
        "startNode": "a",
        "nodes": {
            "a": {"text": "A", "choices": [{
                "text": "go",
                "next": "b",
                "actions": [{"type": "callback", "name": name}],
            }]},
            "b": {"text": "Reached B"},
        },
    }


def test_missing_handler_rejects_choose(run, runner):
    run(runner.start(callback_graph("missing")))

    with pytest.raises(ActionHandlerNotFoundError, match="missing"):
        run(runner.choose(0))


def test_missing_handler_rejects_start(run, runner):
    graph = {
        "id": "cb",
        "startNode": "a",
        "nodes": {"a": {"text": "A", "actions": [{"type": "callback", "name": "missing"}]}},
    }
    with pytest.raises(ActionHandlerNotFoundError, match="missing"):
        run(runner.start(graph))


def test_throwing_handler_does_not_stop_traversal(run, game_flags):
    def explode(args):
        raise RuntimeError("boom")

    runner = DialogueRunner(flags=game_flags, action_handlers={"explode": explode})
    run(runner.start(callback_graph("explode")))
    state = run(runner.choose(0))

    assert runner.current_node_id == "b"
    assert state.current_node.text == "Reached B"


def test_async_handler_is_awaited(run, game_flags):
    calls = []

    async def fetch(args):
        await asyncio.sleep(0)
        calls.append(args)

    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {"a": {"text": "A", "actions": [{"type": "callback", "name": "fetch", "args": ["map"]}]}},
    }
    runner = DialogueRunner(flags=game_flags, action_handlers={"fetch": fetch})
    run(runner.start(graph))

    assert calls == [["map"]]


def test_auto_advance_chain(run, runner, game_flags):
    nodes = {
        f"n{i}": {
            "text": f"step {i}",
            "next": f"n{i + 1}",
            "actions": [{"type": "callback", "name": "visit", "args": [i]}],
        }
        for i in range(50)
    }
    nodes["n50"] = {"text": "done", "choices": [{"text": "again", "next": "n0"}]}
    visited = []
    runner.register_action_handler("visit", visited.append)

    state = run(runner.start({"id": "chain", "startNode": "n0", "nodes": nodes}))

    assert visited == [[i] for i in range(50)]
    assert runner.current_node_id == "n50"
    assert state.current_node.text == "done"
    assert len(runner.get_history()) == 50


def test_auto_advance_stops_at_explicit_end(run, runner):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {
            "a": {"text": "A", "next": "b"},
            "b": {"text": "B", "next": "c", "isEnd": True},
            "c": {"text": "C"},
        },
    }
    state = run(runner.start(graph))

    assert runner.current_node_id == "b"
    assert state.is_ended


def test_auto_advance_missing_next_is_fatal(run, runner):
    graph = {"id": "d", "startNode": "a", "nodes": {"a": {"text": "A", "next": "ghost"}}}

    with pytest.raises(DialogueStructureError, match="ghost"):
        run(runner.start(graph))


def test_interpolated_view(run, game_flags):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {"a": {
            "text": "{{speaker}}: you have {{gold}} gold and {{conv:gift}}",
            "speaker": "mara",
            "actions": [{"type": "set", "flag": "conv:gift", "value": "a rose"}],
        }},
    }
    game_flags.set("gold", 7)
    runner = DialogueRunner(flags=game_flags, speakers={"mara": {"name": "Mara", "color": "#f00"}})
    state = run(runner.start(graph))

    assert state.current_node.text == "Mara: you have 7 gold and a rose"
    # The graph itself is not rewritten
    assert runner.dialogue.nodes["a"].text.startswith("{{speaker}}")


def test_i18n_object_is_wrapped(run, game_flags):
    class Translations:
        def t(self, key, params):
            return {"intro": "Welcome!"}[key]

        def has_key(self, key):
            return key == "intro"

    runner = DialogueRunner(flags=game_flags, i18n=Translations())
    state = run(runner.start({"id": "d", "startNode": "a", "nodes": {"a": {"text": "intro"}}}))

    assert state.current_node.text == "Welcome!"


def test_i18n_adapter_used_directly(run, game_flags):
    runner = DialogueRunner(flags=game_flags, i18n=DictI18nAdapter({"intro": "Hi {{gold}}"}))
    game_flags.set("gold", 3)
    state = run(runner.start({"id": "d", "startNode": "a", "nodes": {"a": {"text": "intro"}}}))

    assert state.current_node.text == "Hi 3"


@pytest.mark.parametrize("kwargs, field", [
    ({"flags": object()}, "flags"),
    ({"action_handlers": {"x": "not callable"}}, "action_handlers"),
    ({"speakers": {"x": {"portrait": "p.png"}}}, "speakers"),
    ({"interpolation": {"x": 42}}, "interpolation"),
    ({"i18n": object()}, "i18n"),
])
def test_constructor_validation(kwargs, field):
    with pytest.raises(ValidationError) as exc_info:
        DialogueRunner(**kwargs)
    assert exc_info.value.field == field


def test_default_flag_store(run):
    runner = DialogueRunner()
    graph = {"id": "d", "startNode": "a", "nodes": {"a": {"text": "A", "actions": [
        {"type": "set", "flag": "seen", "value": True},
    ]}}}
    run(runner.start(graph))

    assert runner.game_flags.get("seen") is True


def test_conversation_flags_reset_on_start(run, runner, game_flags, branching_graph):
    run(runner.start(branching_graph))
    run(runner.choose(0))
    game_flags.set("persisted", 1)
    assert runner.get_conversation_flags() == {"step": 1}

    run(runner.start(branching_graph))

    assert runner.get_conversation_flags() == {}
    assert runner.get_history() == []
    assert game_flags.get("persisted") == 1


def test_clear_conversation_flags(run, runner, branching_graph):
    run(runner.start(branching_graph))
    run(runner.choose(0))

    runner.clear_conversation_flags()

    assert runner.get_conversation_flags() == {}


def test_choice_callback_receives_args(run, game_flags):
    give_item = MagicMock(return_value="ok")
    graph = {
        "id": "shop",
        "startNode": "a",
        "nodes": {
            "a": {"text": "Buy?", "choices": [{
                "text": "Buy potion",
                "next": "b",
                "actions": [{"type": "callback", "name": "give_item", "args": ["potion", 2]}],
            }]},
            "b": {"text": "Thanks"},
        },
    }
    runner = DialogueRunner(flags=game_flags, action_handlers={"give_item": give_item})
    run(runner.start(graph))
    give_item.assert_not_called()

    run(runner.choose(0))

    give_item.assert_called_once_with(["potion", 2])


def test_fatal_entry_action_leaves_consistent_view(run, runner):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {
            "a": {"text": "A", "choices": [{"text": "go", "next": "b"}]},
            "b": {"text": "B", "actions": [{"type": "callback", "name": "missing"}]},
        },
    }
    run(runner.start(graph))

    with pytest.raises(ActionHandlerNotFoundError):
        run(runner.choose(0))

    assert runner.current_node_id == "b"
    assert runner.get_current_node().text == "B"
    assert [h.node_id for h in runner.get_history()] == ["a"]


def test_fatal_start_action_leaves_consistent_view(run, runner):
    graph = {
        "id": "d",
        "startNode": "a",
        "nodes": {"a": {"text": "A", "actions": [{"type": "callback", "name": "missing"}]}},
    }

    with pytest.raises(ActionHandlerNotFoundError):
        run(runner.start(graph))

    assert runner.current_node_id == "a"
    assert runner.get_current_node().text == "A"
