import asyncio
import os
import sys

import pytest

# Ensure branchline can be imported without installing
sys.path.append(os.getcwd())


@pytest.fixture
def run():
    """Drive a coroutine to completion on a fresh event loop."""
    def _run(coro):
        return asyncio.run(coro)
    return _run


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from branchline.core.events import EventBus
    return EventBus()


@pytest.fixture
def game_flags():
    """Host-owned persistent flag store."""
    from branchline.dialogue.flags import MemoryFlagStore
    return MemoryFlagStore()


@pytest.fixture
def runner(game_flags):
    """Runner over the shared game flag store."""
    from branchline.dialogue.runner import DialogueRunner
    return DialogueRunner(flags=game_flags)


@pytest.fixture
def recorded(runner):
    """Every event the runner publishes, in order, as (event type, data)."""
    from branchline.core.events import DialogueEvent

    events = []
    for event_type in DialogueEvent:
        runner.on(event_type, lambda e: events.append((e.type, e.data)))
    return events


@pytest.fixture
def door_graph():
    """Door scenario: opening needs the key, leaving is always possible."""
    return {
        "id": "door",
        "startNode": "door",
        "nodes": {
            "door": {
                "text": "A locked door.",
                "choices": [
                    {
                        "text": "Open door",
                        "next": "inside",
                        "conditions": {"check": ["hasKey", "==", True]},
                    },
                    {"text": "Leave", "next": "outside"},
                ],
            },
            "inside": {"text": "You step inside.", "isEnd": True},
            "outside": {"text": "You walk away."},
        },
    }


@pytest.fixture
def branching_graph():
    """Three-step conversation that sets a conversation flag per step."""
    return {
        "id": "chat",
        "startNode": "greet",
        "nodes": {
            "greet": {
                "text": "Hello.",
                "choices": [
                    {
                        "text": "Hi",
                        "next": "ask",
                        "actions": [{"type": "set", "flag": "conv:step", "value": 1}],
                    },
                ],
            },
            "ask": {
                "text": "How are you?",
                "choices": [
                    {
                        "text": "Fine",
                        "next": "bye",
                        "actions": [{"type": "set", "flag": "conv:step", "value": 2}],
                    },
                    {
                        "text": "Tired",
                        "next": "bye",
                        "actions": [{"type": "set", "flag": "conv:tired", "value": True}],
                    },
                ],
            },
            "bye": {
                "text": "Goodbye.",
                "choices": [{"text": "Again", "next": "greet"}],
            },
        },
    }
