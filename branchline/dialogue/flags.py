"""
Flag scopes and flag stores.

Flags live in one of two stores:
- game flags: persistent, owned by the host, outlive a dialogue
- conversation flags: ephemeral, owned by the runner, reset on start()

A raw flag name picks its store by prefix. "conv:" and "game:" are
stripped from the key; an unprefixed name is a game flag stored under
the name exactly as written. Every read and write path goes through
resolve_flag() so the two stores agree on keys.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

FlagValue = Union[bool, int, float, str]

CONVERSATION_PREFIX = "conv:"
GAME_PREFIX = "game:"


class FlagScope(Enum):
    """Which store a flag lives in."""
    GAME = "game"                  # persistent
    CONVERSATION = "conv"          # ephemeral


@dataclass(frozen=True)
class FlagReference:
    """A resolved flag: the store it belongs to and its key in that store."""
    scope: FlagScope
    key: str

    def store(self, game_flags: FlagStore, conversation_flags: FlagStore) -> FlagStore:
        """Pick the store this reference points into."""
        if self.scope is FlagScope.CONVERSATION:
            return conversation_flags
        return game_flags


def resolve_flag(raw_name: str) -> FlagReference:
    """
    Map a raw flag name to its scope and key.

    "conv:mood" -> (CONVERSATION, "mood")
    "game:gold" -> (GAME, "gold")
    "gold"      -> (GAME, "gold")
    """
    if raw_name.startswith(CONVERSATION_PREFIX):
        return FlagReference(FlagScope.CONVERSATION, raw_name[len(CONVERSATION_PREFIX):])
    if raw_name.startswith(GAME_PREFIX):
        return FlagReference(FlagScope.GAME, raw_name[len(GAME_PREFIX):])
    return FlagReference(FlagScope.GAME, raw_name)


def is_number(value: object) -> bool:
    """True for int and float values. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def add_to_flag(store: FlagStore, key: str, amount: Union[int, float]) -> Union[int, float]:
    """
    Read-modify-write on a numeric flag through get/set.

    Unset counts as 0. The result is not clamped.

    Raises:
        TypeError: the flag holds a non-numeric value
    """
    current = store.get(key)
    if current is None:
        current = 0
    elif not is_number(current):
        raise TypeError(f"Flag {key!r} is not numeric: {current!r}")

    new_value = current + amount
    store.set(key, new_value)
    return new_value


class FlagStore(ABC):
    """
    Interface for a key/value flag store.

    Hosts may pass any object with the same methods; the runner only
    checks that get/set/delete/all are present and callable.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[FlagValue]:
        """Get a flag value, or None if unset."""

    @abstractmethod
    def set(self, key: str, value: FlagValue) -> FlagStore:
        """Set a flag value."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Check whether a flag is set."""

    @abstractmethod
    def delete(self, key: str) -> FlagStore:
        """Remove a flag. Removing an unset flag is not an error."""

    @abstractmethod
    def clear(self) -> FlagStore:
        """Remove every flag."""

    @abstractmethod
    def all(self) -> dict[str, FlagValue]:
        """Get a copy of every flag."""

    def keys(self) -> list[str]:
        return list(self.all().keys())

    def increment(self, key: str, amount: Union[int, float] = 1) -> Union[int, float]:
        """Add to a numeric flag (unset counts as 0) and return the new value."""
        return add_to_flag(self, key, amount)

    def decrement(self, key: str, amount: Union[int, float] = 1) -> Union[int, float]:
        """Subtract from a numeric flag. The result is not clamped at zero."""
        return self.increment(key, -amount)

    def replace(self, values: dict[str, FlagValue]) -> FlagStore:
        """Clear the store and repopulate it from `values`."""
        self.clear()
        for key, value in values.items():
            self.set(key, value)
        return self


class MemoryFlagStore(FlagStore):
    """
    Dict-backed flag store.

    Used for conversation flags, and for game flags when the host does
    not supply its own store.
    """

    def __init__(self, initial: Optional[dict[str, FlagValue]] = None):
        self._flags: dict[str, FlagValue] = dict(initial or {})

    def get(self, key: str) -> Optional[FlagValue]:
        return self._flags.get(key)

    def set(self, key: str, value: FlagValue) -> MemoryFlagStore:
        self._flags[key] = value
        return self

    def has(self, key: str) -> bool:
        return key in self._flags

    def delete(self, key: str) -> MemoryFlagStore:
        self._flags.pop(key, None)
        return self

    def clear(self) -> MemoryFlagStore:
        self._flags.clear()
        return self

    def all(self) -> dict[str, FlagValue]:
        return dict(self._flags)

    def keys(self) -> list[str]:
        return list(self._flags)

    def __contains__(self, key: object) -> bool:
        return key in self._flags

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._flags))

    def __len__(self) -> int:
        return len(self._flags)

    def __repr__(self) -> str:
        return f"MemoryFlagStore({self._flags!r})"


def snapshot(store: FlagStore) -> dict[str, FlagValue]:
    """Shallow copy of every flag in a store."""
    return dict(store.all())


def replace_flags(store: FlagStore, values: dict[str, FlagValue]) -> None:
    """
    Clear a store and repopulate it from `values`.

    Works with host stores that only provide the minimal interface.
    """
    if isinstance(store, FlagStore):
        store.replace(values)
        return

    if callable(getattr(store, "clear", None)):
        store.clear()
    else:
        for key in list(store.all()):
            store.delete(key)
    for key, value in values.items():
        store.set(key, value)
