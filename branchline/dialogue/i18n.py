"""
Translation adapter interface.

Node text may be a translation key. Before interpolation the runner
asks the adapter whether the text is a known key and, if so, replaces
it with the translation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional


class I18nAdapter(ABC):
    """Translation lookup used by the text interpolator."""

    @abstractmethod
    def has_key(self, key: str) -> bool:
        """Check whether `key` is a known translation key."""

    @abstractmethod
    def translate(self, key: str, params: Optional[dict[str, Any]] = None) -> str:
        """Translate `key`, substituting `params`."""


class CallableI18nAdapter(I18nAdapter):
    """Adapter built from a pair of callables."""

    def __init__(
        self,
        translate: Callable[[str, dict[str, Any]], str],
        has_key: Callable[[str], bool],
    ):
        self._translate = translate
        self._has_key = has_key

    def has_key(self, key: str) -> bool:
        return bool(self._has_key(key))

    def translate(self, key: str, params: Optional[dict[str, Any]] = None) -> str:
        return self._translate(key, params or {})


class DictI18nAdapter(I18nAdapter):
    """
    Adapter over a flat key -> template mapping.

    Templates use str.format placeholders: "Hello {name}".
    """

    def __init__(self, translations: dict[str, str]):
        self.translations = translations

    def has_key(self, key: str) -> bool:
        return key in self.translations

    def translate(self, key: str, params: Optional[dict[str, Any]] = None) -> str:
        template = self.translations.get(key, key)
        if not params:
            return template
        return template.format(**params)


def create_i18n_adapter(instance: Any) -> I18nAdapter:
    """
    Wrap a translation library instance.

    The instance must expose `t(key, params)` and `has_key(key)`
    (`hasKey` is accepted too).
    """
    translate = getattr(instance, "t", None)
    has_key = getattr(instance, "has_key", None) or getattr(instance, "hasKey", None)

    if not callable(translate) or not callable(has_key):
        raise TypeError("i18n instance must provide callable t() and has_key()")

    return CallableI18nAdapter(translate=translate, has_key=has_key)


def is_i18n_adapter(obj: Any) -> bool:
    """Check for the adapter interface without requiring the base class."""
    return callable(getattr(obj, "translate", None)) and callable(getattr(obj, "has_key", None))
