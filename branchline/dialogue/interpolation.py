"""
Text interpolation - {{token}} substitution in node text.

Tokens are resolved left to right, each occurrence on its own:
1. a custom interpolation function registered under the token
2. {{speaker}} -> the current node's speaker name, when it resolves
3. the token as a flag name ({{gold}}, {{game:gold}}, {{conv:mood}})
Unset flags become the empty string. Values are rendered by format_value().
"""

from __future__ import annotations

import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from branchline.dialogue.flags import FlagStore, resolve_flag
from branchline.dialogue.i18n import I18nAdapter
from branchline.dialogue.models import Node, Speaker

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{(\w+(?::\w+)?)\}\}")

SPEAKER_TOKEN = "speaker"


@dataclass
class InterpolationContext:
    """What a custom interpolation function gets to look at."""
    current_node: Node
    game_flags: FlagStore
    conversation_flags: FlagStore
    speaker: Optional[Speaker] = None


InterpolationFunction = Callable[[InterpolationContext], Union[Any, Awaitable[Any]]]


def translate_text(text: str, i18n: Optional[I18nAdapter]) -> str:
    """Replace `text` with its translation when it is a known key."""
    if i18n is not None and i18n.has_key(text):
        return i18n.translate(text, {})
    return text


def format_value(value: Any) -> str:
    """
    Render a substituted value for display.

    Booleans render as "true"/"false" and whole floats drop the
    fractional part, so text reads the same as the JSON it came from.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


async def _resolve_token(
    token: str,
    context: InterpolationContext,
    functions: Mapping[str, InterpolationFunction],
) -> str:
    fn = functions.get(token)
    if fn is not None:
        value = fn(context)
        if inspect.isawaitable(value):
            value = await value
        return format_value(value) if value else ""

    if token == SPEAKER_TOKEN and context.speaker is not None:
        return context.speaker.name

    ref = resolve_flag(token)
    value = ref.store(context.game_flags, context.conversation_flags).get(ref.key)
    return "" if value is None else format_value(value)


async def interpolate_text(
    text: str,
    context: InterpolationContext,
    functions: Optional[Mapping[str, InterpolationFunction]] = None,
    i18n: Optional[I18nAdapter] = None,
) -> str:
    """
    Produce display text for a node.

    Args:
        text: Raw node text or translation key
        context: Node, speaker and flag stores
        functions: Custom interpolation functions by token name;
                   may be sync or async
        i18n: Optional translation adapter applied before substitution

    Returns:
        The substituted text
    """
    text = translate_text(text, i18n)
    functions = functions or {}

    parts: list[str] = []
    last = 0
    for match in TOKEN_PATTERN.finditer(text):
        parts.append(text[last:match.start()])
        parts.append(await _resolve_token(match.group(1), context, functions))
        last = match.end()

    if not parts:
        return text

    parts.append(text[last:])
    result = "".join(parts)
    logger.debug("Interpolated %r -> %r", text, result)
    return result
