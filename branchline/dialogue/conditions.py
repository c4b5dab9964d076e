"""
Condition evaluation over the two flag stores.

Evaluation is read-only and synchronous. Sub-conditions are visited
left to right; `and`/`or` stop at the first deciding result.
"""

from __future__ import annotations

import logging
import operator
from typing import Any, Callable, Optional

from branchline.dialogue.flags import FlagStore, is_number, resolve_flag
from branchline.dialogue.models import (
    AndCondition,
    CheckCondition,
    Condition,
    NotCondition,
    OrCondition,
)

logger = logging.getLogger(__name__)

# Called once per leaf check with (condition, result)
CheckObserver = Callable[[CheckCondition, bool], None]

_ORDERING = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def values_equal(left: Any, right: Any) -> bool:
    """Strict equality: a boolean never equals a number (True != 1)."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def compare(flag_value: Any, op: str, value: Any) -> bool:
    """
    Apply a comparison operator.

    Ordering operators only compare two numbers. Any other pairing,
    including an unset flag, is false. Unknown operators are false.
    """
    if op == "==":
        return values_equal(flag_value, value)
    if op == "!=":
        return not values_equal(flag_value, value)

    fn = _ORDERING.get(op)
    if fn is None:
        logger.debug("Unknown condition operator %r", op)
        return False
    if not (is_number(flag_value) and is_number(value)):
        return False
    return fn(flag_value, value)


def evaluate_condition(
    condition: Condition,
    game_flags: FlagStore,
    conversation_flags: FlagStore,
    on_check: Optional[CheckObserver] = None,
) -> bool:
    """
    Evaluate a condition tree.

    Args:
        condition: Check, And, Or or Not condition
        game_flags: Persistent store
        conversation_flags: Ephemeral store
        on_check: Optional observer called after each leaf check

    Returns:
        The boolean result. Anything that is not one of the four
        condition shapes evaluates to False.
    """
    if isinstance(condition, CheckCondition):
        ref = resolve_flag(condition.flag)
        flag_value = ref.store(game_flags, conversation_flags).get(ref.key)
        result = compare(flag_value, condition.operator, condition.value)
        logger.debug(
            "check %s %s %r -> %s (flag=%r)",
            condition.flag, condition.operator, condition.value, result, flag_value,
        )
        if on_check is not None:
            on_check(condition, result)
        return result

    if isinstance(condition, AndCondition):
        return all(
            evaluate_condition(c, game_flags, conversation_flags, on_check)
            for c in condition.and_
        )

    if isinstance(condition, OrCondition):
        return any(
            evaluate_condition(c, game_flags, conversation_flags, on_check)
            for c in condition.or_
        )

    if isinstance(condition, NotCondition):
        return not evaluate_condition(condition.not_, game_flags, conversation_flags, on_check)

    return False
