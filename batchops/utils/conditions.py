"""Guard conditions shared by batch updates and the custom target filter."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from batchops.schemas import Condition

logger = logging.getLogger(__name__)


def _compare(field_value: Any, operator: str, expected: Any) -> bool:
    if operator == "equals":
        return field_value == expected
    if operator == "not_equals":
        return field_value != expected
    if operator == "contains":
        return str(expected) in str(field_value)
    try:
        if operator == "greater_than":
            return field_value > expected
        if operator == "less_than":
            return field_value < expected
    except TypeError:
        # None or mismatched types never satisfy an ordering comparison
        return False
    logger.warning(f"Unknown condition operator '{operator}', treating as satisfied")
    return True


def evaluate_condition(item: Mapping[str, Any], condition: Condition) -> bool:
    return _compare(item.get(condition.field), condition.operator, condition.value)


def conditions_met(item: Mapping[str, Any], conditions: Iterable[Condition]) -> bool:
    """All conditions must hold (logical AND); an empty list always holds."""
    return all(evaluate_condition(item, condition) for condition in conditions)
