from __future__ import annotations

import math
from typing import Mapping, Sequence

from .dictionaries import (
    DEFAULT_PRIORITY,
    DEFAULT_PRIORITY_RULES,
    DEFAULT_UNIT_RULES,
    FALLBACK_HOURLY_RATE,
    HIGH_VALUE_PRIORITY,
    HIGH_VALUE_THRESHOLD,
    HOURS_PER_WORKDAY,
    HOURS_PER_WORKWEEK,
    PriorityRule,
    UnitRule,
)
from .models.quote import ServiceItem
from .models.task import TaskPriority


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def estimate_hours(
    service: ServiceItem,
    *,
    unit_rules: Mapping[str, UnitRule] = DEFAULT_UNIT_RULES,
    fallback_rate: float = FALLBACK_HOURLY_RATE,
) -> float:
    """Labour hours implied by a service line's unit and quantity.

    Units without a rule fall back to the line total divided by an
    effective hourly rate.
    """
    rule = unit_rules.get(service.unit)
    if rule is None:
        return max(1, round_half_up(service.total_price / fallback_rate))

    hours = service.quantity * rule.hours_per_unit
    if rule.rounded:
        hours = round_half_up(hours)
    if rule.minimum is None:
        return hours
    return max(rule.minimum, hours)


def determine_priority(
    service: ServiceItem,
    *,
    rules: Sequence[PriorityRule] = DEFAULT_PRIORITY_RULES,
    high_value_threshold: float = HIGH_VALUE_THRESHOLD,
) -> TaskPriority:
    for rule in rules:
        if rule.matches(service.description):
            return TaskPriority(rule.priority)
    if service.total_price > high_value_threshold:
        return TaskPriority(HIGH_VALUE_PRIORITY)
    return TaskPriority(DEFAULT_PRIORITY)


def estimate_duration(services: Sequence[ServiceItem]) -> str:
    """Rough calendar estimate shown alongside a freshly generated quote."""
    total_hours = sum(estimate_hours(service) for service in services)
    if total_hours <= HOURS_PER_WORKDAY:
        return "1 day"
    if total_hours <= HOURS_PER_WORKWEEK:
        return f"{math.ceil(total_hours / HOURS_PER_WORKDAY)} days"
    return f"{math.ceil(total_hours / HOURS_PER_WORKWEEK)} weeks"


__all__ = ["estimate_hours", "determine_priority", "estimate_duration", "round_half_up"]
