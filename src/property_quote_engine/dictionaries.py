from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Pattern, Sequence

GST_RATE = "0.10"
DEFAULT_CLIENT_NAME = "Valued Customer"
ADDRESS_PLACEHOLDER = "Address to be confirmed"
QUOTE_VALIDITY_DAYS = 30

HOURS_PER_WORKDAY = 8
HOURS_PER_WORKWEEK = 40


@dataclass(frozen=True)
class UnitRule:
    """How a unit of measure converts into labour hours.

    ``minimum`` of ``None`` means the quantity is passed through untouched.
    """

    hours_per_unit: float
    rounded: bool = True
    minimum: float | None = 1.0


DEFAULT_UNIT_RULES: Mapping[str, UnitRule] = {
    "hours": UnitRule(hours_per_unit=1.0, rounded=False, minimum=None),
    "square meters": UnitRule(hours_per_unit=0.5),
    "sqm": UnitRule(hours_per_unit=0.5),
    "linear meters": UnitRule(hours_per_unit=0.25),
    "m": UnitRule(hours_per_unit=0.25),
    "item": UnitRule(hours_per_unit=1.0, rounded=False),
    "items": UnitRule(hours_per_unit=1.0, rounded=False),
}

# Effective labour rate assumed for units with no rule.
FALLBACK_HOURLY_RATE = 100.0


@dataclass(frozen=True)
class PriorityRule:
    name: str
    pattern: Pattern[str]
    priority: str

    def matches(self, description: str) -> bool:
        return bool(self.pattern.search(description))


DEFAULT_PRIORITY_RULES: Sequence[PriorityRule] = (
    PriorityRule(
        name="safety",
        pattern=re.compile(r"electrical|gas|plumbing|safety|emergency", re.IGNORECASE),
        priority="High",
    ),
    PriorityRule(
        name="structural",
        pattern=re.compile(r"structural|foundation|roof|wall", re.IGNORECASE),
        priority="Medium",
    ),
)

HIGH_VALUE_THRESHOLD = 1000.0
HIGH_VALUE_PRIORITY = "Medium"
DEFAULT_PRIORITY = "Low"


DEFAULT_CATEGORY_ASSIGNEES: Mapping[str, str] = {
    "Electrical": "Mike (Electrician)",
    "Plumbing": "Sarah (Plumber)",
    "Painting": "Alex (Painter)",
    "Carpentry": "David (Carpenter)",
    "Cleaning": "Clean Team",
    "Landscaping": "Garden Crew",
    "General": "Handyman Joe",
}


TASK_SHEET_HEADERS: Sequence[str] = (
    "JobId",
    "Task",
    "Assignee",
    "Status",
    "Due",
    "Category",
    "Priority",
    "EstimatedHours",
    "Notes",
)


__all__ = [
    "GST_RATE",
    "DEFAULT_CLIENT_NAME",
    "ADDRESS_PLACEHOLDER",
    "QUOTE_VALIDITY_DAYS",
    "HOURS_PER_WORKDAY",
    "HOURS_PER_WORKWEEK",
    "UnitRule",
    "DEFAULT_UNIT_RULES",
    "FALLBACK_HOURLY_RATE",
    "PriorityRule",
    "DEFAULT_PRIORITY_RULES",
    "HIGH_VALUE_THRESHOLD",
    "HIGH_VALUE_PRIORITY",
    "DEFAULT_PRIORITY",
    "DEFAULT_CATEGORY_ASSIGNEES",
    "TASK_SHEET_HEADERS",
]
