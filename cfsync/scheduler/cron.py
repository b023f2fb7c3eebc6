"""Translation between schedule descriptors and five-field cron expressions.

Expressions follow standard cron ordering: minute, hour, day-of-month, month,
day-of-week (0 or 7 = Sunday). Parsing is best-effort: anything that is not
recognisably daily, weekly or monthly comes back as ``CustomSchedule`` with the
original string preserved verbatim.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Union

from apscheduler.triggers.cron import CronTrigger

from cfsync.exceptions import ConfigValidationError

CRON_FIELD_COUNT = 5
WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]

# Numbers not preceded by "/" are weekday values; step sizes are left alone
_WEEKDAY_NUMBER = re.compile(r"(?<![/\d])(\d+)")


@dataclass(frozen=True)
class DailySchedule:
    hour: int
    minute: int = 0


@dataclass(frozen=True)
class WeeklySchedule:
    hour: int
    minute: int = 0
    days: FrozenSet[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class MonthlySchedule:
    hour: int
    minute: int = 0
    day_of_month: int = 1


@dataclass(frozen=True)
class CustomSchedule:
    raw_expression: str


ScheduleDescriptor = Union[DailySchedule, WeeklySchedule, MonthlySchedule, CustomSchedule]


def to_expression(descriptor: ScheduleDescriptor) -> str:
    if isinstance(descriptor, CustomSchedule):
        return descriptor.raw_expression
    if isinstance(descriptor, DailySchedule):
        return f"{descriptor.minute} {descriptor.hour} * * *"
    if isinstance(descriptor, WeeklySchedule):
        days = ",".join(str(d) for d in sorted(descriptor.days)) if descriptor.days else "*"
        return f"{descriptor.minute} {descriptor.hour} * * {days}"
    if isinstance(descriptor, MonthlySchedule):
        return f"{descriptor.minute} {descriptor.hour} {descriptor.day_of_month} * *"
    raise TypeError(f"Unsupported schedule descriptor: {descriptor!r}")


def _parse_int(value: str, low: int, high: int) -> Optional[int]:
    if not value.isdigit():
        return None
    number = int(value)
    return number if low <= number <= high else None


def from_expression(expression: str) -> ScheduleDescriptor:
    """Classify a cron expression, trying Daily, Weekly, Monthly in that order."""
    parts = expression.split()
    if len(parts) != CRON_FIELD_COUNT:
        return CustomSchedule(expression)

    minute_field, hour_field, day_of_month, month, day_of_week = parts
    minute = _parse_int(minute_field, 0, 59)
    hour = _parse_int(hour_field, 0, 23)
    if minute is None or hour is None:
        return CustomSchedule(expression)

    if day_of_month == "*" and month == "*" and day_of_week == "*":
        return DailySchedule(hour=hour, minute=minute)

    if day_of_month == "*" and month == "*":
        days = frozenset(
            int(token) for token in day_of_week.split(",") if token.isdigit()
        )
        if not days:
            return CustomSchedule(expression)
        return WeeklySchedule(hour=hour, minute=minute, days=days)

    if month == "*" and day_of_week == "*":
        day = _parse_int(day_of_month, 1, 31) or 1
        return MonthlySchedule(hour=hour, minute=minute, day_of_month=day)

    return CustomSchedule(expression)


def _translate_day_of_week(value: str) -> str:
    def replace(match: re.Match) -> str:
        number = int(match.group(1))
        if number > 7:
            raise ConfigValidationError(f"Invalid day-of-week value: {number}")
        return WEEKDAY_NAMES[number % 7]

    return _WEEKDAY_NUMBER.sub(replace, value)


def build_trigger(expression: str, timezone: Optional[str] = None) -> CronTrigger:
    """Build an APScheduler trigger from a standard five-field cron expression.

    APScheduler counts weekdays from Monday, so numeric day-of-week values are
    rewritten to names before the trigger is built.

    Raises:
        ConfigValidationError: if the expression cannot be scheduled.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise ConfigValidationError("Schedule expression must be a non-empty string")

    parts = expression.split()
    if len(parts) != CRON_FIELD_COUNT:
        raise ConfigValidationError(
            f"Expected {CRON_FIELD_COUNT} cron fields, got {len(parts)}: '{expression}'"
        )

    minute, hour, day, month, day_of_week = parts
    try:
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=_translate_day_of_week(day_of_week),
            timezone=timezone or None,
        )
    except ValueError as e:
        raise ConfigValidationError(f"Invalid cron expression '{expression}': {e}") from e


def validate_expression(expression: str) -> str:
    build_trigger(expression)
    return expression.strip()


def describe(descriptor: ScheduleDescriptor) -> Dict[str, Any]:
    """Plain dict view of a descriptor for API responses."""
    if isinstance(descriptor, DailySchedule):
        return {"frequency": "daily", "hour": descriptor.hour, "minute": descriptor.minute}
    if isinstance(descriptor, WeeklySchedule):
        return {
            "frequency": "weekly",
            "hour": descriptor.hour,
            "minute": descriptor.minute,
            "days": sorted(descriptor.days),
        }
    if isinstance(descriptor, MonthlySchedule):
        return {
            "frequency": "monthly",
            "hour": descriptor.hour,
            "minute": descriptor.minute,
            "day_of_month": descriptor.day_of_month,
        }
    return {"frequency": "custom", "expression": descriptor.raw_expression}
