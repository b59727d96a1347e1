"""Wall-clock slot grid used to validate ``HH:MM`` times on timetable entries."""
from __future__ import annotations

import re

from app.core.config import Settings
from app.core.exceptions import ConfigurationError, InvalidTimeRange

TIME_PATTERN = re.compile(r"([01]\d|2[0-3]):[0-5]\d")
MINUTES_PER_DAY = 24 * 60


def parse_time_to_minutes(value: str) -> int:
    if not isinstance(value, str) or not TIME_PATTERN.fullmatch(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(total: int) -> str:
    total = max(0, min(total, MINUTES_PER_DAY - 1))
    return f"{total // 60:02d}:{total % 60:02d}"


def overlaps(start_a, end_a, start_b, end_b) -> bool:
    """Half-open overlap of ``[start_a, end_a)`` and ``[start_b, end_b)``.

    Works for minute offsets and for zero-padded ``HH:MM`` strings alike.
    """
    return start_a < end_b and start_b < end_a


class TimeGrid:
    def __init__(
        self,
        start: str = "10:00",
        end: str = "16:00",
        step_minutes: int = 45,
        *,
        enforce: bool = True,
    ) -> None:
        try:
            first = parse_time_to_minutes(start)
            last = parse_time_to_minutes(end)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid timetable grid bounds {start!r}-{end!r}") from exc
        if step_minutes <= 0 or last <= first:
            raise ConfigurationError(
                f"Invalid timetable grid {start}-{end} with {step_minutes} minute slots"
            )
        self.enforce = enforce
        self.step_minutes = step_minutes
        self.slots: tuple[str, ...] = tuple(
            format_minutes(minute) for minute in range(first, last + 1, step_minutes)
        )
        self._positions = {value: index for index, value in enumerate(self.slots)}

    @classmethod
    def from_settings(cls, settings: Settings) -> "TimeGrid":
        return cls(
            settings.timetable_grid_start,
            settings.timetable_grid_end,
            settings.timetable_slot_minutes,
            enforce=settings.timetable_enforce_grid,
        )

    def contains(self, value: str) -> bool:
        return value in self._positions

    def validate_range(self, start: str, end: str) -> None:
        for label, value in (("startTime", start), ("endTime", end)):
            if not isinstance(value, str) or not TIME_PATTERN.fullmatch(value):
                raise InvalidTimeRange(
                    f"{label} must be in HH:MM 24-hour format",
                    details={"field": label, "value": value},
                )
            if self.enforce and not self.contains(value):
                raise InvalidTimeRange(
                    f"{label} {value} is not a timetable slot boundary",
                    details={"field": label, "value": value, "allowed": list(self.slots)},
                )
        if parse_time_to_minutes(end) <= parse_time_to_minutes(start):
            raise InvalidTimeRange(
                "endTime must be after startTime",
                details={"startTime": start, "endTime": end},
            )
