"""Domain type definitions mirrored from the device."""

from pydantic import BaseModel, Field

EMPTY_TIME = "00:00:00"


def parse_time(value: str) -> list[int]:
    """Split ``HH:MM:SS`` into its numbers."""
    return [int(part) for part in value.split(":")]


class Valve(BaseModel):
    """A valve as returned by GET /valves."""

    identifier: int
    alias: str = ""
    disabled: bool = False
    state: bool = False
    timer: str = EMPTY_TIME  # remaining manual-timer time, 00:00:00 = none


class Interval(BaseModel):
    """One scheduled on-time interval of a day."""

    index: int
    start: str = EMPTY_TIME
    end: str = EMPTY_TIME
    identifier: int = 0  # valve the interval drives
    active: bool = False
    disabled: bool = False

    @property
    def is_empty(self) -> bool:
        return (
            self.start == EMPTY_TIME
            and self.end == EMPTY_TIME
            and self.identifier == 0
            and not self.active
        )

    def clear(self) -> None:
        """Reset to the empty interval, as the device does on delete."""
        self.start = EMPTY_TIME
        self.end = EMPTY_TIME
        self.identifier = 0
        self.active = False

    @property
    def duration_seconds(self) -> int:
        """Length of the interval, never negative."""
        sh, sm, ss = parse_time(self.start)
        eh, em, es = parse_time(self.end)
        return max((es - ss) + (em - sm) * 60 + (eh - sh) * 3600, 0)


class ScheduledDay(BaseModel):
    """A weekday's schedule as returned by GET /scheduler/{day}."""

    disabled: bool = False
    intervals: list[Interval] = Field(default_factory=list)
