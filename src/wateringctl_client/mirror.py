"""In-memory mirrors of the device's valves and schedule.

Push events mutate cached entities in place. An event whose key does
not resolve (unloaded mirror, unknown valve, unknown day or interval,
unparsable arguments) means the cache is stale: the affected data is
fetched again instead of failing. Missed or reordered events are thus
repaired without refetching on every push.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .bus import EventBus
from .protocol.events import DomainEvent, EventType
from .types import EMPTY_TIME, Interval, ScheduledDay, Valve

logger = logging.getLogger(__name__)

ValveFetcher = Callable[[], Awaitable[list[Valve]]]
DayFetcher = Callable[[str], Awaitable[ScheduledDay]]


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# Valve handlers return False if the event lacks the value to apply


def _valve_on(valve: Valve, event: DomainEvent) -> bool:
    valve.state = True
    return True


def _valve_off(valve: Valve, event: DomainEvent) -> bool:
    valve.state = False
    return True


def _valve_disable_on(valve: Valve, event: DomainEvent) -> bool:
    valve.disabled = True
    return True


def _valve_disable_off(valve: Valve, event: DomainEvent) -> bool:
    valve.disabled = False
    return True


def _valve_rename(valve: Valve, event: DomainEvent) -> bool:
    if len(event.args) < 2:
        return False
    # Aliases may contain the delimiter
    valve.alias = ";".join(event.args[1:])
    return True


def _valve_timer(valve: Valve, event: DomainEvent) -> bool:
    valve.timer = event.arg(1) or EMPTY_TIME
    return True


VALVE_HANDLERS: dict[EventType, Callable[[Valve, DomainEvent], bool]] = {
    EventType.VALVE_ON: _valve_on,
    EventType.VALVE_OFF: _valve_off,
    EventType.VALVE_DISABLE_ON: _valve_disable_on,
    EventType.VALVE_DISABLE_OFF: _valve_disable_off,
    EventType.VALVE_RENAME: _valve_rename,
    EventType.VALVE_TIMER_UPDATED: _valve_timer,
}


class ValveMirror:
    """Cached valve list keyed by valve identifier."""

    def __init__(self, fetch: ValveFetcher):
        self._fetch = fetch
        self.items: list[Valve] | None = None
        self.refetches = 0

    def handles(self, kind: EventType | None) -> bool:
        return kind in VALVE_HANDLERS

    def find(self, identifier: int) -> Valve | None:
        for valve in self.items or []:
            if valve.identifier == identifier:
                return valve
        return None

    async def refresh(self) -> list[Valve]:
        """Replace the cache with a full fetch."""
        self.refetches += 1
        valves = await self._fetch()
        self.items = sorted(valves, key=lambda v: v.identifier)
        return self.items

    async def apply(self, event: DomainEvent) -> bool:
        """Apply a valve event.

        Returns:
            False if the event is not a valve event
        """
        handler = VALVE_HANDLERS.get(event.kind) if event.kind else None
        if handler is None:
            return False

        identifier = _parse_int(event.arg(0))
        valve = self.find(identifier) if identifier is not None else None
        if valve is None or not handler(valve, event):
            logger.info(f"{event.type} for unresolved valve {event.arg(0)!r}, refetching")
            await self.refresh()
        return True


# Schedule handlers return False if the event lacks the value to apply


def _interval_disable_on(interval: Interval, event: DomainEvent) -> bool:
    interval.disabled = True
    return True


def _interval_disable_off(interval: Interval, event: DomainEvent) -> bool:
    interval.disabled = False
    return True


def _interval_start(interval: Interval, event: DomainEvent) -> bool:
    start = event.arg(2)
    if not start:
        return False
    interval.start = start
    return True


def _interval_end(interval: Interval, event: DomainEvent) -> bool:
    end = event.arg(2)
    if not end:
        return False
    interval.end = end
    return True


def _interval_identifier(interval: Interval, event: DomainEvent) -> bool:
    identifier = _parse_int(event.arg(2))
    if identifier is None:
        return False
    interval.identifier = identifier
    return True


def _interval_deleted(interval: Interval, event: DomainEvent) -> bool:
    interval.clear()
    return True


INTERVAL_HANDLERS: dict[EventType, Callable[[Interval, DomainEvent], bool]] = {
    EventType.INTERVAL_DISABLE_ON: _interval_disable_on,
    EventType.INTERVAL_DISABLE_OFF: _interval_disable_off,
    EventType.INTERVAL_START_CHANGE: _interval_start,
    EventType.INTERVAL_END_CHANGE: _interval_end,
    EventType.INTERVAL_IDENTIFIER_CHANGE: _interval_identifier,
    EventType.INTERVAL_DELETED: _interval_deleted,
}

DAY_DISABLED: dict[EventType, bool] = {
    EventType.DAY_DISABLE_ON: True,
    EventType.DAY_DISABLE_OFF: False,
}


class ScheduleMirror:
    """Cached weekday schedules keyed by day, intervals by (day, index)."""

    def __init__(self, fetch: DayFetcher):
        self._fetch = fetch
        self.days: dict[str, ScheduledDay] = {}
        self.refetches = 0

    def handles(self, kind: EventType | None) -> bool:
        return kind in INTERVAL_HANDLERS or kind in DAY_DISABLED

    def find_interval(self, day: str, index: int) -> Interval | None:
        schedule = self.days.get(day)
        if schedule is None:
            return None
        for interval in schedule.intervals:
            if interval.index == index:
                return interval
        return None

    async def refresh(self, day: str) -> ScheduledDay:
        """Replace one day's cache with a fetch."""
        self.refetches += 1
        schedule = await self._fetch(day)
        self.days[day] = schedule
        return schedule

    async def refresh_all(self) -> None:
        """Fetch every cached day again (counts as one refetch)."""
        self.refetches += 1
        for day in list(self.days):
            self.days[day] = await self._fetch(day)

    async def apply(self, event: DomainEvent) -> bool:
        """Apply a day or interval event.

        Returns:
            False if the event is not a schedule event
        """
        kind = event.kind
        if not self.handles(kind):
            return False

        day = event.arg(0)
        if not day:
            logger.info(f"{event.type} without day, refetching all cached days")
            await self.refresh_all()
            return True

        if kind in DAY_DISABLED:
            schedule = self.days.get(day)
            if schedule is None:
                logger.info(f"{event.type} for uncached day {day}, refetching")
                await self.refresh(day)
            else:
                schedule.disabled = DAY_DISABLED[kind]
            return True

        index = _parse_int(event.arg(1))
        interval = self.find_interval(day, index) if index is not None else None
        if interval is None or not INTERVAL_HANDLERS[kind](interval, event):
            logger.info(f"{event.type} for unresolved interval {day}/{event.arg(1)}, refetching")
            await self.refresh(day)
        return True


class MirrorReconciler:
    """Routes bus events to the mirror responsible for them."""

    def __init__(self, valves: ValveMirror, schedule: ScheduleMirror):
        self.valves = valves
        self.schedule = schedule
        self._unsubscribe: Callable[[], None] | None = None

    def attach(self, bus: EventBus) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = bus.subscribe_all(self.handle)

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle(self, event: DomainEvent) -> None:
        if self.valves.handles(event.kind):
            await self.valves.apply(event)
        elif self.schedule.handles(event.kind):
            await self.schedule.apply(event)
