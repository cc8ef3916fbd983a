from __future__ import annotations

from bisect import bisect_left
from collections import Counter
from typing import Iterable, Iterator

from patternfill.models import ChartEvent
from patternfill.services.timing import RowTimer

KIND_ORDER = {"misc": 0, "tap": 1, "hold": 1, "lift": 1, "mine": 2}


def event_sort_key(event: ChartEvent) -> tuple[int, int, int]:
    return (event.row, KIND_ORDER[event.kind], -1 if event.lane is None else event.lane)


def sort_events(events: Iterable[ChartEvent]) -> list[ChartEvent]:
    return sorted(events, key=event_sort_key)


class EventCursor:
    """Bidirectional cursor over one immutable generation of an EventIndex.

    Positions run from -1 (before the first event) to len (past the last one).
    Moving off either end leaves the cursor invalid but still movable back.
    """

    __slots__ = ("_events", "_position")

    def __init__(self, events: tuple[ChartEvent, ...], position: int):
        self._events = events
        self._position = max(-1, min(position, len(events)))

    @property
    def position(self) -> int:
        return self._position

    @property
    def valid(self) -> bool:
        return 0 <= self._position < len(self._events)

    @property
    def current(self) -> ChartEvent | None:
        return self._events[self._position] if self.valid else None

    def move_next(self) -> bool:
        self._position = min(self._position + 1, len(self._events))
        return self.valid

    def move_prev(self) -> bool:
        self._position = max(self._position - 1, -1)
        return self.valid

    def clone(self) -> EventCursor:
        return EventCursor(self._events, self._position)


class EventIndex:
    """Row-ordered event collection backed by a copy-on-write tuple.

    Every mutation swaps in a new tuple, so snapshots and cursors taken
    earlier keep seeing the events as they were.
    """

    def __init__(self, events: Iterable[ChartEvent] = ()):
        self._events: tuple[ChartEvent, ...] = tuple(sort_events(events))

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[ChartEvent]:
        return iter(self._events)

    def __contains__(self, event: object) -> bool:
        return event in self._events

    @property
    def events(self) -> tuple[ChartEvent, ...]:
        return self._events

    def snapshot(self) -> EventIndex:
        clone = EventIndex.__new__(EventIndex)
        clone._events = self._events
        return clone

    def first(self) -> EventCursor:
        return EventCursor(self._events, 0)

    def last(self) -> EventCursor:
        return EventCursor(self._events, len(self._events) - 1)

    def cursor_at(self, row: int) -> EventCursor:
        """Cursor on the first event at or after ``row``."""
        return EventCursor(self._events, bisect_left(self._events, row, key=lambda event: event.row))

    def in_range(self, start_row: int, end_row: int, end_inclusive: bool = False) -> list[ChartEvent]:
        out: list[ChartEvent] = []
        cursor = self.cursor_at(start_row)
        while cursor.valid:
            event = cursor.current
            if event.row > end_row or (event.row == end_row and not end_inclusive):
                break
            out.append(event)
            cursor.move_next()
        return out

    def holds_overlapping(self, row: int) -> list[ChartEvent]:
        """Holds that begin before ``row`` and are still held at it."""
        out: list[ChartEvent] = []
        for event in self._events:
            if event.row >= row:
                break
            if event.kind == "hold" and event.end_row >= row:
                out.append(event)
        return out

    def insert(self, event: ChartEvent) -> None:
        self.insert_many([event])

    def insert_many(self, events: Iterable[ChartEvent]) -> None:
        additions = tuple(events)
        if additions:
            self._events = tuple(sort_events(self._events + additions))

    def delete_many(self, events: Iterable[ChartEvent]) -> list[ChartEvent]:
        pending = Counter(events)
        if not pending:
            return []
        kept: list[ChartEvent] = []
        removed: list[ChartEvent] = []
        for event in self._events:
            if pending[event] > 0:
                pending[event] -= 1
                removed.append(event)
            else:
                kept.append(event)
        self._events = tuple(kept)
        return removed

    def retime(self, timer: RowTimer) -> None:
        self._events = tuple(timer.retime(self._events))
