from __future__ import annotations

from threading import Lock
from typing import Iterable

from patternfill.models import ChartEvent, ChartPayload, ChartTiming
from patternfill.services.event_index import EventIndex
from patternfill.services.timing import RowTimer


class Chart:
    """Externally owned chart state: its event index, timing and identity."""

    def __init__(
        self,
        *,
        chart_type: str = "dance-single",
        rating: int = 1,
        expressed_chart_config: str = "Default",
        timing: ChartTiming | None = None,
        events: Iterable[ChartEvent] = (),
    ):
        self.chart_type = chart_type
        self.rating = rating
        self.expressed_chart_config = expressed_chart_config
        self.timer = RowTimer(timing)
        self.index = EventIndex(self.timer.retime(events))
        self.lock = Lock()

    @classmethod
    def from_payload(cls, payload: ChartPayload) -> Chart:
        return cls(
            chart_type=payload.chart_type,
            rating=payload.rating,
            expressed_chart_config=payload.expressed_chart_config,
            timing=payload.timing,
            events=payload.events,
        )

    @property
    def events(self) -> tuple[ChartEvent, ...]:
        return self.index.events

    def add_events(self, events: Iterable[ChartEvent]) -> None:
        self.index.insert_many(self.timer.retime(events))

    def delete_events(self, events: Iterable[ChartEvent]) -> list[ChartEvent]:
        return self.index.delete_many(events)
