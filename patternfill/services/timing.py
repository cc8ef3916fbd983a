from __future__ import annotations

from bisect import bisect_right
from dataclasses import replace
from typing import Iterable

from patternfill.models import ROWS_PER_BEAT, ChartEvent, ChartTiming


class RowTimer:
    """Converts chart rows to seconds using a piecewise-constant tempo map."""

    def __init__(self, timing: ChartTiming | None = None):
        self._timing = timing or ChartTiming()
        self._rows = [segment.row for segment in self._timing.tempos]
        self._seconds_per_row = [60.0 / (segment.bpm * ROWS_PER_BEAT) for segment in self._timing.tempos]
        self._segment_starts: list[float] = []
        elapsed = self._timing.offset_seconds
        for idx, row in enumerate(self._rows):
            if idx > 0:
                elapsed += (row - self._rows[idx - 1]) * self._seconds_per_row[idx - 1]
            self._segment_starts.append(elapsed)

    @property
    def timing(self) -> ChartTiming:
        return self._timing

    def time_at_row(self, row: int) -> float:
        # Rows before 0 extrapolate with the first tempo.
        idx = max(0, bisect_right(self._rows, row) - 1)
        return self._segment_starts[idx] + (row - self._rows[idx]) * self._seconds_per_row[idx]

    def retime(self, events: Iterable[ChartEvent]) -> list[ChartEvent]:
        return [replace(event, time=self.time_at_row(event.row)) for event in events]
