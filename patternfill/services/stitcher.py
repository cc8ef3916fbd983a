from __future__ import annotations

from typing import Sequence

from patternfill.models import ChartEvent, RegionRequest
from patternfill.services.event_index import EventIndex, sort_events
from patternfill.services.timing import RowTimer


def overlaps_next_region(region: RegionRequest, next_region: RegionRequest | None) -> bool:
    if next_region is None:
        return False
    if next_region.start_row < region.end_row:
        return True
    return next_region.start_row == region.end_row and region.end_inclusive and next_region.start_inclusive


def truncate_for_next_region(
    events: Sequence[ChartEvent],
    region: RegionRequest,
    next_region: RegionRequest | None,
) -> list[ChartEvent]:
    ordered = sort_events(events)
    if not overlaps_next_region(region, next_region):
        return ordered
    # Rows from the next region's start onward are left to that region.
    return [event for event in ordered if event.row < next_region.start_row]


class PatternStitcher:
    def __init__(self, timer: RowTimer):
        self._timer = timer

    def stitch(
        self,
        working: EventIndex,
        synthesized: Sequence[ChartEvent],
        region: RegionRequest,
        next_region: RegionRequest | None,
    ) -> list[ChartEvent]:
        retained = self._timer.retime(truncate_for_next_region(synthesized, region, next_region))
        if retained:
            working.insert_many(retained)
            working.retime(self._timer)
        return retained
