from __future__ import annotations

import logging
from typing import Sequence

from patternfill.logging_utils import log_event
from patternfill.models import ERASABLE_KINDS, ChartEvent, RegionRequest
from patternfill.services.event_index import EventIndex

logger = logging.getLogger(__name__)


def events_to_erase(index: EventIndex, region: RegionRequest) -> list[ChartEvent]:
    # Overlapping holds start before the region, so the two lists never share an event.
    doomed = index.holds_overlapping(region.start_row)
    doomed.extend(
        event
        for event in index.in_range(region.start_row, region.end_row, end_inclusive=region.end_inclusive)
        if event.kind in ERASABLE_KINDS
    )
    return doomed


def erase_region(index: EventIndex, region: RegionRequest) -> list[ChartEvent]:
    return index.delete_many(events_to_erase(index, region))


def erase_regions(index: EventIndex, regions: Sequence[RegionRequest]) -> list[list[ChartEvent]]:
    """Erase each region in turn, deleting immediately.

    Overlapping regions therefore never try to delete the same event twice.
    """
    erased: list[list[ChartEvent]] = []
    for region in regions:
        removed = erase_region(index, region)
        log_event(
            logger,
            "pattern_region_erased",
            start_row=region.start_row,
            end_row=region.end_row,
            end_inclusive=region.end_inclusive,
            removed_count=len(removed),
        )
        erased.append(removed)
    return erased
