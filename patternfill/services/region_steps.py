from __future__ import annotations

import sys

from patternfill.models import ROWS_PER_BEAT, PatternConfig, RegionRequest


def step_spacing(pattern: PatternConfig) -> int:
    return ROWS_PER_BEAT // pattern.beat_subdivision


def first_step_row(region: RegionRequest, pattern: PatternConfig) -> int:
    # May fall outside a short region with an exclusive start.
    if region.start_inclusive:
        return region.start_row
    return region.start_row + step_spacing(pattern)


def last_step_row(region: RegionRequest, pattern: PatternConfig) -> int:
    spacing = step_spacing(pattern)
    last = region.start_row + region.length // spacing * spacing
    if region.end_inclusive:
        return last
    if last == region.end_row:
        last -= spacing
    return last


def num_steps_before_row(region: RegionRequest, pattern: PatternConfig, row: int) -> int:
    spacing = step_spacing(pattern)
    first = first_step_row(region, pattern)
    last = last_step_row(region, pattern)
    if last >= row:
        last -= ((last - row) // spacing + 1) * spacing
    if first > last:
        return 0
    return max(0, (last - first) // spacing + 1)


def num_steps(region: RegionRequest, pattern: PatternConfig) -> int:
    return num_steps_before_row(region, pattern, sys.maxsize)
