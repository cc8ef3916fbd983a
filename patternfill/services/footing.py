from __future__ import annotations

from dataclasses import dataclass, field

from patternfill.models import (
    INVALID_ARROW,
    INVALID_FOOT,
    L,
    NUM_FEET,
    NUM_FOOT_PORTIONS,
    R,
    StepGraph,
)
from patternfill.services.event_index import EventCursor
from patternfill.services.search_graph import SearchChain, SearchNode


@dataclass
class Footing:
    arrows: list[int] = field(default_factory=lambda: [INVALID_ARROW] * NUM_FEET)
    entry_foot: int = INVALID_FOOT
    entry_time: float = 0.0

    @property
    def resolved_count(self) -> int:
        return sum(1 for arrow in self.arrows if arrow != INVALID_ARROW)

    @property
    def complete(self) -> bool:
        return self.resolved_count == NUM_FEET


@dataclass
class _SteppedLanes:
    lanes: list[bool]
    row: int | None = None


def _refresh_stepped_lanes(node: SearchNode, cursor: EventCursor, stepped: _SteppedLanes, forward: bool) -> None:
    if stepped.row == node.row:
        return

    stepped.lanes = [False] * len(stepped.lanes)
    while cursor.valid:
        event = cursor.current
        if (event.row > node.row) if forward else (event.row < node.row):
            break
        if event.row == node.row and event.is_step and event.lane is not None and 0 <= event.lane < len(stepped.lanes):
            stepped.lanes[event.lane] = True
        if forward:
            cursor.move_next()
        else:
            cursor.move_prev()
    stepped.row = node.row


def _update_footing(node: SearchNode, footing: Footing, stepped: _SteppedLanes, record_entry: bool) -> None:
    # Only nodes reached by stepping say which foot landed on the row's arrows.
    if not node.follows_step:
        return

    for foot in range(NUM_FEET):
        if footing.arrows[foot] != INVALID_ARROW:
            continue
        for portion in range(NUM_FOOT_PORTIONS):
            if node.is_lifted(foot, portion):
                continue
            arrow = node.arrow(foot, portion)
            if not 0 <= arrow < len(stepped.lanes) or not stepped.lanes[arrow]:
                continue
            if record_entry and footing.entry_foot == INVALID_FOOT:
                footing.entry_foot = foot
                footing.entry_time = node.time
            footing.arrows[foot] = arrow
            break


def _scan(step_graph: StepGraph, chain: SearchChain, node_index: int | None, cursor: EventCursor, forward: bool) -> Footing:
    footing = Footing()
    stepped = _SteppedLanes(lanes=[False] * step_graph.lane_count)
    while node_index is not None:
        node = chain.node(node_index)
        _refresh_stepped_lanes(node, cursor, stepped, forward)
        _update_footing(node, footing, stepped, record_entry=not forward)
        if footing.complete:
            break
        node_index = node.next if forward else node.previous
    return footing


def preceding_footing(step_graph: StepGraph, chain: SearchChain, node_index: int | None, cursor: EventCursor) -> Footing:
    """Scan backwards from the last node before a region.

    ``cursor`` must sit after every event at or before the node's row; a
    past-the-end cursor is stepped back onto the last event. The first foot
    resolved (the most recent step) becomes the entry foot.
    """
    if not cursor.valid:
        cursor.move_prev()
    return _scan(step_graph, chain, node_index, cursor, forward=False)


def following_footing(step_graph: StepGraph, chain: SearchChain, node_index: int | None, cursor: EventCursor) -> Footing:
    """Scan forwards from the first node at or after a region start."""
    if node_index is None:
        return Footing()

    node_row = chain.node(node_index).row
    if not cursor.valid:
        cursor.move_prev()
    while cursor.valid and cursor.current.row >= node_row:
        if not cursor.move_prev():
            cursor.move_next()
            break
    return _scan(step_graph, chain, node_index, cursor, forward=True)


def apply_default_footing(step_graph: StepGraph, footing: Footing, *, default_entry_foot: bool = False) -> Footing:
    for foot in (L, R):
        if footing.arrows[foot] == INVALID_ARROW:
            footing.arrows[foot] = step_graph.root_arrow(foot)

    # Defaults can land both feet on one arrow; reset both rather than one.
    if footing.arrows[L] == footing.arrows[R]:
        footing.arrows = [step_graph.root_arrow(L), step_graph.root_arrow(R)]

    if default_entry_foot and footing.entry_foot == INVALID_FOOT:
        footing.entry_foot = L
    return footing
