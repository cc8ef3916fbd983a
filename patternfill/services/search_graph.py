from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from patternfill.models import FootPortionState, LinkKind, StepGraph

FootState = tuple[tuple[FootPortionState, ...], ...]


@dataclass(frozen=True)
class SearchNode:
    row: int
    time: float
    state: FootState
    previous: int | None = None
    next: int | None = None
    incoming: LinkKind | None = None

    def arrow(self, foot: int, portion: int) -> int:
        return self.state[foot][portion].arrow

    def is_lifted(self, foot: int, portion: int) -> bool:
        return self.state[foot][portion].is_lifted

    @property
    def follows_step(self) -> bool:
        return self.incoming == "step"


@dataclass(frozen=True)
class ChainStep:
    row: int
    time: float
    state: FootState
    incoming: LinkKind = "step"


class SearchChain:
    """Index-addressed arena of search nodes ordered by row.

    Node 0 is the root, carrying the step graph's default placement and no
    incoming link.
    """

    def __init__(self, nodes: Sequence[SearchNode]):
        if not nodes:
            raise ValueError("A search chain needs at least a root node.")
        self._nodes = tuple(nodes)

    @classmethod
    def from_steps(cls, step_graph: StepGraph, steps: Iterable[ChainStep], *, root_row: int = -1, root_time: float = 0.0) -> SearchChain:
        ordered = [ChainStep(row=root_row, time=root_time, state=step_graph.root, incoming="step"), *steps]
        nodes: list[SearchNode] = []
        for idx, step in enumerate(ordered):
            if idx > 0 and step.row < ordered[idx - 1].row:
                raise ValueError(f"Search nodes must be ordered by row; row {step.row} follows {ordered[idx - 1].row}.")
            nodes.append(
                SearchNode(
                    row=step.row,
                    time=step.time,
                    state=step.state,
                    previous=idx - 1 if idx > 0 else None,
                    next=idx + 1 if idx + 1 < len(ordered) else None,
                    incoming=step.incoming if idx > 0 else None,
                )
            )
        return cls(nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def root(self) -> int:
        return 0

    def node(self, index: int) -> SearchNode:
        return self._nodes[index]

    def rows(self) -> list[int]:
        return [node.row for node in self._nodes]
