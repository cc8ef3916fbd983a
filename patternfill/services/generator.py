from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Sequence

from patternfill.errors import GraphBuildError, SynthesisError
from patternfill.logging_utils import log_event
from patternfill.models import (
    MAX_RANDOM_SEED,
    ChartEvent,
    ExpressedChartConfig,
    PatternConfig,
    RegionReport,
    RegionRequest,
    RegionStatus,
    StepGraph,
    SynthesisConfig,
)
from patternfill.services.collaborators import PatternEngine, SynthesisRequest
from patternfill.services.config_registry import ConfigRegistry
from patternfill.services.event_index import EventCursor, EventIndex
from patternfill.services.footing import Footing, apply_default_footing, following_footing, preceding_footing
from patternfill.services.region_steps import num_steps
from patternfill.services.search_graph import SearchChain
from patternfill.services.stitcher import PatternStitcher
from patternfill.services.timing import RowTimer

logger = logging.getLogger(__name__)


def region_label(pattern: PatternConfig, synthesis: SynthesisConfig) -> str:
    return f"{pattern.name}, {synthesis.display_name}"


@dataclass
class RegionOutcome:
    region: RegionRequest
    label: str
    expected_steps: int = 0
    status: RegionStatus = "skipped"
    reason: str | None = None
    seed: int | None = None
    preceding: Footing | None = None
    following: Footing | None = None
    lane_counts: list[int] = field(default_factory=list)
    added: list[ChartEvent] = field(default_factory=list)

    def to_report(self) -> RegionReport:
        preceding = self.preceding or Footing()
        return RegionReport(
            start_row=self.region.start_row,
            end_row=self.region.end_row,
            label=self.label,
            status=self.status,
            reason=self.reason,
            seed=self.seed,
            expected_steps=self.expected_steps,
            preceding_footing=list(preceding.arrows) if self.preceding else [],
            following_footing=list(self.following.arrows) if self.following else [],
            entry_foot=preceding.entry_foot,
            entry_time=preceding.entry_time,
            lane_counts=list(self.lane_counts),
            added_count=len(self.added),
        )


@dataclass
class GenerationResult:
    added: list[ChartEvent] = field(default_factory=list)
    outcomes: list[RegionOutcome] = field(default_factory=list)


@dataclass
class _ChainWalk:
    chain: SearchChain
    cursor: EventCursor
    lane_counts: list[int]
    node: int | None = 0
    previous: int | None = None

    def boundary_footings(self, step_graph: StepGraph, start_row: int) -> tuple[Footing, Footing]:
        while self.node is not None:
            node = self.chain.node(self.node)
            if node.row >= start_row:
                preceding = preceding_footing(step_graph, self.chain, self.previous, self.cursor.clone())
                following = following_footing(step_graph, self.chain, self.node, self.cursor.clone())
                return preceding, following

            while self.cursor.valid and self.cursor.current.row <= node.row:
                event = self.cursor.current
                if event.is_step and event.lane is not None and 0 <= event.lane < len(self.lane_counts):
                    self.lane_counts[event.lane] += 1
                self.cursor.move_next()

            self.previous = self.node
            self.node = node.next

        # Nothing follows the region.
        return preceding_footing(step_graph, self.chain, self.previous, self.cursor.clone()), Footing()


class PatternGenerator:
    def __init__(
        self,
        *,
        step_graph: StepGraph,
        expressed_config: ExpressedChartConfig,
        rating: int,
        timer: RowTimer,
        engine: PatternEngine,
        registry: ConfigRegistry,
        use_new_seeds: bool = False,
        rng: random.Random | None = None,
    ):
        self._step_graph = step_graph
        self._expressed_config = expressed_config
        self._rating = rating
        self._engine = engine
        self._registry = registry
        self._use_new_seeds = use_new_seeds
        self._rng = rng or random.Random()
        self._stitcher = PatternStitcher(timer)
        self._walk: _ChainWalk | None = None
        self._graph_stale = True

    def resolve_seed(self, region: RegionRequest) -> int:
        return self._rng.randrange(MAX_RANDOM_SEED) if self._use_new_seeds else region.seed

    def generate(
        self,
        regions: Sequence[RegionRequest],
        working: EventIndex,
        result: GenerationResult | None = None,
    ) -> GenerationResult:
        result = result if result is not None else GenerationResult()
        for idx, region in enumerate(regions):
            next_region = regions[idx + 1] if idx + 1 < len(regions) else None
            outcome = self._generate_region(region, next_region, working)
            result.outcomes.append(outcome)
            result.added.extend(outcome.added)
        return result

    def _generate_region(
        self,
        region: RegionRequest,
        next_region: RegionRequest | None,
        working: EventIndex,
    ) -> RegionOutcome:
        pattern = self._registry.pattern_config(region.pattern_config)
        synthesis = self._registry.synthesis_config(region.synthesis_config)
        if pattern is None or synthesis is None:
            outcome = RegionOutcome(region=region, label=f"{region.pattern_config}, {region.synthesis_config}")
            return self._fail(outcome, "Unknown pattern or synthesis config.")

        outcome = RegionOutcome(
            region=region,
            label=region_label(pattern, synthesis),
            expected_steps=num_steps(region, pattern),
        )
        try:
            walk = self._current_walk(working)
            preceding, following = walk.boundary_footings(self._step_graph, region.start_row)
            apply_default_footing(self._step_graph, preceding, default_entry_foot=True)
            apply_default_footing(self._step_graph, following)

            lane_counts = list(walk.lane_counts)
            outcome.preceding = preceding
            outcome.following = following
            outcome.lane_counts = lane_counts
            outcome.seed = self.resolve_seed(region)

            synthesized = self._synthesize(
                SynthesisRequest(
                    step_graph=self._step_graph,
                    pattern_config=pattern,
                    synthesis_config=synthesis,
                    start_row=region.start_row,
                    end_row=region.end_row,
                    end_inclusive=region.end_inclusive,
                    start_inclusive=region.start_inclusive,
                    seed=outcome.seed,
                    entry_foot=preceding.entry_foot,
                    entry_time=preceding.entry_time,
                    preceding_footing=tuple(preceding.arrows),
                    following_footing=tuple(following.arrows),
                    lane_counts=tuple(lane_counts),
                    background_events=working.events,
                    label=outcome.label,
                    ignore_preceding_distribution=region.ignore_preceding_distribution,
                )
            )
        except (GraphBuildError, SynthesisError) as exc:
            return self._fail(outcome, str(exc))

        outcome.added = self._stitcher.stitch(working, synthesized, region, next_region)
        if outcome.added:
            self._graph_stale = True
        outcome.status = "generated"
        log_event(
            logger,
            "pattern_region_generated",
            start_row=region.start_row,
            end_row=region.end_row,
            label=outcome.label,
            seed=outcome.seed,
            entry_foot=outcome.preceding.entry_foot,
            preceding_footing=outcome.preceding.arrows,
            following_footing=outcome.following.arrows,
            synthesized_count=len(synthesized),
            added_count=len(outcome.added),
        )
        return outcome

    def _current_walk(self, working: EventIndex) -> _ChainWalk:
        if self._walk is not None and not self._graph_stale:
            return self._walk

        builder = self._engine.graph_builder
        if builder is None:
            raise GraphBuildError("No graph builder is configured.")
        chain = builder.build(list(working.events), self._step_graph, self._expressed_config, self._rating)
        if chain is None:
            raise GraphBuildError("Could not create Expressed Chart.")
        self._walk = _ChainWalk(chain=chain, cursor=working.first(), lane_counts=[0] * self._step_graph.lane_count)
        self._graph_stale = False
        return self._walk

    def _synthesize(self, request: SynthesisRequest) -> list[ChartEvent]:
        synthesizer = self._engine.synthesizer
        if synthesizer is None:
            raise SynthesisError("No note synthesizer is configured.")
        events = synthesizer.synthesize(request)
        if events is None:
            raise SynthesisError("Could not create Performed Chart.")
        return list(events)

    def _fail(self, outcome: RegionOutcome, reason: str) -> RegionOutcome:
        outcome.status = "skipped"
        outcome.reason = reason
        log_event(
            logger,
            "pattern_region_failed",
            level=logging.ERROR,
            start_row=outcome.region.start_row,
            label=outcome.label,
            reason=f"Failed to generate {outcome.label} pattern at row {outcome.region.start_row}. {reason}",
        )
        return outcome
