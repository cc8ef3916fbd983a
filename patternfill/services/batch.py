from __future__ import annotations

import contextvars
import logging
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Sequence

from patternfill.logging_utils import batch_id_var, log_event, new_batch_id
from patternfill.models import ChartEvent, ExpressedChartConfig, RegionRequest, StepGraph
from patternfill.services.chart import Chart
from patternfill.services.collaborators import PatternEngine
from patternfill.services.collaborators import engine as default_engine
from patternfill.services.config_registry import ConfigRegistry, get_registry
from patternfill.services.eraser import erase_regions
from patternfill.services.generator import GenerationResult, PatternGenerator, RegionOutcome

logger = logging.getLogger(__name__)

# One worker: batches never generate concurrently.
_generation_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pattern-generation")


@dataclass
class BatchReport:
    description: str
    aborted_reason: str | None = None
    unhandled_error: str | None = None
    outcomes: list[RegionOutcome] = field(default_factory=list)
    added: list[ChartEvent] = field(default_factory=list)
    deleted: list[ChartEvent] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.aborted_reason is None


class PatternBatch:
    """Fills every requested region of a chart and records how to undo it."""

    def __init__(
        self,
        chart: Chart,
        regions: Sequence[RegionRequest],
        *,
        registry: ConfigRegistry | None = None,
        engine: PatternEngine | None = None,
        use_new_seeds: bool = False,
        rng: random.Random | None = None,
    ):
        self._chart = chart
        self._regions = sorted(regions, key=lambda region: region.start_row)
        self._registry = registry or get_registry()
        self._engine = engine or default_engine
        self._use_new_seeds = use_new_seeds
        self._rng = rng
        self.batch_id = new_batch_id()
        self.added: list[ChartEvent] = []
        self.deleted: list[ChartEvent] = []

    @property
    def regions(self) -> list[RegionRequest]:
        return list(self._regions)

    def describe(self) -> str:
        if len(self._regions) == 1:
            region = self._regions[0]
            return f"Autogenerate {region.pattern_config} Pattern at row {region.start_row}."
        return f"Autogenerate {len(self._regions)} Patterns."

    def run(self) -> BatchReport:
        token = batch_id_var.set(self.batch_id)
        try:
            with self._chart.lock:
                if self.added or self.deleted:
                    return self._redo()
                return self._run_generation()
        finally:
            batch_id_var.reset(token)

    def undo(self) -> None:
        with self._chart.lock:
            self._chart.delete_events(self.added)
            self._chart.add_events(self.deleted)
        log_event(logger, "pattern_batch_undone", added_count=len(self.added), deleted_count=len(self.deleted))

    def _redo(self) -> BatchReport:
        self._chart.delete_events(self.deleted)
        self._chart.add_events(self.added)
        log_event(logger, "pattern_batch_redone", added_count=len(self.added), deleted_count=len(self.deleted))
        return BatchReport(description=self.describe(), added=list(self.added), deleted=list(self.deleted))

    def _check_prerequisites(self) -> tuple[StepGraph, ExpressedChartConfig] | str:
        error_prefix = "Failed to generate pattern." if len(self._regions) == 1 else "Failed to generate patterns."
        step_graph = self._registry.step_graph(self._chart.chart_type)
        if step_graph is None:
            return f"{error_prefix} No {self._chart.chart_type} StepGraph is loaded."
        expressed = self._registry.expressed_chart_config(self._chart.expressed_chart_config)
        if expressed is None:
            return f"{error_prefix} No {self._chart.expressed_chart_config} Expressed Chart Config defined."
        for region in self._regions:
            if self._registry.pattern_config(region.pattern_config) is None:
                return f"{error_prefix} No {region.pattern_config} Pattern Config defined."
            if self._registry.synthesis_config(region.synthesis_config) is None:
                return f"{error_prefix} No {region.synthesis_config} Performed Chart Config defined."
        if not self._engine.configured:
            return f"{error_prefix} No graph builder and note synthesizer are configured."
        return step_graph, expressed

    def _run_generation(self) -> BatchReport:
        prerequisites = self._check_prerequisites()
        if isinstance(prerequisites, str):
            log_event(logger, "pattern_batch_aborted", level=logging.ERROR, reason=prerequisites)
            return BatchReport(description=self.describe(), aborted_reason=prerequisites)
        step_graph, expressed = prerequisites

        log_event(logger, "pattern_batch_started", region_count=len(self._regions), use_new_seeds=self._use_new_seeds)
        for removed in erase_regions(self._chart.index, self._regions):
            self.deleted.extend(removed)

        generator = PatternGenerator(
            step_graph=step_graph,
            expressed_config=expressed,
            rating=self._chart.rating,
            timer=self._chart.timer,
            engine=self._engine,
            registry=self._registry,
            use_new_seeds=self._use_new_seeds,
            rng=self._rng,
        )
        result = GenerationResult()
        context = contextvars.copy_context()
        unhandled_error = _generation_executor.submit(context.run, self._generate_in_background, generator, result).result()

        self.added.extend(result.added)
        self._chart.add_events(self.added)
        log_event(
            logger,
            "pattern_batch_completed",
            region_count=len(self._regions),
            generated_count=sum(1 for outcome in result.outcomes if outcome.status == "generated"),
            added_count=len(self.added),
            deleted_count=len(self.deleted),
            unhandled_error=unhandled_error,
        )
        return BatchReport(
            description=self.describe(),
            unhandled_error=unhandled_error,
            outcomes=result.outcomes,
            added=list(self.added),
            deleted=list(self.deleted),
        )

    def _generate_in_background(self, generator: PatternGenerator, result: GenerationResult) -> str | None:
        working = self._chart.index.snapshot()
        try:
            generator.generate(self._regions, working, result)
        except Exception as exc:
            logger.exception("pattern_batch_unhandled_error", extra={"event": "pattern_batch_unhandled_error"})
            return f"Failed to generate patterns. {type(exc).__name__}: {exc}"
        return None
