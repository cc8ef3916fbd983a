from __future__ import annotations

import importlib
import inspect
import logging
import os
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from patternfill.errors import ConfigLoadError
from patternfill.logging_utils import log_event
from patternfill.models import ChartEvent, ExpressedChartConfig, PatternConfig, StepGraph, SynthesisConfig
from patternfill.services.search_graph import SearchChain

GRAPH_BUILDER_ENV = "PATTERNFILL_GRAPH_BUILDER"
SYNTHESIZER_ENV = "PATTERNFILL_SYNTHESIZER"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesisRequest:
    step_graph: StepGraph
    pattern_config: PatternConfig
    synthesis_config: SynthesisConfig
    start_row: int
    end_row: int
    end_inclusive: bool
    start_inclusive: bool
    seed: int
    entry_foot: int
    entry_time: float
    preceding_footing: tuple[int, ...]
    following_footing: tuple[int, ...]
    lane_counts: tuple[int, ...]
    background_events: tuple[ChartEvent, ...]
    label: str
    ignore_preceding_distribution: bool = False


class GraphBuilder(Protocol):
    def build(
        self,
        events: Sequence[ChartEvent],
        step_graph: StepGraph,
        expressed_config: ExpressedChartConfig,
        rating: int,
    ) -> SearchChain | None: ...


class NoteSynthesizer(Protocol):
    def synthesize(self, request: SynthesisRequest) -> Sequence[ChartEvent] | None: ...


@dataclass
class PatternEngine:
    graph_builder: GraphBuilder | None = None
    synthesizer: NoteSynthesizer | None = None

    @property
    def configured(self) -> bool:
        return self.graph_builder is not None and self.synthesizer is not None


def _resolve_dotted(path: str) -> Any:
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConfigLoadError(f"Expected 'module:attribute', got {path!r}.")
    try:
        target = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as exc:
        raise ConfigLoadError(f"Could not load collaborator {path!r}: {exc}") from exc
    return target() if inspect.isclass(target) else target


def load_engine_from_env() -> PatternEngine:
    builder_path = os.getenv(GRAPH_BUILDER_ENV)
    synthesizer_path = os.getenv(SYNTHESIZER_ENV)
    engine = PatternEngine(
        graph_builder=_resolve_dotted(builder_path) if builder_path else None,
        synthesizer=_resolve_dotted(synthesizer_path) if synthesizer_path else None,
    )
    log_event(
        logger,
        "pattern_engine_loaded",
        graph_builder=builder_path or "-",
        synthesizer=synthesizer_path or "-",
        configured=engine.configured,
    )
    return engine


def configure_engine(graph_builder: GraphBuilder | None, synthesizer: NoteSynthesizer | None) -> PatternEngine:
    engine.graph_builder = graph_builder
    engine.synthesizer = synthesizer
    return engine


engine = PatternEngine()
