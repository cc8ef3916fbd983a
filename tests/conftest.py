from __future__ import annotations

from itertools import groupby

import pytest

from patternfill.models import L, R, ChartEvent, FootPortionState
from patternfill.services.chart import Chart
from patternfill.services.collaborators import PatternEngine
from patternfill.services.config_registry import ConfigRegistry
from patternfill.services.search_graph import ChainStep, SearchChain


def tap(row: int, lane: int) -> ChartEvent:
    return ChartEvent(row=row, lane=lane, kind="tap")


def hold(row: int, lane: int, length: int) -> ChartEvent:
    return ChartEvent(row=row, lane=lane, kind="hold", length=length)


def mine(row: int, lane: int) -> ChartEvent:
    return ChartEvent(row=row, lane=lane, kind="mine")


def contents(events) -> list[tuple]:
    return [(event.row, event.lane, event.kind, event.length) for event in events]


def place(state, foot: int, lane: int):
    placed = (FootPortionState(arrow=lane, state="resting"), FootPortionState())
    return tuple(placed if idx == foot else portions for idx, portions in enumerate(state))


class AlternatingGraphBuilder:
    """Alternates feet on single steps starting with the left; jumps take both feet."""

    def __init__(self):
        self.calls: list[list[ChartEvent]] = []

    def build(self, events, step_graph, expressed_config, rating):
        self.calls.append(list(events))
        state = step_graph.root
        foot = L
        steps = []
        for row, group in groupby((event for event in events if event.is_step), key=lambda event: event.row):
            group = list(group)
            lanes = sorted(event.lane for event in group)
            if len(lanes) > 1:
                state = place(place(state, L, lanes[0]), R, lanes[-1])
                foot = L
            else:
                state = place(state, foot, lanes[0])
                foot = R if foot == L else L
            steps.append(ChainStep(row=row, time=group[0].time, state=state))
        return SearchChain.from_steps(step_graph, steps)


class NoGraphBuilder:
    def __init__(self):
        self.calls = 0

    def build(self, events, step_graph, expressed_config, rating):
        self.calls += 1
        return None


class ScriptedSynthesizer:
    """Emits one tap per ``spacing`` rows across the requested region."""

    def __init__(self, spacing: int = 1, fail_rows=(), raise_rows=()):
        self.spacing = spacing
        self.fail_rows = set(fail_rows)
        self.raise_rows = set(raise_rows)
        self.requests = []

    def synthesize(self, request):
        self.requests.append(request)
        if request.start_row in self.raise_rows:
            raise RuntimeError(f"synthesizer crashed at row {request.start_row}")
        if request.start_row in self.fail_rows:
            return None
        first = request.start_row if request.start_inclusive else request.start_row + self.spacing
        stop = request.end_row + 1 if request.end_inclusive else request.end_row
        lanes = request.step_graph.lane_count
        return [tap(row, idx % lanes) for idx, row in enumerate(range(first, stop, self.spacing))]


@pytest.fixture
def registry() -> ConfigRegistry:
    return ConfigRegistry()


@pytest.fixture
def step_graph(registry):
    return registry.step_graph("dance-single")


@pytest.fixture
def builder() -> AlternatingGraphBuilder:
    return AlternatingGraphBuilder()


@pytest.fixture
def synthesizer() -> ScriptedSynthesizer:
    return ScriptedSynthesizer()


@pytest.fixture
def engine(builder, synthesizer) -> PatternEngine:
    return PatternEngine(graph_builder=builder, synthesizer=synthesizer)


def make_chart(*events: ChartEvent, **kwargs) -> Chart:
    return Chart(events=events, **kwargs)
