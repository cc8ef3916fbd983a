from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


NoteKind = Literal["tap", "hold", "mine", "lift", "misc"]
ArrowState = Literal["resting", "held", "rolling", "lifted"]
LinkKind = Literal["step", "release"]
RegionStatus = Literal["generated", "skipped"]

NUM_FEET = 2
L = 0
R = 1
NUM_FOOT_PORTIONS = 2
DEFAULT_FOOT_PORTION = 0
INVALID_FOOT = -1
INVALID_ARROW = -1

ROWS_PER_BEAT = 48
ROWS_PER_MEASURE = ROWS_PER_BEAT * 4
MAX_RANDOM_SEED = 2**31 - 1

STEP_KINDS = frozenset({"tap", "hold"})
ERASABLE_KINDS = frozenset({"tap", "hold", "mine"})


def new_random_seed() -> int:
    return random.randrange(MAX_RANDOM_SEED)


@dataclass(frozen=True)
class ChartEvent:
    row: int
    lane: int | None
    kind: NoteKind
    length: int = 0
    label: str | None = None
    time: float = field(default=0.0, compare=False)

    @property
    def end_row(self) -> int:
        return self.row + self.length

    @property
    def is_step(self) -> bool:
        return self.kind in STEP_KINDS


class FootPortionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    arrow: int = INVALID_ARROW
    state: ArrowState = "lifted"

    @property
    def is_lifted(self) -> bool:
        return self.state == "lifted"


class StepGraph(BaseModel):
    model_config = ConfigDict(frozen=True)

    chart_type: str = Field(min_length=1, max_length=80)
    lane_count: int = Field(ge=2, le=32)
    root: tuple[tuple[FootPortionState, ...], ...]

    @model_validator(mode="after")
    def validate_root_placement(self):
        if len(self.root) != NUM_FEET or any(len(portions) != NUM_FOOT_PORTIONS for portions in self.root):
            raise ValueError(f"Root placement needs {NUM_FEET} feet with {NUM_FOOT_PORTIONS} portions each.")
        for portions in self.root:
            for portion in portions:
                if portion.arrow != INVALID_ARROW and not 0 <= portion.arrow < self.lane_count:
                    raise ValueError(f"Root arrow {portion.arrow} is outside {self.lane_count} lanes.")
        left = self.root_arrow(L)
        right = self.root_arrow(R)
        if left == INVALID_ARROW or right == INVALID_ARROW:
            raise ValueError("Both feet need a default arrow.")
        if left == right:
            raise ValueError("Default arrows of the left and right foot must differ.")
        return self

    def root_arrow(self, foot: int, portion: int = DEFAULT_FOOT_PORTION) -> int:
        return self.root[foot][portion].arrow


class TempoSegment(BaseModel):
    row: int = Field(ge=0)
    bpm: float = Field(gt=0, le=10000)


class ChartTiming(BaseModel):
    offset_seconds: float = 0.0
    tempos: list[TempoSegment] = Field(default_factory=lambda: [TempoSegment(row=0, bpm=120.0)])

    @model_validator(mode="after")
    def validate_tempo_map(self):
        if not self.tempos:
            raise ValueError("Tempo map needs at least one segment.")
        if self.tempos[0].row != 0:
            raise ValueError("Tempo map must start at row 0.")
        rows = [segment.row for segment in self.tempos]
        if rows != sorted(set(rows)):
            raise ValueError("Tempo segments must be strictly ordered by row.")
        return self


class PatternConfig(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    beat_subdivision: int = Field(default=4, ge=1, le=ROWS_PER_BEAT)
    settings: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_subdivision(self):
        if ROWS_PER_BEAT % self.beat_subdivision:
            raise ValueError(f"Beat subdivision must divide {ROWS_PER_BEAT} rows per beat.")
        return self


class SynthesisConfig(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    short_name: str | None = Field(default=None, max_length=40)
    settings: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.short_name or self.name


class ExpressedChartConfig(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    settings: dict[str, Any] = Field(default_factory=dict)


class RegionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_row: int = Field(ge=0)
    end_row: int = Field(ge=0)
    end_inclusive: bool = False
    start_inclusive: bool = True
    pattern_config: str = Field(default="Sixteenths", min_length=1, max_length=120)
    synthesis_config: str = Field(default="Balanced", min_length=1, max_length=120)
    seed: int = Field(default_factory=new_random_seed, ge=0, le=MAX_RANDOM_SEED)
    ignore_preceding_distribution: bool = False

    @model_validator(mode="before")
    @classmethod
    def accept_length(cls, data):
        if isinstance(data, dict) and "end_row" not in data and "length" in data:
            data = dict(data)
            data["end_row"] = data.get("start_row", 0) + data.pop("length")
        return data

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.end_row < self.start_row:
            raise ValueError("Region end row must not precede its start row.")
        return self

    @property
    def length(self) -> int:
        return self.end_row - self.start_row


class RegionReport(BaseModel):
    start_row: int
    end_row: int
    label: str
    status: RegionStatus
    reason: str | None = None
    seed: int | None = None
    expected_steps: int = 0
    preceding_footing: list[int] = Field(default_factory=list)
    following_footing: list[int] = Field(default_factory=list)
    entry_foot: int = INVALID_FOOT
    entry_time: float = 0.0
    lane_counts: list[int] = Field(default_factory=list)
    added_count: int = 0


class ChartPayload(BaseModel):
    chart_type: str = Field(default="dance-single", min_length=1, max_length=80)
    rating: int = Field(default=1, ge=1, le=99)
    expressed_chart_config: str = Field(default="Default", min_length=1, max_length=120)
    timing: ChartTiming = Field(default_factory=ChartTiming)
    events: list[ChartEvent] = Field(default_factory=list)


class GeneratePatternsRequest(BaseModel):
    chart: ChartPayload
    regions: list[RegionRequest] = Field(min_length=1, max_length=256)
    use_new_seeds: bool = False


class GeneratePatternsResponse(BaseModel):
    description: str
    added: list[ChartEvent]
    deleted: list[ChartEvent]
    events: list[ChartEvent]
    regions: list[RegionReport]
    warnings: list[str] = Field(default_factory=list)


class ConfigCatalogResponse(BaseModel):
    step_graphs: list[str]
    expressed_chart_configs: list[str]
    pattern_configs: list[str]
    synthesis_configs: list[str]
