from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from patternfill.errors import ConfigLoadError
from patternfill.logging_utils import log_event
from patternfill.models import (
    ExpressedChartConfig,
    FootPortionState,
    PatternConfig,
    StepGraph,
    SynthesisConfig,
)

CONFIG_PATH_ENV = "PATTERNFILL_CONFIG_PATH"

logger = logging.getLogger(__name__)


class RegistryDocument(BaseModel):
    step_graphs: list[StepGraph] = Field(default_factory=list)
    expressed_chart_configs: list[ExpressedChartConfig] = Field(default_factory=list)
    pattern_configs: list[PatternConfig] = Field(default_factory=list)
    synthesis_configs: list[SynthesisConfig] = Field(default_factory=list)


def _standing(left: int, right: int) -> tuple[tuple[FootPortionState, ...], ...]:
    return (
        (FootPortionState(arrow=left, state="resting"), FootPortionState()),
        (FootPortionState(arrow=right, state="resting"), FootPortionState()),
    )


DEFAULT_DOCUMENT = RegistryDocument(
    step_graphs=[
        StepGraph(chart_type="dance-single", lane_count=4, root=_standing(0, 3)),
        StepGraph(chart_type="dance-double", lane_count=8, root=_standing(3, 4)),
        StepGraph(chart_type="pump-single", lane_count=5, root=_standing(1, 3)),
    ],
    expressed_chart_configs=[
        ExpressedChartConfig(name="Default"),
        ExpressedChartConfig(name="Dynamic", settings={"bracket_parsing": "dynamic"}),
    ],
    pattern_configs=[
        PatternConfig(name="Eighths", beat_subdivision=2),
        PatternConfig(name="Twelfths", beat_subdivision=3),
        PatternConfig(name="Sixteenths", beat_subdivision=4),
    ],
    synthesis_configs=[
        SynthesisConfig(name="Balanced"),
        SynthesisConfig(name="Stamina", short_name="Stam", settings={"transition_limit": 4}),
    ],
)


class ConfigRegistry:
    def __init__(self, document: RegistryDocument | None = None):
        self._step_graphs: dict[str, StepGraph] = {}
        self._expressed: dict[str, ExpressedChartConfig] = {}
        self._patterns: dict[str, PatternConfig] = {}
        self._synthesis: dict[str, SynthesisConfig] = {}
        self.merge(DEFAULT_DOCUMENT)
        if document is not None:
            self.merge(document)

    def merge(self, document: RegistryDocument) -> None:
        self._step_graphs.update({graph.chart_type: graph for graph in document.step_graphs})
        self._expressed.update({config.name: config for config in document.expressed_chart_configs})
        self._patterns.update({config.name: config for config in document.pattern_configs})
        self._synthesis.update({config.name: config for config in document.synthesis_configs})

    def step_graph(self, chart_type: str) -> StepGraph | None:
        return self._step_graphs.get(chart_type)

    def expressed_chart_config(self, name: str) -> ExpressedChartConfig | None:
        return self._expressed.get(name)

    def pattern_config(self, name: str) -> PatternConfig | None:
        return self._patterns.get(name)

    def synthesis_config(self, name: str) -> SynthesisConfig | None:
        return self._synthesis.get(name)

    def catalog(self) -> dict[str, list[str]]:
        return {
            "step_graphs": sorted(self._step_graphs),
            "expressed_chart_configs": sorted(self._expressed),
            "pattern_configs": sorted(self._patterns),
            "synthesis_configs": sorted(self._synthesis),
        }


def load_registry(path: str | os.PathLike[str] | None = None) -> ConfigRegistry:
    if path is None:
        return ConfigRegistry()
    config_path = Path(path)
    try:
        document = RegistryDocument.model_validate_json(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config registry at {config_path}: {exc}") from exc
    except ValidationError as exc:
        raise ConfigLoadError(f"Invalid config registry at {config_path}: {exc.error_count()} error(s).") from exc
    registry = ConfigRegistry(document)
    log_event(logger, "config_registry_loaded", path=str(config_path), **registry.catalog())
    return registry


@lru_cache(maxsize=1)
def get_registry() -> ConfigRegistry:
    return load_registry(os.getenv(CONFIG_PATH_ENV) or None)
