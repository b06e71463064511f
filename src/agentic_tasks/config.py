"""Priority engine and watcher configuration, persisted in `.agentic_tasks/config.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Mapping, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .io_utils import _load_data_with_error, _save_data
from .task_engine.errors import ConfigError

DecayModel = Literal["linear", "exponential", "logarithmic", "sigmoid", "adaptive"]

DECAY_MODELS: tuple[str, ...] = ("linear", "exponential", "logarithmic", "sigmoid", "adaptive")


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", validate_assignment=True)


class TimeDecayConfig(_Section):
    """Age-based boost for stale ``todo`` tasks."""

    enabled: bool = False
    model: DecayModel = "linear"
    rate: float = Field(0.02, ge=0.001, le=0.2)
    threshold: int = Field(7, ge=1, le=365)
    max_boost: int = Field(200, ge=0, le=500, alias="maxBoost")
    priority_weight: bool = Field(True, alias="priorityWeight")
    # Current priority at/above which the adaptive model switches to exponential.
    adaptive_split: int = Field(500, ge=1, le=1000, alias="adaptiveSplit")


class EffortWeightingConfig(_Section):
    """Complexity / impact / urgency contribution."""

    enabled: bool = False
    score_weight: float = Field(0.8, ge=0.0, le=1.0, alias="scoreWeight")
    complexity_weight: float = Field(0.3, ge=0.0, le=1.0, alias="complexityWeight")
    impact_weight: float = Field(0.4, ge=0.0, le=1.0, alias="impactWeight")
    urgency_weight: float = Field(0.3, ge=0.0, le=1.0, alias="urgencyWeight")
    decay_rate: float = Field(0.01, ge=0.0, le=0.1, alias="decayRate")
    boost_threshold: float = Field(0.5, ge=0.0, le=1.0, alias="boostThreshold")


class DistributionConfig(_Section):
    """Clamping, de-duplication and optional rescaling of the final values."""

    enforce_unique: bool = Field(True, alias="enforceUnique")
    rescale: bool = False
    cluster_spread: int = Field(100, ge=1, le=999, alias="clusterSpread")
    min_tasks: int = Field(3, ge=2, le=1000, alias="minTasks")
    lower_bound: int = Field(1, ge=1, le=1000, alias="lowerBound")
    upper_bound: int = Field(1000, ge=1, le=1000, alias="upperBound")

    @model_validator(mode="after")
    def _check_bounds(self) -> "DistributionConfig":
        if self.lower_bound >= self.upper_bound:
            raise ValueError("lowerBound must be below upperBound")
        return self


class PriorityEngineConfig(_Section):
    dependency_boost: bool = Field(True, alias="dependencyBoost")
    time_decay: TimeDecayConfig = Field(default_factory=TimeDecayConfig, alias="timeDecay")
    effort_weighting: EffortWeightingConfig = Field(default_factory=EffortWeightingConfig, alias="effortWeighting")
    distribution: DistributionConfig = Field(default_factory=DistributionConfig)


class WatcherConfig(_Section):
    debounce_delay: int = Field(500, ge=100, le=5000, alias="debounceDelay")
    max_queue_size: int = Field(10, ge=1, le=100, alias="maxQueueSize")
    poll_interval: int = Field(250, ge=20, le=5000, alias="pollInterval")
    enable_task_files: bool = Field(False, alias="enableTaskFiles")
    enable_table_sync: bool = Field(True, alias="enableTableSync")
    enable_priority_recalc: bool = Field(True, alias="enablePriorityRecalc")


class EngineSettings(_Section):
    priority_engine: PriorityEngineConfig = Field(default_factory=PriorityEngineConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)


S = TypeVar("S", bound=BaseModel)


def merge_section(section: S, changes: Mapping[str, Any]) -> S:
    """Return a validated copy of *section* with non-None *changes* applied.

    Keys may use either the field name or its camelCase alias.

    Raises:
        ConfigError: if a value is out of range or of the wrong type.
    """
    data = section.model_dump()
    names_by_alias = {
        (info.alias or name): name for name, info in type(section).model_fields.items()
    }
    for key, value in changes.items():
        if value is None:
            continue
        name = names_by_alias.get(key, key)
        if name not in data:
            raise ConfigError(f"Unknown setting '{key}' for {type(section).__name__}")
        data[name] = value
    try:
        return type(section).model_validate(data)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "config"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


class ConfigStore:
    """Load and save :class:`EngineSettings` next to the task document."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> EngineSettings:
        """Return persisted settings, or defaults when the file is absent.

        Raises:
            ConfigError: if the file exists but cannot be parsed or validated.
        """
        data, err = _load_data_with_error(self.path, {})
        if err:
            raise ConfigError(f"Cannot read engine config: {err}")
        try:
            return EngineSettings.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid engine config: {_format_validation_error(exc)}") from exc

    def save(self, settings: EngineSettings) -> None:
        _save_data(self.path, settings.model_dump(by_alias=True))
        logger.debug("Saved engine config to {}", self.path)
