"""Runtime configuration for the studio assistant."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Tuple

_ENV_PREFIX = "STUDIO_ASSISTANT_"

DEFAULT_MILESTONES: Dict[str, Tuple[int, ...]] = {"default": (3, 10, 25)}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(_ENV_PREFIX + name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(_ENV_PREFIX + name)
    return int(raw) if raw not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def parse_milestones(text: str) -> Dict[str, Tuple[int, ...]]:
    """Parse ``"default=3,10,25;physics=2,5"`` into a threshold mapping."""

    thresholds: Dict[str, Tuple[int, ...]] = {}
    for chunk in text.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        category, _, counts = chunk.partition("=")
        values = tuple(sorted(int(value) for value in counts.split(",") if value.strip()))
        if not category.strip() or not values:
            raise ValueError(f"Malformed milestone entry: {chunk!r}")
        thresholds[category.strip()] = values
    return thresholds


@dataclass(slots=True)
class AssistantConfig:
    """Policy knobs recognised by the assistant."""

    confidence_threshold: float = 0.5
    relevance_floor: float = 0.4
    relevance_epsilon: float = 0.05
    proactive_interval: float = 30.0
    milestone_thresholds: Mapping[str, Tuple[int, ...]] = field(
        default_factory=lambda: dict(DEFAULT_MILESTONES)
    )
    model_refresh_interval: int = 10
    max_activity: int = 256
    complexity_min_delta: float = 0.05
    debug: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        for name in ("confidence_threshold", "relevance_floor"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.relevance_epsilon < 0:
            raise ValueError("relevance_epsilon must not be negative")
        if self.proactive_interval < 0:
            raise ValueError("proactive_interval must not be negative")
        if self.model_refresh_interval <= 0:
            raise ValueError("model_refresh_interval must be positive")
        if self.max_activity <= 0:
            raise ValueError("max_activity must be positive")
        if "default" not in self.milestone_thresholds:
            raise ValueError("milestone_thresholds requires a 'default' entry")

    def thresholds_for(self, category: str) -> Tuple[int, ...]:
        return tuple(self.milestone_thresholds.get(category, self.milestone_thresholds["default"]))

    @classmethod
    def from_env(cls) -> "AssistantConfig":
        milestones = dict(DEFAULT_MILESTONES)
        raw_milestones = os.getenv(_ENV_PREFIX + "MILESTONES")
        if raw_milestones:
            milestones.update(parse_milestones(raw_milestones))
        return cls(
            confidence_threshold=_env_float("CONFIDENCE_THRESHOLD", 0.5),
            relevance_floor=_env_float("RELEVANCE_FLOOR", 0.4),
            relevance_epsilon=_env_float("RELEVANCE_EPSILON", 0.05),
            proactive_interval=_env_float("PROACTIVE_INTERVAL", 30.0),
            milestone_thresholds=milestones,
            model_refresh_interval=_env_int("MODEL_REFRESH_INTERVAL", 10),
            max_activity=_env_int("MAX_ACTIVITY", 256),
            complexity_min_delta=_env_float("COMPLEXITY_MIN_DELTA", 0.05),
            debug=_env_bool("DEBUG", False),
        )
