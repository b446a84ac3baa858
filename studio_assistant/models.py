"""Data models shared by the assistant components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Tuple


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssistantState(str, Enum):
    """Coarse assistant mode gating which tree branches may run."""

    IDLE = "idle"
    PROCESSING_QUERY = "processing_query"
    PROVIDING_ASSISTANCE = "providing_assistance"
    UPDATING_UI = "updating_ui"
    TRACKING_PROGRESS = "tracking_progress"


class BTStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    RUNNING = "running"


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    """A single user action observed in the host application."""

    ts: datetime
    domain: str
    tool: str
    action: str
    detail: str = ""
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class ContextSnapshot:
    """Immutable point-in-time summary of user and application state."""

    ts: datetime
    domain: str = "general"
    active_tool: str = ""
    recent_actions: Tuple[str, ...] = ()
    selection: str = ""
    action_rate: float = 0.0
    error_count: int = 0
    undo_count: int = 0
    idle_seconds: float = 0.0
    feature_usage: Tuple[Tuple[str, int], ...] = ()

    def describe(self) -> str:
        parts = [self.domain]
        if self.active_tool:
            parts.append(self.active_tool)
        if self.recent_actions:
            parts.append(self.recent_actions[-1])
        return ":".join(parts)

    def usage_of(self, action: str) -> int:
        for name, count in self.feature_usage:
            if name == action:
                return count
        return 0

    @classmethod
    def empty(cls, ts: Optional[datetime] = None) -> "ContextSnapshot":
        return cls(ts=ts or _utcnow())


@dataclass(frozen=True, slots=True)
class QueryResult:
    intent: str
    confidence: float
    entities: Tuple[str, ...]
    context: str


@dataclass(frozen=True, slots=True)
class AssistanceOpportunity:
    """A ranked proactive-help candidate."""

    type: str
    relevance: float
    suggestion: str
    resources: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class UserInteraction:
    """Completed interaction recorded by the learning tracker."""

    outcome: str
    query: Optional[QueryResult] = None
    opportunity_type: str = ""
    recorded_at: datetime = field(default_factory=_utcnow)

    @property
    def intent(self) -> str:
        return self.query.intent if self.query else ""


@dataclass(slots=True)
class UserPreferences:
    """Per-user assistance style."""

    proactive_enabled: bool = True
    verbosity: str = "normal"
    max_suggestions: int = 1
    complexity_override: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "proactive_enabled": self.proactive_enabled,
            "verbosity": self.verbosity,
            "max_suggestions": self.max_suggestions,
            "complexity_override": self.complexity_override,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, object]) -> "UserPreferences":
        override = payload.get("complexity_override")
        return cls(
            proactive_enabled=bool(payload.get("proactive_enabled", True)),
            verbosity=str(payload.get("verbosity", "normal")),
            max_suggestions=int(payload.get("max_suggestions", 1)),
            complexity_override=float(override) if override is not None else None,
        )


@dataclass(frozen=True, slots=True)
class LearningMilestone:
    category: str
    threshold: int
    reached_at: datetime = field(default_factory=_utcnow)

    @property
    def key(self) -> Tuple[str, int]:
        return (self.category, self.threshold)
