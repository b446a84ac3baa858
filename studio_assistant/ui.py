"""Presentation payloads and UI complexity adaptation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

import numpy as np

from .learning import LearnerSummary
from .models import AssistanceOpportunity, LearningMilestone, UserPreferences
from .responses import AssistanceResponse
from .utils import clamp

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AssistCard:
    kind: str
    title: str
    body: str
    resources: Sequence[str] = ()
    score: Optional[float] = None

    def render_text(self) -> str:
        lines = [f"[{self.kind}] {self.title}", f"  {self.body}"]
        if self.score is not None:
            lines.append(f"  score: {self.score:.2f}")
        if self.resources:
            lines.append("  resources:")
            for resource in self.resources:
                lines.append(f"    - {resource}")
        return "\n".join(lines)


def response_card(response: AssistanceResponse) -> AssistCard:
    if response.neutral:
        return AssistCard(kind="notice", title="Assistant", body=response.text)
    return AssistCard(
        kind="response",
        title=response.intent.replace("_", " "),
        body=response.text,
        resources=response.resources,
    )


def suggestion_card(opportunity: AssistanceOpportunity) -> AssistCard:
    return AssistCard(
        kind="suggestion",
        title=opportunity.type.replace("_", " "),
        body=opportunity.suggestion,
        resources=opportunity.resources,
        score=opportunity.relevance,
    )


def milestone_card(milestone: LearningMilestone) -> AssistCard:
    return AssistCard(
        kind="milestone",
        title=f"{milestone.category} milestone",
        body=f"{milestone.threshold} successful {milestone.category} questions answered.",
    )


class Renderer(Protocol):
    def present(self, card: AssistCard) -> None:
        ...

    def set_complexity(self, score: float) -> None:
        ...


class ConsoleRenderer:
    """Writes cards as text through ``sink``."""

    def __init__(self, sink: Callable[[str], None] = print) -> None:
        self.sink = sink
        self.complexity: Optional[float] = None
        self.cards: List[AssistCard] = []

    def present(self, card: AssistCard) -> None:
        self.cards.append(card)
        self.sink(card.render_text())

    def set_complexity(self, score: float) -> None:
        self.complexity = score
        self.sink(f"[ui] complexity -> {score:.2f}")


class UIComplexityAdapter:
    """Derives the target UI complexity from the learner summary.

    Signals are skill, normalised activity rate and error-free ratio; the
    weights sum to one so the score stays within [0, 1].
    """

    def __init__(
        self,
        *,
        weights: Sequence[float] = (0.6, 0.25, 0.15),
        busy_rate: float = 30.0,
        min_delta: float = 0.05,
    ) -> None:
        self.weights = np.asarray(weights, dtype=np.float64)
        if self.weights.shape != (3,) or not np.isclose(self.weights.sum(), 1.0):
            raise ValueError("weights must be three values summing to 1")
        self.busy_rate = busy_rate
        self.min_delta = min_delta
        self.current: Optional[float] = None

    def target_complexity(self, summary: LearnerSummary, preferences: UserPreferences | None = None) -> float:
        if preferences is not None and preferences.complexity_override is not None:
            return clamp(preferences.complexity_override)
        signals = np.array(
            [
                clamp(summary.skill),
                clamp(summary.activity_rate / self.busy_rate),
                1.0 - clamp(summary.error_rate),
            ]
        )
        return round(clamp(float(np.dot(self.weights, signals))), 4)

    def publish(self, score: float, renderer: Renderer) -> bool:
        if self.current is not None and abs(score - self.current) < self.min_delta:
            return False
        self.current = score
        renderer.set_complexity(score)
        logger.info("UI complexity target set to %.2f", score)
        return True
