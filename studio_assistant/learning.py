"""Learning tracker: interaction history, milestones and user profile."""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict, deque
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, Dict, List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from .config import AssistantConfig
from .models import ContextSnapshot, LearningMilestone, QueryResult, UserInteraction, UserPreferences
from .utils import clamp

logger = logging.getLogger(__name__)

ANSWERED = "answered"
DROPPED = "dropped"
FAILED = "failed"
SUGGESTED = "suggested"
ADOPTED = "adopted"
DISMISSED = "dismissed"


@dataclass(slots=True)
class SuggestionStats:
    accepted: int = 0
    shown: int = 0

    def adoption_rate(self) -> float:
        if not self.shown:
            return 0.0
        return self.accepted / self.shown


@dataclass(frozen=True, slots=True)
class LearnerSummary:
    """Derived profile consumed by the UI complexity adapter."""

    skill: float
    activity_rate: float
    error_rate: float
    interactions: int
    success_rate: float
    adoption_rate: float


class ModelUpdater(Protocol):
    def update_models(self, history: Sequence[UserInteraction]) -> None:
        ...


class LearningStore(Protocol):
    def save(self, payload: dict) -> None:
        ...

    def load(self) -> Optional[dict]:
        ...


class LearningTracker:
    """Accumulates interaction history and fires milestones once each."""

    def __init__(
        self,
        config: AssistantConfig | None = None,
        *,
        category_for: Callable[[str], str] | None = None,
        activity_samples: int = 20,
    ) -> None:
        self.config = config or AssistantConfig()
        self.category_for = category_for or (lambda intent: intent)
        self.preferences = UserPreferences()
        self._history: List[UserInteraction] = []
        self._successes: Counter[str] = Counter()
        self._consumed: Set[Tuple[str, int]] = set()
        self._milestones: List[LearningMilestone] = []
        self._stats: Dict[str, SuggestionStats] = defaultdict(SuggestionStats)
        self._activity: Deque[Tuple[float, float]] = deque(maxlen=activity_samples)
        self._since_refresh = 0
        self.refresh_count = 0

    @property
    def history(self) -> Tuple[UserInteraction, ...]:
        return tuple(self._history)

    @property
    def milestones(self) -> Tuple[LearningMilestone, ...]:
        return tuple(self._milestones)

    def record_interaction(
        self,
        outcome: str,
        *,
        query: QueryResult | None = None,
        opportunity_type: str = "",
    ) -> UserInteraction:
        interaction = UserInteraction(outcome=outcome, query=query, opportunity_type=opportunity_type)
        self._history.append(interaction)
        self._since_refresh += 1
        if query is not None and outcome == ANSWERED:
            self._successes[self.category_for(query.intent)] += 1
        if opportunity_type and outcome == SUGGESTED:
            self._stats[opportunity_type].shown += 1
        return interaction

    def record_feedback(self, opportunity_type: str, *, adopted: bool) -> UserInteraction:
        if adopted:
            self._stats[opportunity_type].accepted += 1
        return self.record_interaction(ADOPTED if adopted else DISMISSED, opportunity_type=opportunity_type)

    def adjust_relevance(self, opportunity_type: str, relevance: float) -> float:
        stats = self._stats.get(opportunity_type)
        if stats is None or not stats.shown:
            return clamp(relevance)
        booster = min(stats.adoption_rate(), 0.3) * 0.5
        penalty = 0.1 if stats.shown >= 3 and stats.adoption_rate() < 0.1 else 0.0
        return clamp(relevance + booster - penalty)

    def success_count(self, category: str) -> int:
        return self._successes[category]

    def check_milestones(self) -> List[LearningMilestone]:
        """Return milestones reached since the last check, consuming them."""

        fired: List[LearningMilestone] = []
        for category in sorted(self._successes):
            count = self._successes[category]
            for threshold in self.config.thresholds_for(category):
                key = (category, threshold)
                if count < threshold or key in self._consumed:
                    continue
                self._consumed.add(key)
                milestone = LearningMilestone(category=category, threshold=threshold)
                self._milestones.append(milestone)
                fired.append(milestone)
                logger.info("Milestone reached: %d successful %s queries", threshold, category)
        return fired

    def observe_activity(self, snapshot: ContextSnapshot) -> None:
        actions = max(snapshot.action_rate, 1.0)
        self._activity.append((snapshot.action_rate, min(1.0, snapshot.error_count / actions)))

    def refresh_due(self) -> bool:
        return self._since_refresh >= self.config.model_refresh_interval

    def refresh_models(self, updater: ModelUpdater, *, executor: Executor | None = None) -> Optional[Future]:
        """Hand the history to the learning collaborator.

        With an executor the call is submitted and the future returned without
        waiting on it; otherwise the updater runs inline.
        """

        self._since_refresh = 0
        self.refresh_count += 1
        logger.debug("Refreshing models with %d interactions", len(self._history))
        if executor is not None:
            return executor.submit(updater.update_models, self.history)
        updater.update_models(self.history)
        return None

    def adapt_style(self, preferences: UserPreferences) -> None:
        if preferences.max_suggestions < 0:
            raise ValueError("max_suggestions must not be negative")
        if preferences.complexity_override is not None:
            preferences.complexity_override = clamp(preferences.complexity_override)
        self.preferences = preferences
        logger.info("Assistance style updated: %s", preferences.to_dict())

    def summary(self) -> LearnerSummary:
        answered = sum(1 for item in self._history if item.outcome == ANSWERED)
        queries = sum(1 for item in self._history if item.query is not None)
        shown = sum(stats.shown for stats in self._stats.values())
        accepted = sum(stats.accepted for stats in self._stats.values())
        skill = 0.6 * (1.0 - math.exp(-answered / 20.0)) + 0.4 * min(1.0, len(self._milestones) / 6.0)
        if self._activity:
            activity_rate = sum(rate for rate, _ in self._activity) / len(self._activity)
            error_rate = sum(errors for _, errors in self._activity) / len(self._activity)
        else:
            activity_rate = error_rate = 0.0
        return LearnerSummary(
            skill=round(clamp(skill), 4),
            activity_rate=activity_rate,
            error_rate=error_rate,
            interactions=len(self._history),
            success_rate=answered / queries if queries else 0.0,
            adoption_rate=accepted / shown if shown else 0.0,
        )

    def to_dict(self) -> dict:
        return {
            "history": [_interaction_to_dict(item) for item in self._history],
            "consumed": [[category, threshold] for category, threshold in sorted(self._consumed)],
            "milestones": [
                {"category": m.category, "threshold": m.threshold, "reached_at": m.reached_at.isoformat()}
                for m in self._milestones
            ],
            "stats": {key: {"shown": s.shown, "accepted": s.accepted} for key, s in self._stats.items()},
            "preferences": self.preferences.to_dict(),
        }

    def restore(self, payload: Mapping) -> None:
        """Replace the tracker state with ``payload``.

        Nothing is assigned until the whole payload has parsed, so a malformed
        payload leaves the current state untouched.
        """

        history = [_interaction_from_dict(item) for item in payload.get("history", [])]
        successes = Counter(
            self.category_for(item.query.intent)
            for item in history
            if item.query is not None and item.outcome == ANSWERED
        )
        consumed = {(category, int(threshold)) for category, threshold in payload.get("consumed", [])}
        milestones = [
            LearningMilestone(
                category=item["category"],
                threshold=int(item["threshold"]),
                reached_at=datetime.fromisoformat(item["reached_at"]),
            )
            for item in payload.get("milestones", [])
        ]
        stats: Dict[str, SuggestionStats] = defaultdict(SuggestionStats)
        for key, values in payload.get("stats", {}).items():
            stats[key] = SuggestionStats(accepted=int(values["accepted"]), shown=int(values["shown"]))
        preferences = UserPreferences.from_dict(payload.get("preferences", {}))

        self._history = history
        self._successes = successes
        self._consumed = consumed
        self._milestones = milestones
        self._stats = stats
        self.preferences = preferences
        self._since_refresh = 0

    def save_state(self, store: LearningStore) -> None:
        store.save(self.to_dict())

    def load_state(self, store: LearningStore) -> bool:
        payload = store.load()
        if payload is None:
            return False
        self.restore(payload)
        logger.info("Restored %d interactions from learning store", len(self._history))
        return True


def _interaction_to_dict(interaction: UserInteraction) -> dict:
    query = interaction.query
    return {
        "outcome": interaction.outcome,
        "opportunity_type": interaction.opportunity_type,
        "recorded_at": interaction.recorded_at.isoformat(),
        "query": None
        if query is None
        else {
            "intent": query.intent,
            "confidence": query.confidence,
            "entities": list(query.entities),
            "context": query.context,
        },
    }


def _interaction_from_dict(payload: Mapping) -> UserInteraction:
    raw_query = payload.get("query")
    query = None
    if raw_query:
        query = QueryResult(
            intent=raw_query["intent"],
            confidence=float(raw_query["confidence"]),
            entities=tuple(raw_query.get("entities", ())),
            context=raw_query.get("context", ""),
        )
    return UserInteraction(
        outcome=payload["outcome"],
        query=query,
        opportunity_type=payload.get("opportunity_type", ""),
        recorded_at=datetime.fromisoformat(payload["recorded_at"]),
    )
