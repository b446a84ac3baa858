"""Rule-based analysis of proactive assistance opportunities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from .models import AssistanceOpportunity, ContextSnapshot
from .resources import ResourceCatalog
from .utils import clamp

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OpportunityTemplate:
    """Intermediate representation produced by opportunity rules."""

    opportunity_type: str
    suggestion: str
    topic: str
    base_relevance: float = 0.5


Rule = Callable[[ContextSnapshot], Optional[OpportunityTemplate]]


def rank(opportunities: Iterable[AssistanceOpportunity], *, floor: float) -> List[AssistanceOpportunity]:
    """Drop opportunities at or below ``floor`` and sort by relevance.

    The sort is stable, so equally relevant opportunities keep the order in
    which they were computed.
    """

    surfaced = [item for item in opportunities if item.relevance > floor]
    return sorted(surfaced, key=lambda item: -item.relevance)


class OpportunityAnalyzer:
    """Evaluates context snapshots against the rule set."""

    def __init__(
        self,
        rules: Iterable[Rule],
        *,
        floor: float = 0.4,
        epsilon: float = 0.05,
        catalog: ResourceCatalog | None = None,
        adjust: Callable[[str, float], float] | None = None,
    ) -> None:
        self.rules = list(rules)
        self.floor = floor
        self.epsilon = epsilon
        self.catalog = catalog
        self.adjust = adjust
        self._previous: Dict[str, AssistanceOpportunity] = {}

    def analyze(self, snapshot: ContextSnapshot) -> List[AssistanceOpportunity]:
        candidates: List[AssistanceOpportunity] = []
        for rule in self.rules:
            template = rule(snapshot)
            if not template:
                continue
            relevance = template.base_relevance
            if self.adjust is not None:
                relevance = self.adjust(template.opportunity_type, relevance)
            resources = self.catalog.labels_for(template.topic) if self.catalog is not None else ()
            candidate = AssistanceOpportunity(
                type=template.opportunity_type,
                relevance=clamp(relevance),
                suggestion=template.suggestion,
                resources=resources,
            )
            candidates.append(candidate)
        # The floor applies to fresh relevance; reuse only keeps survivors stable.
        surfaced = [self._stabilise(item) for item in rank(candidates, floor=self.floor)]
        self._previous = {item.type: item for item in surfaced}
        if surfaced:
            logger.debug(
                "Surfaced opportunities: %s",
                ", ".join(f"{item.type}={item.relevance:.2f}" for item in surfaced),
            )
        return surfaced

    def _stabilise(self, candidate: AssistanceOpportunity) -> AssistanceOpportunity:
        previous = self._previous.get(candidate.type)
        if previous is not None and abs(previous.relevance - candidate.relevance) <= self.epsilon:
            return previous
        return candidate

    def clear(self) -> None:
        self._previous.clear()


def collider_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.domain != "game_dev":
        return None
    if not snapshot.usage_of("add_rigidbody") or snapshot.usage_of("add_collider"):
        return None
    return OpportunityTemplate(
        opportunity_type="physics_setup",
        suggestion="Rigidbodies without a collider fall through the floor. Add a Box Collider?",
        topic="collider rigidbody physics",
        base_relevance=0.75,
    )


def prefab_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.domain != "game_dev":
        return None
    duplicates = snapshot.usage_of("duplicate")
    if duplicates < 3:
        return None
    return OpportunityTemplate(
        opportunity_type="prefab",
        suggestion="You have duplicated this entity several times. Turn it into a prefab?",
        topic="prefab duplicate instance",
        base_relevance=min(0.6 + (duplicates - 3) * 0.05, 0.85),
    )


def sketch_constraint_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.domain != "cad":
        return None
    if snapshot.usage_of("sketch_line") < 4 or snapshot.usage_of("add_constraint"):
        return None
    return OpportunityTemplate(
        opportunity_type="constraints",
        suggestion="This sketch is under-constrained. Add dimensions before extruding?",
        topic="constraint dimension sketch",
        base_relevance=0.65,
    )


def fillet_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.domain != "cad" or "extrude" not in snapshot.recent_actions:
        return None
    if "edge" not in snapshot.selection.lower():
        return None
    return OpportunityTemplate(
        opportunity_type="fillet",
        suggestion="Round the selected edges with a fillet?",
        topic="fillet chamfer edge",
        base_relevance=0.55,
    )


def curve_editor_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.domain != "animation":
        return None
    if snapshot.usage_of("set_keyframe") < 5 or snapshot.usage_of("edit_curve"):
        return None
    return OpportunityTemplate(
        opportunity_type="curve_editing",
        suggestion="Smooth the motion between keys in the graph editor?",
        topic="curve easing interpolation graph",
        base_relevance=0.6,
    )


def auto_key_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.domain != "animation":
        return None
    streak = 0
    for action in reversed(snapshot.recent_actions):
        if action != "set_keyframe":
            break
        streak += 1
    if streak < 3:
        return None
    return OpportunityTemplate(
        opportunity_type="auto_key",
        suggestion="Enable auto-key so every pose change records a keyframe?",
        topic="keyframe timeline",
        base_relevance=0.5,
    )


def error_streak_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.error_count < 3:
        return None
    tool = snapshot.active_tool or "this tool"
    return OpportunityTemplate(
        opportunity_type="troubleshooting",
        suggestion=f"{tool} keeps failing. Open the troubleshooting guide?",
        topic=f"{snapshot.active_tool} {snapshot.domain}",
        base_relevance=min(0.5 + (snapshot.error_count - 3) * 0.1, 0.9),
    )


def undo_storm_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.undo_count < 4:
        return None
    return OpportunityTemplate(
        opportunity_type="history",
        suggestion="Lots of undos in a row. Jump to an earlier state from the history panel?",
        topic="undo history revert",
        base_relevance=min(0.55 + (snapshot.undo_count - 4) * 0.05, 0.8),
    )


def hesitation_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if not snapshot.recent_actions or snapshot.idle_seconds < 45:
        return None
    return OpportunityTemplate(
        opportunity_type="guidance",
        suggestion="Stuck? Ask me how to do something, for example 'how do I add a collider'.",
        topic=f"{snapshot.active_tool} {snapshot.domain}",
        base_relevance=0.45,
    )


def shortcut_rule(snapshot: ContextSnapshot) -> OpportunityTemplate | None:
    if snapshot.usage_of("menu_search") < 3:
        return None
    return OpportunityTemplate(
        opportunity_type="shortcut",
        suggestion="Open the command palette with Ctrl+P instead of browsing menus.",
        topic="command palette shortcut",
        base_relevance=0.5,
    )


DEFAULT_RULES: List[Rule] = [
    collider_rule,
    prefab_rule,
    sketch_constraint_rule,
    fillet_rule,
    curve_editor_rule,
    auto_key_rule,
    error_streak_rule,
    undo_storm_rule,
    hesitation_rule,
    shortcut_rule,
]
