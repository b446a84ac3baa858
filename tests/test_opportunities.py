from datetime import datetime, timezone

import pytest

from studio_assistant.models import AssistanceOpportunity, ContextSnapshot
from studio_assistant.opportunities import (
    DEFAULT_RULES,
    OpportunityAnalyzer,
    OpportunityTemplate,
    error_streak_rule,
    prefab_rule,
    rank,
)
from studio_assistant.resources import ResourceCatalog

NOW = datetime(2026, 10, 18, tzinfo=timezone.utc)


def opportunity(name, relevance):
    return AssistanceOpportunity(type=name, relevance=relevance, suggestion=name)


def test_rank_drops_low_relevance_and_keeps_tie_order():
    items = [opportunity("a", 0.9), opportunity("b", 0.3), opportunity("c", 0.9), opportunity("d", 0.5)]
    ranked = rank(items, floor=0.4)
    assert [item.type for item in ranked] == ["a", "c", "d"]
    assert [item.relevance for item in ranked] == [0.9, 0.9, 0.5]


def test_rank_floor_is_exclusive():
    assert rank([opportunity("a", 0.4)], floor=0.4) == []


class Tunable:
    """Rule whose relevance a test can move between passes."""

    def __init__(self, relevance):
        self.relevance = relevance

    def __call__(self, snapshot):
        return OpportunityTemplate("tunable", "Try the tunable tool", "tool", self.relevance)


def test_previous_suggestion_reused_within_epsilon():
    rule = Tunable(0.7)
    analyzer = OpportunityAnalyzer([rule], floor=0.4, epsilon=0.05)
    snapshot = ContextSnapshot(ts=NOW)

    first = analyzer.analyze(snapshot)[0]
    rule.relevance = 0.73
    second = analyzer.analyze(snapshot)[0]
    assert second is first

    rule.relevance = 0.9
    third = analyzer.analyze(snapshot)[0]
    assert third is not first
    assert third.relevance == 0.9


def test_reuse_never_keeps_a_suggestion_below_the_floor():
    rule = Tunable(0.42)
    analyzer = OpportunityAnalyzer([rule], floor=0.4, epsilon=0.05)
    snapshot = ContextSnapshot(ts=NOW)

    assert [item.relevance for item in analyzer.analyze(snapshot)] == [0.42]
    rule.relevance = 0.38
    assert analyzer.analyze(snapshot) == []

    rule.relevance = 0.43
    assert [item.relevance for item in analyzer.analyze(snapshot)] == [0.43]


def test_adjust_hook_changes_relevance():
    analyzer = OpportunityAnalyzer([Tunable(0.5)], floor=0.4, adjust=lambda kind, relevance: relevance - 0.2)
    assert analyzer.analyze(ContextSnapshot(ts=NOW)) == []


def test_game_dev_rules_fire_on_usage_patterns():
    snapshot = ContextSnapshot(
        ts=NOW,
        domain="game_dev",
        feature_usage=(("add_rigidbody", 1), ("duplicate", 5)),
    )
    analyzer = OpportunityAnalyzer(DEFAULT_RULES, catalog=ResourceCatalog.with_defaults())
    surfaced = analyzer.analyze(snapshot)

    assert [item.type for item in surfaced] == ["physics_setup", "prefab"]
    assert surfaced[1].relevance == pytest.approx(0.7)
    assert "docs/game/physics.md" in surfaced[0].resources


def test_rules_ignore_other_domains():
    snapshot = ContextSnapshot(ts=NOW, domain="cad", feature_usage=(("duplicate", 9),))
    assert prefab_rule(snapshot) is None


def test_error_streak_scales_with_errors():
    template = error_streak_rule(ContextSnapshot(ts=NOW, active_tool="extrude", error_count=5))
    assert template.opportunity_type == "troubleshooting"
    assert template.base_relevance == pytest.approx(0.7)
    assert error_streak_rule(ContextSnapshot(ts=NOW, error_count=2)) is None
