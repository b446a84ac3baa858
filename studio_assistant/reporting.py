"""Learning progress reports over the interaction history."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List

from .learning import ADOPTED, ANSWERED, DISMISSED, DROPPED, FAILED, SUGGESTED
from .models import LearningMilestone, UserInteraction


@dataclass(slots=True)
class Report:
    title: str
    summary_lines: List[str]

    def render_text(self) -> str:
        return "\n".join([self.title, "-" * len(self.title), *self.summary_lines])


def _today() -> date:
    return datetime.now(timezone.utc).date()


def daily_report(
    interactions: Iterable[UserInteraction],
    milestones: Iterable[LearningMilestone] = (),
    *,
    target_date: date | None = None,
) -> Report:
    target_date = target_date or _today()
    day = [item for item in interactions if item.recorded_at.date() == target_date]
    title = f"{target_date} Daily Report"
    if not day:
        return Report(title=title, summary_lines=["No activity recorded."])
    outcomes = Counter(item.outcome for item in day)
    queries = outcomes[ANSWERED] + outcomes[DROPPED] + outcomes[FAILED]
    lines = [
        f"Queries: {queries} ({outcomes[ANSWERED]} answered, {outcomes[DROPPED]} dropped, {outcomes[FAILED]} failed)",
        f"Suggestions shown: {outcomes[SUGGESTED]}",
    ]
    if queries:
        lines.append(f"Answer rate: {outcomes[ANSWERED] / queries:.0%}")
    intents = Counter(item.intent for item in day if item.outcome == ANSWERED)
    for intent, count in intents.most_common():
        lines.append(f"- {intent}: {count}")
    reached = [m for m in milestones if m.reached_at.date() == target_date]
    for milestone in reached:
        lines.append(f"* milestone: {milestone.threshold} {milestone.category}")
    return Report(title=title, summary_lines=lines)


def weekly_report(
    interactions: Iterable[UserInteraction],
    *,
    end_date: date | None = None,
) -> Report:
    end_date = end_date or _today()
    start_date = end_date - timedelta(days=6)
    week = [item for item in interactions if start_date <= item.recorded_at.date() <= end_date]
    title = f"Week ending {end_date}"
    if not week:
        return Report(title=title, summary_lines=["No activity recorded."])
    shown = Counter()
    adopted = Counter()
    dismissed = Counter()
    for item in week:
        if not item.opportunity_type:
            continue
        if item.outcome == SUGGESTED:
            shown[item.opportunity_type] += 1
        elif item.outcome == ADOPTED:
            adopted[item.opportunity_type] += 1
        elif item.outcome == DISMISSED:
            dismissed[item.opportunity_type] += 1
    lines = [
        f"Span: {start_date} - {end_date}",
        f"Interactions: {len(week)}",
        f"Answered queries: {sum(1 for item in week if item.outcome == ANSWERED)}",
    ]
    for opportunity_type, total in shown.most_common():
        lines.append(
            f"- {opportunity_type}: {total} shown, {adopted[opportunity_type]} adopted, "
            f"{dismissed[opportunity_type]} dismissed"
        )
    return Report(title=title, summary_lines=lines)
