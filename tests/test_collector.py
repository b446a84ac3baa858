from datetime import datetime, timedelta, timezone

import pytest

from studio_assistant.collector import (
    ActivityCollector,
    ActivityContextAnalyzer,
    CollectorConfig,
    SnapshotBuilder,
    event_from_dict,
)
from studio_assistant.models import ActivityEvent, ContextSnapshot

NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def event(seconds_ago, action, *, tool="scene_editor", detail="", is_error=False):
    return ActivityEvent(
        ts=NOW - timedelta(seconds=seconds_ago),
        domain="game_dev",
        tool=tool,
        action=action,
        detail=detail,
        is_error=is_error,
    )


def test_collector_keeps_a_bounded_buffer():
    collector = ActivityCollector(CollectorConfig(max_events=3))
    collector.extend(event(10 - i, f"action_{i}") for i in range(5))

    assert len(collector) == 3
    assert collector.latest().action == "action_4"
    assert [item.action for item in collector.iter_recent()] == ["action_4", "action_3", "action_2"]


def test_summary_counts_window_and_usage():
    events = [
        event(120, "duplicate"),
        event(50, "select", detail="Player"),
        event(40, "duplicate"),
        event(30, "undo"),
        event(20, "build", is_error=True),
        event(10, "undo", tool="inspector"),
    ]
    snapshot = ActivityContextAnalyzer(window_seconds=60.0, recent=3).summarize(events, now=NOW)

    assert snapshot.domain == "game_dev"
    assert snapshot.active_tool == "inspector"
    assert snapshot.recent_actions == ("undo", "build", "undo")
    assert snapshot.selection == "Player"
    assert snapshot.action_rate == 5.0
    assert snapshot.error_count == 1
    assert snapshot.undo_count == 2
    assert snapshot.idle_seconds == 10.0
    assert snapshot.usage_of("duplicate") == 2
    assert snapshot.describe() == "game_dev:inspector:undo"


def test_empty_history_gives_empty_snapshot():
    snapshot = ActivityContextAnalyzer().summarize([], now=NOW)
    assert snapshot == ContextSnapshot(ts=NOW)


class BrokenAnalyzer:
    def summarize(self, events, *, now):
        return {"domain": "game_dev"}


def test_builder_rejects_malformed_analyzer_output():
    builder = SnapshotBuilder(ActivityCollector(), BrokenAnalyzer(), now=lambda: NOW)
    with pytest.raises(TypeError):
        builder.build()


def test_event_from_dict_normalises_timestamps():
    parsed = event_from_dict({"action": "extrude", "domain": "cad", "ts": "2026-10-18T08:59:00"})
    assert parsed.ts.tzinfo is timezone.utc
    assert parsed.domain == "cad"

    epoch = event_from_dict({"action": "select", "ts": 0})
    assert epoch.ts == datetime(1970, 1, 1, tzinfo=timezone.utc)

    with pytest.raises(ValueError):
        event_from_dict({"tool": "inspector"})
