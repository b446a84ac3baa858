"""Activity collection and context snapshot assembly."""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Deque, Iterable, Iterator, List, Protocol, Sequence

from .models import ActivityEvent, ContextSnapshot

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CollectorConfig:
    """Configuration for the activity ring buffer."""

    max_events: int = 256


class ActivityCollector:
    """Maintains a rolling buffer of recent user activity."""

    def __init__(self, config: CollectorConfig | None = None) -> None:
        self.config = config or CollectorConfig()
        self._buffer: Deque[ActivityEvent] = deque(maxlen=self.config.max_events)

    def ingest(self, event: ActivityEvent) -> None:
        self._buffer.append(event)

    def extend(self, events: Iterable[ActivityEvent]) -> None:
        for event in events:
            self.ingest(event)

    def latest(self) -> ActivityEvent | None:
        return self._buffer[-1] if self._buffer else None

    def iter_recent(self) -> Iterator[ActivityEvent]:
        return iter(reversed(self._buffer))

    def events(self) -> List[ActivityEvent]:
        return list(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)


class ContextAnalyzer(Protocol):
    def summarize(self, events: Sequence[ActivityEvent], *, now: datetime) -> ContextSnapshot:
        ...


class ActivityContextAnalyzer:
    """Pure summariser turning activity history into a context snapshot."""

    def __init__(self, *, window_seconds: float = 60.0, recent: int = 5) -> None:
        self.window_seconds = window_seconds
        self.recent = recent

    def summarize(self, events: Sequence[ActivityEvent], *, now: datetime) -> ContextSnapshot:
        if not events:
            return ContextSnapshot.empty(now)
        latest = events[-1]
        windowed = [
            event for event in events if (now - event.ts).total_seconds() <= self.window_seconds
        ]
        minutes = self.window_seconds / 60.0
        usage = Counter(event.action for event in events)
        selection = ""
        for event in reversed(events):
            if event.action == "select":
                selection = event.detail
                break
        return ContextSnapshot(
            ts=now,
            domain=latest.domain,
            active_tool=latest.tool,
            recent_actions=tuple(event.action for event in events[-self.recent :]),
            selection=selection,
            action_rate=len(windowed) / minutes if minutes else 0.0,
            error_count=sum(1 for event in windowed if event.is_error),
            undo_count=sum(1 for event in windowed if event.action == "undo"),
            idle_seconds=max(0.0, (now - latest.ts).total_seconds()),
            feature_usage=tuple(sorted(usage.items())),
        )


class SnapshotBuilder:
    """Assembles the per-tick context snapshot from the collector."""

    def __init__(
        self,
        collector: ActivityCollector,
        analyzer: ContextAnalyzer | None = None,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.collector = collector
        self.analyzer = analyzer or ActivityContextAnalyzer()
        self._now = now or (lambda: datetime.now(timezone.utc))

    def build(self) -> ContextSnapshot:
        snapshot = self.analyzer.summarize(self.collector.events(), now=self._now())
        if not isinstance(snapshot, ContextSnapshot):
            raise TypeError(f"Context analyzer returned {type(snapshot).__name__}, expected ContextSnapshot")
        return snapshot

    def now(self) -> datetime:
        return self._now()


def event_from_dict(payload: dict) -> ActivityEvent:
    """Helper to construct an activity event from a dictionary."""

    if not payload.get("action"):
        raise ValueError("activity event requires an 'action'")
    ts_raw = payload.get("ts")
    if isinstance(ts_raw, (int, float)):
        ts = datetime.fromtimestamp(ts_raw, tz=timezone.utc)
    elif isinstance(ts_raw, str):
        ts = datetime.fromisoformat(ts_raw)
    elif isinstance(ts_raw, datetime):
        ts = ts_raw
    else:
        ts = datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ActivityEvent(
        ts=ts,
        domain=payload.get("domain", "general"),
        tool=payload.get("tool", ""),
        action=payload["action"],
        detail=payload.get("detail", ""),
        is_error=bool(payload.get("is_error", False)),
    )
