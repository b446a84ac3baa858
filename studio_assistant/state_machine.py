"""Coarse assistant mode with tick-boundary transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional

from .errors import InvariantViolation
from .models import AssistantState

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[AssistantState, FrozenSet[AssistantState]] = {
    AssistantState.IDLE: frozenset({AssistantState.PROCESSING_QUERY, AssistantState.PROVIDING_ASSISTANCE}),
    AssistantState.PROCESSING_QUERY: frozenset({AssistantState.PROVIDING_ASSISTANCE, AssistantState.IDLE}),
    AssistantState.PROVIDING_ASSISTANCE: frozenset({AssistantState.UPDATING_UI, AssistantState.IDLE}),
    AssistantState.UPDATING_UI: frozenset({AssistantState.TRACKING_PROGRESS, AssistantState.IDLE}),
    AssistantState.TRACKING_PROGRESS: frozenset({AssistantState.IDLE}),
}


@dataclass(frozen=True, slots=True)
class Transition:
    source: AssistantState
    target: AssistantState
    reason: str
    tick: int
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AssistantStateMachine:
    """Holds the single active ``AssistantState``.

    Leaves request transitions while a tick is open; the request is committed
    when the tick closes, so every node of one tick sees the same state.
    """

    def __init__(self, initial: AssistantState = AssistantState.IDLE, *, history_limit: int = 200) -> None:
        self._state = initial
        self._pending: Optional[Transition] = None
        self._ticking = False
        self._tick = 0
        self.epoch = 0
        self.history_limit = history_limit
        self.transitions: List[Transition] = []

    @property
    def state(self) -> AssistantState:
        return self._state

    @property
    def ticking(self) -> bool:
        return self._ticking

    @property
    def pending_target(self) -> Optional[AssistantState]:
        return self._pending.target if self._pending else None

    def can_transition(self, target: AssistantState) -> bool:
        return target is AssistantState.IDLE or target in TRANSITIONS[self._state]

    def begin_tick(self) -> AssistantState:
        if self._ticking:
            raise InvariantViolation("tick already in progress")
        self._ticking = True
        self._tick += 1
        return self._state

    def request(self, target: AssistantState, reason: str = "") -> None:
        if not self.can_transition(target):
            raise InvariantViolation(f"illegal transition {self._state.value} -> {target.value}")
        transition = Transition(source=self._state, target=target, reason=reason, tick=self._tick)
        if not self._ticking:
            if target is not self._state:
                self._apply(transition)
            return
        if self._pending is not None and self._pending.target is not target:
            if target is not AssistantState.IDLE and self._pending.target is not AssistantState.IDLE:
                raise InvariantViolation(
                    f"conflicting transitions requested: {self._pending.target.value} and {target.value}"
                )
            if self._pending.target is AssistantState.IDLE:
                return
        self._pending = transition

    def end_tick(self) -> AssistantState:
        if not self._ticking:
            raise InvariantViolation("no tick in progress")
        self._ticking = False
        pending, self._pending = self._pending, None
        if pending is not None and pending.target is not self._state:
            self._apply(pending)
        return self._state

    def reset(self, reason: str = "reset") -> None:
        """Force the machine back to idle and invalidate in-flight work."""

        self.epoch += 1
        self.request(AssistantState.IDLE, reason)

    def abort_tick(self) -> None:
        """Close a tick that raised, dropping its pending request."""

        self._ticking = False
        self._pending = None

    def _apply(self, transition: Transition) -> None:
        logger.debug(
            "State %s -> %s (%s)", transition.source.value, transition.target.value, transition.reason or "-"
        )
        self._state = transition.target
        self.transitions.append(transition)
        if len(self.transitions) > self.history_limit:
            self.transitions = self.transitions[-self.history_limit :]
