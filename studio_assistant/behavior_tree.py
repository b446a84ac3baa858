"""Behavior tree engine driving the assistant's per-tick decisions.

The node set is closed: ``Sequence`` and ``Selector`` combine children,
``Decorator`` gates a single child on a predicate and ``Leaf`` wraps a named
action. Composites remember the child that returned ``RUNNING`` and resume
there on the next tick instead of restarting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence as SequenceType

from .errors import InvariantViolation
from .models import AssistantState, BTStatus, ContextSnapshot

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TickContext:
    """Read-only inputs of a single tick plus the trace it produces."""

    snapshot: ContextSnapshot
    state: AssistantState
    now: datetime
    tick: int = 0
    trace: List[str] = field(default_factory=list)


Action = Callable[[TickContext], BTStatus]
Predicate = Callable[[TickContext], bool]


class Node:
    """Base node; subclasses implement ``_evaluate``."""

    def __init__(self, name: str) -> None:
        self.name = name

    def tick(self, context: TickContext) -> BTStatus:
        context.trace.append(self.name)
        status = self._evaluate(context)
        if not isinstance(status, BTStatus):
            raise InvariantViolation(f"node {self.name!r} returned {status!r} instead of a BTStatus")
        return status

    def reset(self) -> None:
        """Forget any memory held between ticks."""

    def _evaluate(self, context: TickContext) -> BTStatus:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class _Composite(Node):
    def __init__(self, name: str, children: SequenceType[Node]) -> None:
        super().__init__(name)
        if not children:
            raise ValueError(f"{type(self).__name__} {name!r} needs at least one child")
        self.children = tuple(children)
        self.cursor = 0

    def reset(self) -> None:
        self.cursor = 0
        for child in self.children:
            child.reset()


class Sequence(_Composite):
    """Succeeds when every child succeeds, in order."""

    def _evaluate(self, context: TickContext) -> BTStatus:
        while self.cursor < len(self.children):
            status = self.children[self.cursor].tick(context)
            if status is BTStatus.RUNNING:
                return status
            if status is BTStatus.FAILURE:
                self.cursor = 0
                return status
            self.cursor += 1
        self.cursor = 0
        return BTStatus.SUCCESS


class Selector(_Composite):
    """Succeeds with the first child that succeeds."""

    def _evaluate(self, context: TickContext) -> BTStatus:
        while self.cursor < len(self.children):
            status = self.children[self.cursor].tick(context)
            if status is BTStatus.RUNNING:
                return status
            if status is BTStatus.SUCCESS:
                self.cursor = 0
                return status
            self.cursor += 1
        self.cursor = 0
        return BTStatus.FAILURE


class Decorator(Node):
    """Ticks its child only while ``predicate`` holds."""

    def __init__(self, name: str, predicate: Predicate, child: Node) -> None:
        super().__init__(name)
        self.predicate = predicate
        self.child = child

    def reset(self) -> None:
        self.child.reset()

    def _evaluate(self, context: TickContext) -> BTStatus:
        if not self.predicate(context):
            return BTStatus.FAILURE
        return self.child.tick(context)


class Leaf(Node):
    """Performs one unit of work through ``action``."""

    def __init__(self, name: str, action: Action) -> None:
        super().__init__(name)
        self.action = action

    def _evaluate(self, context: TickContext) -> BTStatus:
        return self.action(context)


def tick(node: Node, context: TickContext) -> BTStatus:
    return node.tick(context)


def in_state(*states: AssistantState) -> Predicate:
    allowed = frozenset(states)

    def predicate(context: TickContext) -> bool:
        return context.state in allowed

    predicate.__name__ = "in_state_" + "_".join(state.value for state in states)
    return predicate


def all_of(*predicates: Predicate) -> Predicate:
    def predicate(context: TickContext) -> bool:
        return all(check(context) for check in predicates)

    return predicate


def any_of(*predicates: Predicate) -> Predicate:
    def predicate(context: TickContext) -> bool:
        return any(check(context) for check in predicates)

    return predicate


class BehaviorTree:
    """Owns a fixed root node and ticks it once per update."""

    def __init__(self, root: Node) -> None:
        self.root = root
        self.tick_count = 0
        self.last_status: Optional[BTStatus] = None
        self.last_trace: List[str] = []

    def tick(self, context: TickContext) -> BTStatus:
        self.tick_count += 1
        context.tick = self.tick_count
        status = tick(self.root, context)
        self.last_status = status
        self.last_trace = list(context.trace)
        logger.debug("Tick %d -> %s via %s", self.tick_count, status.value, " > ".join(context.trace))
        return status

    def reset(self) -> None:
        self.root.reset()
