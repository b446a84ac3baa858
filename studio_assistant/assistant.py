"""Behavior-tree driven contextual assistant."""

from __future__ import annotations

import logging
import sqlite3
from collections import deque
from concurrent.futures import Executor, Future
from datetime import datetime
from typing import Callable, Deque, Dict, Iterable, List, Optional

from .behavior_tree import (
    BehaviorTree,
    Decorator,
    Leaf,
    Node,
    Selector,
    Sequence,
    TickContext,
    all_of,
    any_of,
    in_state,
)
from .collector import ActivityCollector, CollectorConfig, ContextAnalyzer, SnapshotBuilder
from .config import AssistantConfig
from .errors import ErrorChannel, ErrorKind, InvariantViolation, ModelUnavailable
from .interpreter import QueryInterpreter
from .learning import ANSWERED, DROPPED, FAILED, SUGGESTED, LearningStore, LearningTracker, ModelUpdater
from .models import (
    ActivityEvent,
    AssistanceOpportunity,
    AssistantState,
    BTStatus,
    ContextSnapshot,
    QueryResult,
    UserPreferences,
)
from .nlp import EntityExtractor, IntentClassifier, KeywordIntentClassifier, KeywordIntentModel, VocabularyEntityExtractor
from .opportunities import DEFAULT_RULES, OpportunityAnalyzer, Rule
from .reporting import daily_report, weekly_report
from .resources import ResourceCatalog
from .responses import ResponseGenerator
from .state_machine import AssistantStateMachine
from .ui import AssistCard, ConsoleRenderer, Renderer, UIComplexityAdapter, milestone_card, response_card, suggestion_card

logger = logging.getLogger(__name__)

_PERSISTENCE_ERRORS = (OSError, sqlite3.Error, ValueError, KeyError, ModelUnavailable)


class AIAssistant:
    """Coordinates the components behind a single behavior tree.

    ``update`` is meant to be called once per editor frame. Each call ticks
    the tree exactly once; leaves request state changes which the state
    machine commits when the tick ends.
    """

    def __init__(
        self,
        *,
        config: AssistantConfig | None = None,
        model: KeywordIntentModel | None = None,
        classifier: IntentClassifier | None = None,
        extractor: EntityExtractor | None = None,
        executor: Executor | None = None,
        analyzer: ContextAnalyzer | None = None,
        rules: Iterable[Rule] | None = None,
        catalog: ResourceCatalog | None = None,
        renderer: Renderer | None = None,
        store: LearningStore | None = None,
        model_updater: ModelUpdater | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or AssistantConfig()
        self.errors = ErrorChannel()
        self._owns_model = model is None and classifier is None
        self.model = model or (KeywordIntentModel().load() if self._owns_model else None)
        if classifier is None:
            classifier = KeywordIntentClassifier(self.model)
        category_for = self.model.category_for if self.model else None
        self.collector = ActivityCollector(CollectorConfig(max_events=self.config.max_activity))
        self.snapshots = SnapshotBuilder(self.collector, analyzer, now=clock)
        self.interpreter = QueryInterpreter(classifier, extractor or VocabularyEntityExtractor(), executor=executor)
        self.learning = LearningTracker(self.config, category_for=category_for)
        self.catalog = catalog if catalog is not None else ResourceCatalog.with_defaults()
        self.opportunities = OpportunityAnalyzer(
            DEFAULT_RULES if rules is None else rules,
            floor=self.config.relevance_floor,
            epsilon=self.config.relevance_epsilon,
            catalog=self.catalog,
            adjust=self.learning.adjust_relevance,
        )
        self.ui_adapter = UIComplexityAdapter(min_delta=self.config.complexity_min_delta)
        self.responses = ResponseGenerator()
        self.renderer = renderer or ConsoleRenderer()
        self.store = store
        self.model_updater = model_updater
        self.executor = executor
        self.state_machine = AssistantStateMachine()
        self.tree = BehaviorTree(self._build_tree())
        self.dispatched: Deque[AssistCard] = deque(maxlen=100)
        self._inputs: Deque[str] = deque()
        self._query_result: Optional[QueryResult] = None
        self._displayed: Dict[str, AssistanceOpportunity] = {}
        self._last_scan: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Public surface

    @property
    def state(self) -> AssistantState:
        return self.state_machine.state

    @property
    def has_pending_input(self) -> bool:
        return bool(self._inputs)

    def submit_query(self, text: str) -> None:
        if not text or not text.strip():
            raise ValueError("query text must not be empty")
        self._inputs.append(text.strip())

    def record_activity(
        self,
        domain: str,
        tool: str,
        action: str,
        *,
        detail: str = "",
        is_error: bool = False,
    ) -> ActivityEvent:
        event = ActivityEvent(
            ts=self.snapshots.now(),
            domain=domain,
            tool=tool,
            action=action,
            detail=detail,
            is_error=is_error,
        )
        self.collector.ingest(event)
        return event

    def ingest_event(self, event: ActivityEvent) -> None:
        self.collector.ingest(event)

    def snapshot(self) -> ContextSnapshot:
        return self.snapshots.build()

    def update(self) -> BTStatus:
        """Run exactly one tick of the behavior tree."""

        now = self.snapshots.now()
        try:
            snapshot = self.snapshots.build()
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            self.errors.report(ErrorKind.MALFORMED_CONTEXT, "context_analyzer", str(exc))
            snapshot = ContextSnapshot.empty(now)
        state = self.state_machine.begin_tick()
        context = TickContext(snapshot=snapshot, state=state, now=now)
        try:
            status = self.tree.tick(context)
        except InvariantViolation as exc:
            self.state_machine.abort_tick()
            self.errors.report(ErrorKind.INVARIANT_VIOLATION, "behavior_tree", str(exc))
            if self.config.debug:
                raise
            self._recover("invariant violation")
            return BTStatus.FAILURE
        except Exception as exc:
            self.state_machine.abort_tick()
            self.errors.report(
                ErrorKind.COLLABORATOR_UNAVAILABLE,
                "behavior_tree",
                f"{type(exc).__name__}: {exc}",
            )
            if self.config.debug:
                raise
            self._recover("collaborator failure")
            return BTStatus.FAILURE
        self.state_machine.end_tick()
        return status

    def run_until_idle(self, *, max_ticks: int = 20) -> List[BTStatus]:
        statuses = [self.update()]
        while len(statuses) < max_ticks and (self.state is not AssistantState.IDLE or self._inputs):
            statuses.append(self.update())
        return statuses

    def cancel(self, reason: str = "cancelled") -> None:
        """Force the assistant back to idle, dropping queued and unanswered queries."""

        self.state_machine.reset(reason)
        self._inputs.clear()
        self._query_result = None
        self.tree.reset()
        logger.info("Assistant cancelled: %s", reason)

    def configure(self, config: AssistantConfig) -> None:
        config.validate()
        self.config = config
        self.learning.config = config
        self.opportunities.floor = config.relevance_floor
        self.opportunities.epsilon = config.relevance_epsilon
        self.ui_adapter.min_delta = config.complexity_min_delta

    def record_feedback(self, opportunity_type: str, *, adopted: bool) -> None:
        self.learning.record_feedback(opportunity_type, adopted=adopted)
        self._displayed.pop(opportunity_type, None)

    def adapt_style(self, preferences: UserPreferences) -> None:
        self.learning.adapt_style(preferences)

    def save_state(self) -> bool:
        if self.store is None:
            self.errors.report(ErrorKind.COLLABORATOR_UNAVAILABLE, "learning_store", "no store configured")
            return False
        try:
            self.learning.save_state(self.store)
        except _PERSISTENCE_ERRORS as exc:
            self.errors.report(ErrorKind.COLLABORATOR_UNAVAILABLE, "learning_store", str(exc))
            return False
        return True

    def load_state(self) -> bool:
        if self.store is None:
            self.errors.report(ErrorKind.COLLABORATOR_UNAVAILABLE, "learning_store", "no store configured")
            return False
        try:
            return self.learning.load_state(self.store)
        except _PERSISTENCE_ERRORS as exc:
            self.errors.report(ErrorKind.COLLABORATOR_UNAVAILABLE, "learning_store", str(exc))
            return False

    def daily_report_text(self) -> str:
        return daily_report(self.learning.history, self.learning.milestones).render_text()

    def weekly_report_text(self) -> str:
        return weekly_report(self.learning.history).render_text()

    def close(self) -> None:
        self.interpreter.discard()
        if self._owns_model and self.model is not None:
            self.model.close()

    # ------------------------------------------------------------------
    # Tree construction

    def _build_tree(self) -> Node:
        idle = in_state(AssistantState.IDLE)
        return Selector(
            "assistant",
            [
                Decorator(
                    "query_in_flight",
                    any_of(in_state(AssistantState.PROCESSING_QUERY), self._has_stale_query),
                    Leaf("process_query", self._process_query),
                ),
                Decorator(
                    "query_arrived",
                    all_of(idle, lambda context: self.has_pending_input),
                    Leaf("accept_query", self._accept_query),
                ),
                Decorator(
                    "assistance_eligible",
                    in_state(AssistantState.PROVIDING_ASSISTANCE),
                    Sequence(
                        "provide_assistance",
                        [
                            Leaf("respond_to_query", self._respond_to_query),
                            Leaf("provide_proactive_assistance", self._provide_proactive_assistance),
                            Leaf("finish_assistance", self._finish_assistance),
                        ],
                    ),
                ),
                Decorator(
                    "ui_update_eligible",
                    in_state(AssistantState.UPDATING_UI),
                    Leaf("adapt_user_interface", self._adapt_user_interface),
                ),
                Decorator(
                    "progress_eligible",
                    in_state(AssistantState.TRACKING_PROGRESS),
                    Sequence(
                        "track_progress",
                        [
                            Leaf("check_milestones", self._check_milestones),
                            Selector(
                                "model_refresh",
                                [
                                    Decorator("refresh_due", self._refresh_due, Leaf("refresh_models", self._refresh_models)),
                                    Leaf("skip_refresh", lambda context: BTStatus.SUCCESS),
                                ],
                            ),
                            Leaf("complete_cycle", self._complete_cycle),
                        ],
                    ),
                ),
                Decorator(
                    "monitor_due",
                    all_of(idle, self._scan_due),
                    Sequence(
                        "monitor_activity",
                        [
                            Leaf("update_activity_patterns", self._update_activity_patterns),
                            Leaf("identify_opportunity", self._identify_opportunity),
                        ],
                    ),
                ),
            ],
        )

    # ------------------------------------------------------------------
    # Predicates

    def _has_stale_query(self, context: TickContext) -> bool:
        pending = self.interpreter.pending
        return pending is not None and pending.epoch != self.state_machine.epoch

    def _refresh_due(self, context: TickContext) -> bool:
        return self.model_updater is not None and self.learning.refresh_due()

    def _scan_due(self, context: TickContext) -> bool:
        if not self.learning.preferences.proactive_enabled or not len(self.collector):
            return False
        if self._last_scan is None:
            return True
        return (context.now - self._last_scan).total_seconds() >= self.config.proactive_interval

    # ------------------------------------------------------------------
    # Leaves

    def _accept_query(self, context: TickContext) -> BTStatus:
        text = self._inputs.popleft()
        pending = self.interpreter.begin(text, context.snapshot, epoch=self.state_machine.epoch)
        self.state_machine.request(AssistantState.PROCESSING_QUERY, "query received")
        if pending.done() and pending.future.exception() is not None:
            # Failed inline; settle it now so the IDLE fallback lands this tick.
            return self._process_query(context)
        return BTStatus.SUCCESS

    def _process_query(self, context: TickContext) -> BTStatus:
        pending = self.interpreter.pending
        if pending is None:
            raise InvariantViolation("processing state without a query in flight")
        if pending.epoch != self.state_machine.epoch:
            self.interpreter.discard()
            logger.info("Discarded result of cancelled query %r", pending.text)
            return BTStatus.FAILURE
        try:
            result = self.interpreter.poll()
        except ModelUnavailable as exc:
            self.errors.report(ErrorKind.COLLABORATOR_UNAVAILABLE, "query_interpreter", str(exc))
            self.learning.record_interaction(FAILED)
            self._dispatch(response_card(self.responses.neutral()))
            self.state_machine.request(AssistantState.IDLE, "collaborator unavailable")
            return BTStatus.FAILURE
        if result is None:
            return BTStatus.RUNNING
        if result.confidence >= self.config.confidence_threshold:
            self._query_result = result
            self.state_machine.request(AssistantState.PROVIDING_ASSISTANCE, f"intent {result.intent}")
            return BTStatus.SUCCESS
        logger.debug("Dropping low-confidence query (%s, %.2f)", result.intent, result.confidence)
        self.learning.record_interaction(DROPPED, query=result)
        self._dispatch(response_card(self.responses.neutral(result.intent)))
        self.state_machine.request(AssistantState.IDLE, "low confidence")
        return BTStatus.FAILURE

    def _respond_to_query(self, context: TickContext) -> BTStatus:
        result, self._query_result = self._query_result, None
        if result is None:
            return BTStatus.SUCCESS
        topic = " ".join([result.intent.replace("_", " "), *result.entities])
        response = self.responses.generate(
            result,
            self.catalog.labels_for(topic),
            self.learning.preferences,
        )
        self._dispatch(response_card(response))
        self.learning.record_interaction(ANSWERED, query=result)
        return BTStatus.SUCCESS

    def _provide_proactive_assistance(self, context: TickContext) -> BTStatus:
        preferences = self.learning.preferences
        if not preferences.proactive_enabled:
            return BTStatus.SUCCESS
        surfaced = self.opportunities.analyze(context.snapshot)
        for opportunity in surfaced[: preferences.max_suggestions]:
            if self._displayed.get(opportunity.type) is opportunity:
                continue
            self._displayed[opportunity.type] = opportunity
            self._dispatch(suggestion_card(opportunity))
            self.learning.record_interaction(SUGGESTED, opportunity_type=opportunity.type)
        return BTStatus.SUCCESS

    def _finish_assistance(self, context: TickContext) -> BTStatus:
        self.state_machine.request(AssistantState.UPDATING_UI, "assistance dispatched")
        return BTStatus.SUCCESS

    def _adapt_user_interface(self, context: TickContext) -> BTStatus:
        score = self.ui_adapter.target_complexity(self.learning.summary(), self.learning.preferences)
        self.ui_adapter.publish(score, self.renderer)
        self.state_machine.request(AssistantState.TRACKING_PROGRESS, "ui adapted")
        return BTStatus.SUCCESS

    def _check_milestones(self, context: TickContext) -> BTStatus:
        for milestone in self.learning.check_milestones():
            self._dispatch(milestone_card(milestone))
        return BTStatus.SUCCESS

    def _refresh_models(self, context: TickContext) -> BTStatus:
        try:
            future = self.learning.refresh_models(self.model_updater, executor=self.executor)
        except Exception as exc:
            self.errors.report(ErrorKind.COLLABORATOR_UNAVAILABLE, "model_updater", str(exc))
            return BTStatus.SUCCESS
        if future is not None:
            future.add_done_callback(self._model_refresh_done)
        return BTStatus.SUCCESS

    def _model_refresh_done(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.errors.report(ErrorKind.COLLABORATOR_UNAVAILABLE, "model_updater", str(exc))

    def _complete_cycle(self, context: TickContext) -> BTStatus:
        self.state_machine.request(AssistantState.IDLE, "cycle complete")
        return BTStatus.SUCCESS

    def _update_activity_patterns(self, context: TickContext) -> BTStatus:
        self._last_scan = context.now
        self.learning.observe_activity(context.snapshot)
        return BTStatus.SUCCESS

    def _identify_opportunity(self, context: TickContext) -> BTStatus:
        surfaced = self.opportunities.analyze(context.snapshot)
        fresh = [item for item in surfaced if self._displayed.get(item.type) is not item]
        if not fresh:
            return BTStatus.FAILURE
        self.state_machine.request(AssistantState.PROVIDING_ASSISTANCE, f"proactive {fresh[0].type}")
        return BTStatus.SUCCESS

    # ------------------------------------------------------------------

    def _dispatch(self, card: AssistCard) -> None:
        self.renderer.present(card)
        self.dispatched.append(card)
        logger.info("Dispatched %s card: %s", card.kind, card.title)

    def _recover(self, reason: str) -> None:
        self.interpreter.discard()
        self._query_result = None
        self.tree.reset()
        self.state_machine.reset(reason)
