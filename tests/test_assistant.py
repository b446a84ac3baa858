import pytest

from studio_assistant import (
    AIAssistant,
    AssistantConfig,
    AssistantState,
    BTStatus,
    ErrorKind,
    InvariantViolation,
    KeywordIntentModel,
    ModelUnavailable,
    SQLiteLearningStore,
    UserPreferences,
)

from conftest import DeferredExecutor, RecordingUpdater, ScriptedClassifier


@pytest.fixture
def assistant(renderer, clock):
    instance = AIAssistant(classifier=ScriptedClassifier(), renderer=renderer, clock=clock)
    yield instance
    instance.close()


def test_collider_question_walks_the_full_cycle(assistant, renderer):
    assistant.submit_query("how do I add a collider")
    statuses = assistant.run_until_idle()

    assert statuses == [BTStatus.SUCCESS] * 5
    assert [transition.target for transition in assistant.state_machine.transitions] == [
        AssistantState.PROCESSING_QUERY,
        AssistantState.PROVIDING_ASSISTANCE,
        AssistantState.UPDATING_UI,
        AssistantState.TRACKING_PROGRESS,
        AssistantState.IDLE,
    ]
    assert renderer.kinds() == ["response"]
    card = renderer.cards[0]
    assert "Collider" in card.body
    assert "docs/game/physics.md" in card.resources
    assert len(renderer.complexities) == 1
    assert assistant.learning.success_count("add_physics_component") == 1


def test_one_transition_per_tick(assistant):
    assistant.submit_query("how do I add a collider")
    assistant.update()
    assert assistant.state is AssistantState.PROCESSING_QUERY
    assistant.update()
    assert assistant.state is AssistantState.PROVIDING_ASSISTANCE
    assert "accept_query" not in assistant.tree.last_trace
    assert assistant.tree.last_trace[:3] == ["assistant", "query_in_flight", "process_query"]


@pytest.mark.parametrize(
    ("confidence", "expected"),
    [(0.5, ["response"]), (0.4999, ["notice"])],
)
def test_confidence_threshold_is_inclusive(renderer, clock, confidence, expected):
    assistant = AIAssistant(
        classifier=ScriptedClassifier(confidence=confidence),
        renderer=renderer,
        clock=clock,
    )
    assistant.submit_query("how do I add a collider")
    assistant.run_until_idle()

    assert renderer.kinds() == expected
    assert assistant.state is AssistantState.IDLE


def test_low_confidence_query_is_dropped_without_response(renderer, clock):
    assistant = AIAssistant(
        classifier=ScriptedClassifier(intent="unknown", confidence=0.1),
        renderer=renderer,
        clock=clock,
    )
    assistant.submit_query("what's for lunch")
    statuses = assistant.run_until_idle()

    assert statuses == [BTStatus.SUCCESS, BTStatus.FAILURE]
    assert renderer.cards[0].body == "No assistance available for that right now."
    assert [item.outcome for item in assistant.learning.history] == ["dropped"]


def test_unavailable_classifier_reports_once_and_returns_to_idle(renderer, clock):
    classifier = ScriptedClassifier(error=ModelUnavailable("classifier offline"))
    assistant = AIAssistant(classifier=classifier, renderer=renderer, clock=clock)
    assistant.submit_query("how do I add a collider")
    assert assistant.update() is BTStatus.FAILURE

    assert assistant.state is AssistantState.IDLE
    records = assistant.errors.records(ErrorKind.COLLABORATOR_UNAVAILABLE)
    assert len(records) == 1
    assert records[0].source == "query_interpreter"
    assert renderer.kinds() == ["notice"]


def test_unloaded_model_counts_as_unavailable(renderer, clock):
    assistant = AIAssistant(model=KeywordIntentModel(), renderer=renderer, clock=clock)
    assistant.submit_query("how do I add a collider")
    assistant.run_until_idle()

    assert assistant.state is AssistantState.IDLE
    assert len(assistant.errors.records(ErrorKind.COLLABORATOR_UNAVAILABLE)) == 1


def test_running_query_resumes_without_resubmission(renderer, clock):
    executor = DeferredExecutor()
    classifier = ScriptedClassifier()
    assistant = AIAssistant(classifier=classifier, executor=executor, renderer=renderer, clock=clock)
    assistant.submit_query("how do I add a collider")

    assert assistant.update() is BTStatus.SUCCESS
    assert assistant.update() is BTStatus.RUNNING
    assert assistant.update() is BTStatus.RUNNING
    assert assistant.state is AssistantState.PROCESSING_QUERY
    assert len(executor.jobs) == 1

    executor.run_all()
    assert assistant.update() is BTStatus.SUCCESS
    assert assistant.state is AssistantState.PROVIDING_ASSISTANCE
    assert classifier.calls == ["how do I add a collider"]


def test_cancel_discards_late_result(renderer, clock):
    executor = DeferredExecutor()
    assistant = AIAssistant(classifier=ScriptedClassifier(), executor=executor, renderer=renderer, clock=clock)
    assistant.submit_query("how do I add a collider")
    assistant.update()
    assistant.update()

    assistant.cancel("user closed the panel")
    assert assistant.state is AssistantState.IDLE
    assert assistant.state_machine.epoch == 1

    executor.run_all()
    assert assistant.update() is BTStatus.FAILURE
    assert assistant.interpreter.pending is None
    assert assistant.run_until_idle() == [BTStatus.FAILURE]
    assert renderer.cards == []
    assert assistant.learning.history == ()


def test_invariant_violation_resets_in_release_mode(renderer, clock):
    classifier = ScriptedClassifier(error=InvariantViolation("classifier state corrupted"))
    assistant = AIAssistant(classifier=classifier, renderer=renderer, clock=clock)
    assistant.submit_query("how do I add a collider")

    assert assistant.update() is BTStatus.FAILURE
    assert assistant.state is AssistantState.IDLE
    assert assistant.interpreter.pending is None
    assert len(assistant.errors.records(ErrorKind.INVARIANT_VIOLATION)) == 1


def test_invariant_violation_raises_in_debug_mode(renderer, clock):
    classifier = ScriptedClassifier(error=InvariantViolation("classifier state corrupted"))
    assistant = AIAssistant(
        config=AssistantConfig(debug=True),
        classifier=classifier,
        renderer=renderer,
        clock=clock,
    )
    assistant.submit_query("how do I add a collider")

    with pytest.raises(InvariantViolation):
        assistant.update()
    assert len(assistant.errors.records(ErrorKind.INVARIANT_VIOLATION)) == 1
    assert not assistant.state_machine.ticking


class FlakyRenderer:
    """Raises on the first card it is asked to present."""

    def __init__(self):
        self.cards = []
        self.failures = 1

    def present(self, card):
        if self.failures:
            self.failures -= 1
            raise OSError("broken pipe")
        self.cards.append(card)

    def set_complexity(self, score):
        pass


def test_renderer_failure_resets_instead_of_wedging(clock):
    renderer = FlakyRenderer()
    assistant = AIAssistant(classifier=ScriptedClassifier(), renderer=renderer, clock=clock)
    assistant.submit_query("how do I add a collider")

    statuses = assistant.run_until_idle()

    assert statuses[-1] is BTStatus.FAILURE
    assert assistant.state is AssistantState.IDLE
    assert not assistant.state_machine.ticking
    records = assistant.errors.records(ErrorKind.COLLABORATOR_UNAVAILABLE)
    assert [record.message for record in records] == ["OSError: broken pipe"]

    assistant.submit_query("how do I add a collider")
    assistant.run_until_idle()
    assert [card.kind for card in renderer.cards] == ["response"]
    assert assistant.state is AssistantState.IDLE


def test_renderer_failure_propagates_in_debug_mode(clock):
    assistant = AIAssistant(
        config=AssistantConfig(debug=True),
        classifier=ScriptedClassifier(),
        renderer=FlakyRenderer(),
        clock=clock,
    )
    assistant.submit_query("how do I add a collider")
    assistant.update()
    assistant.update()

    with pytest.raises(OSError):
        assistant.update()
    assert not assistant.state_machine.ticking


def test_malformed_context_falls_back_to_empty_snapshot(renderer, clock):
    class BrokenAnalyzer:
        def summarize(self, events, *, now):
            raise KeyError("domain")

    assistant = AIAssistant(classifier=ScriptedClassifier(), analyzer=BrokenAnalyzer(), renderer=renderer, clock=clock)
    assistant.submit_query("how do I add a collider")
    assistant.run_until_idle()

    assert renderer.kinds() == ["response"]
    assert assistant.errors.records(ErrorKind.MALFORMED_CONTEXT)


def test_proactive_suggestion_is_not_redisplayed(renderer, clock):
    assistant = AIAssistant(renderer=renderer, clock=clock)
    assistant.record_activity("game_dev", "scene_editor", "add_rigidbody")

    assistant.run_until_idle()
    assert renderer.kinds() == ["suggestion"]
    assert renderer.cards[0].title == "physics setup"
    assert "docs/game/physics.md" in renderer.cards[0].resources

    clock.advance(31)
    assert assistant.update() is BTStatus.FAILURE
    assert assistant.state is AssistantState.IDLE
    assert renderer.kinds() == ["suggestion"]
    assistant.close()


def test_proactive_monitoring_respects_preferences(renderer, clock):
    assistant = AIAssistant(classifier=ScriptedClassifier(), renderer=renderer, clock=clock)
    assistant.adapt_style(UserPreferences(proactive_enabled=False))
    assistant.record_activity("game_dev", "scene_editor", "add_rigidbody")

    assert assistant.update() is BTStatus.FAILURE
    assert renderer.cards == []


def test_milestone_uses_model_category(renderer, clock):
    config = AssistantConfig(milestone_thresholds={"default": (5,), "physics": (1,)})
    assistant = AIAssistant(config=config, renderer=renderer, clock=clock)
    assistant.submit_query("how do I add a collider")
    assistant.run_until_idle()

    assert renderer.kinds() == ["response", "milestone"]
    assert renderer.cards[1].title == "physics milestone"

    assistant.submit_query("how do I add a collider")
    assistant.run_until_idle()
    assert renderer.kinds() == ["response", "milestone", "response"]
    assistant.close()


def test_failing_model_refresh_still_completes_cycle(renderer, clock):
    updater = RecordingUpdater(fail=True)
    assistant = AIAssistant(
        config=AssistantConfig(model_refresh_interval=1),
        classifier=ScriptedClassifier(),
        model_updater=updater,
        renderer=renderer,
        clock=clock,
    )
    assistant.submit_query("how do I add a collider")
    assistant.run_until_idle()

    assert assistant.state is AssistantState.IDLE
    assert updater.calls == [1]
    records = assistant.errors.records(ErrorKind.COLLABORATOR_UNAVAILABLE)
    assert [record.source for record in records] == ["model_updater"]


def test_model_refresh_does_not_block_the_tick(renderer, clock):
    executor = DeferredExecutor()
    updater = RecordingUpdater(fail=True)
    assistant = AIAssistant(
        config=AssistantConfig(model_refresh_interval=1),
        classifier=ScriptedClassifier(),
        executor=executor,
        model_updater=updater,
        renderer=renderer,
        clock=clock,
    )
    assistant.submit_query("how do I add a collider")
    assistant.update()
    executor.run_all()
    assistant.run_until_idle()

    assert assistant.state is AssistantState.IDLE
    assert assistant.learning.refresh_count == 1
    assert updater.calls == []
    assert len(executor.jobs) == 1
    assert assistant.errors.records() == []

    executor.run_all()
    assert updater.calls == [1]
    records = assistant.errors.records(ErrorKind.COLLABORATOR_UNAVAILABLE)
    assert [record.source for record in records] == ["model_updater"]


def test_reports_summarise_history(assistant):
    assistant.submit_query("how do I add a collider")
    assistant.run_until_idle()

    daily = assistant.daily_report_text()
    assert "Queries: 1 (1 answered, 0 dropped, 0 failed)" in daily
    assert "- add_physics_component: 1" in daily
    assert "Answered queries: 1" in assistant.weekly_report_text()


def test_state_round_trips_through_store(renderer, clock):
    store = SQLiteLearningStore(":memory:")
    first = AIAssistant(classifier=ScriptedClassifier(), renderer=renderer, clock=clock, store=store)
    first.submit_query("how do I add a collider")
    first.run_until_idle()
    assert first.save_state() is True

    second = AIAssistant(classifier=ScriptedClassifier(), renderer=renderer, clock=clock, store=store)
    assert second.load_state() is True
    assert len(second.learning.history) == 1
    store.close()


def test_save_without_store_is_reported(assistant):
    assert assistant.save_state() is False
    assert assistant.errors.records(ErrorKind.COLLABORATOR_UNAVAILABLE)[0].message == "no store configured"
