"""Shared fakes for the studio assistant tests."""

import sys
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from studio_assistant.errors import ModelUnavailable  # noqa: E402
from studio_assistant.nlp import IntentPrediction  # noqa: E402


class FakeClock:
    def __init__(self, start=None):
        self.current = start or datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current += timedelta(seconds=seconds)


class RecordingRenderer:
    def __init__(self):
        self.cards = []
        self.complexities = []

    def present(self, card):
        self.cards.append(card)

    def set_complexity(self, score):
        self.complexities.append(score)

    def kinds(self):
        return [card.kind for card in self.cards]


class ScriptedClassifier:
    """Returns a fixed prediction, or raises when ``error`` is set."""

    def __init__(self, intent="add_physics_component", confidence=0.82, error=None):
        self.prediction = IntentPrediction(intent=intent, confidence=confidence)
        self.error = error
        self.calls = []

    def classify(self, text, snapshot):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.prediction


class DeferredExecutor(Executor):
    """Executor whose work only runs when the test says so."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for future, fn, args, kwargs in jobs:
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = fn(*args, **kwargs)
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)


class RecordingUpdater:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def update_models(self, history):
        self.calls.append(len(history))
        if self.fail:
            raise ModelUnavailable("training backend offline")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def renderer():
    return RecordingRenderer()
