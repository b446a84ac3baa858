"""Query interpretation on top of the NLP collaborators."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Optional

from .errors import InvariantViolation
from .models import ContextSnapshot, QueryResult
from .nlp import EntityExtractor, IntentClassifier
from .utils import clamp

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingQuery:
    """The single interpretation an assistant may have in flight."""

    text: str
    epoch: int
    future: "Future[QueryResult]"

    def done(self) -> bool:
        return self.future.done()


class QueryInterpreter:
    """Turns raw text into a ``QueryResult``.

    Without an executor the collaborators run inline and ``begin`` returns an
    already-finished query. With one, the work runs elsewhere and callers poll
    on later ticks.
    """

    def __init__(
        self,
        classifier: IntentClassifier,
        extractor: EntityExtractor,
        *,
        executor: Executor | None = None,
    ) -> None:
        self.classifier = classifier
        self.extractor = extractor
        self.executor = executor
        self._pending: Optional[PendingQuery] = None

    @property
    def pending(self) -> Optional[PendingQuery]:
        return self._pending

    def interpret(self, text: str, snapshot: ContextSnapshot) -> QueryResult:
        if not text or not text.strip():
            raise ValueError("query text must not be empty")
        prediction = self.classifier.classify(text, snapshot)
        entities = self.extractor.extract(text)
        return QueryResult(
            intent=prediction.intent,
            confidence=clamp(float(prediction.confidence)),
            entities=tuple(entities),
            context=snapshot.describe(),
        )

    def begin(self, text: str, snapshot: ContextSnapshot, *, epoch: int) -> PendingQuery:
        if self._pending is not None:
            raise InvariantViolation("a query interpretation is already in flight")
        if not text or not text.strip():
            raise ValueError("query text must not be empty")
        if self.executor is not None:
            future = self.executor.submit(self.interpret, text, snapshot)
        else:
            future = Future()
            try:
                future.set_result(self.interpret(text, snapshot))
            except Exception as exc:
                future.set_exception(exc)
        self._pending = PendingQuery(text=text, epoch=epoch, future=future)
        logger.debug("Began interpreting query %r (epoch %d)", text, epoch)
        return self._pending

    def poll(self) -> Optional[QueryResult]:
        """Return the finished result, or ``None`` while still running.

        Collaborator exceptions are re-raised after the pending slot is freed.
        """

        if self._pending is None:
            raise InvariantViolation("no query interpretation is in flight")
        if not self._pending.done():
            return None
        pending, self._pending = self._pending, None
        return pending.future.result()

    def discard(self) -> bool:
        if self._pending is None:
            return False
        pending, self._pending = self._pending, None
        pending.future.cancel()
        logger.debug("Discarded in-flight query %r", pending.text)
        return True
