"""Error taxonomy and the side channel for unexpected failures."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, List

logger = logging.getLogger(__name__)


class AssistantError(Exception):
    """Base class for assistant errors."""


class ModelUnavailable(AssistantError):
    """Raised by an NLP or learning collaborator that cannot serve a request."""


class InvariantViolation(AssistantError):
    """Raised when the assistant is driven into an impossible state."""


class ErrorKind(str, Enum):
    COLLABORATOR_UNAVAILABLE = "collaborator_unavailable"
    INVARIANT_VIOLATION = "invariant_violation"
    MALFORMED_CONTEXT = "malformed_context"


@dataclass(slots=True)
class ErrorRecord:
    kind: ErrorKind
    source: str
    message: str
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ErrorChannel:
    """Collects failures that must not be encoded as a tick status."""

    def __init__(self, *, max_records: int = 500) -> None:
        self.max_records = max_records
        self._records: List[ErrorRecord] = []

    def report(self, kind: ErrorKind, source: str, message: str) -> ErrorRecord:
        record = ErrorRecord(kind=kind, source=source, message=message)
        self._records.append(record)
        if len(self._records) > self.max_records:
            self._records = self._records[-self.max_records :]
        if kind is ErrorKind.INVARIANT_VIOLATION:
            logger.error("%s: %s", source, message)
        else:
            logger.warning("%s (%s): %s", source, kind.value, message)
        return record

    def records(self, kind: ErrorKind | None = None) -> List[ErrorRecord]:
        if kind is None:
            return list(self._records)
        return [record for record in self._records if record.kind is kind]

    def clear(self) -> None:
        self._records.clear()

    def __iter__(self) -> Iterator[ErrorRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)
