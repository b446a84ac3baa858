"""Studio Assistant: behavior-tree driven contextual help for creative tools."""

from .assistant import AIAssistant
from .behavior_tree import BehaviorTree, Decorator, Leaf, Selector, Sequence, TickContext
from .config import AssistantConfig
from .errors import ErrorChannel, ErrorKind, InvariantViolation, ModelUnavailable
from .models import (
    ActivityEvent,
    AssistanceOpportunity,
    AssistantState,
    BTStatus,
    ContextSnapshot,
    QueryResult,
    UserPreferences,
)
from .nlp import KeywordIntentModel
from .persistence import SQLiteLearningStore

__all__ = [
    "AIAssistant",
    "AssistantConfig",
    "BehaviorTree",
    "Sequence",
    "Selector",
    "Decorator",
    "Leaf",
    "TickContext",
    "ErrorChannel",
    "ErrorKind",
    "InvariantViolation",
    "ModelUnavailable",
    "ActivityEvent",
    "AssistanceOpportunity",
    "AssistantState",
    "BTStatus",
    "ContextSnapshot",
    "QueryResult",
    "UserPreferences",
    "KeywordIntentModel",
    "SQLiteLearningStore",
]
