"""Natural-language collaborators consumed by the query interpreter.

The engine only depends on the ``IntentClassifier`` and ``EntityExtractor``
protocols. The keyword implementations below keep the assistant usable
on-device without a trained model and can be swapped for real ones.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .errors import ModelUnavailable
from .models import ContextSnapshot
from .utils import clamp, dedupe, tokenize

logger = logging.getLogger(__name__)

UNKNOWN_INTENT = "unknown"


@dataclass(frozen=True, slots=True)
class IntentPrediction:
    intent: str
    confidence: float


class IntentClassifier(Protocol):
    def classify(self, text: str, snapshot: ContextSnapshot) -> IntentPrediction:
        ...


class EntityExtractor(Protocol):
    def extract(self, text: str) -> List[str]:
        ...


@dataclass(frozen=True, slots=True)
class IntentSpec:
    """Keyword description of one supported intent."""

    intent: str
    category: str
    domain: str
    keywords: Tuple[str, ...]


DEFAULT_INTENTS: Tuple[IntentSpec, ...] = (
    IntentSpec("add_physics_component", "physics", "game_dev", ("collider", "rigidbody", "physics", "collision", "gravity")),
    IntentSpec("create_script", "scripting", "game_dev", ("script", "scripting", "code", "behaviour", "behavior")),
    IntentSpec("light_scene", "rendering", "game_dev", ("light", "lighting", "shadow", "shadows", "bake")),
    IntentSpec("extrude_sketch", "modeling", "cad", ("extrude", "sketch", "profile", "pad")),
    IntentSpec("add_constraint", "constraints", "cad", ("constraint", "constraints", "dimension", "parallel", "perpendicular")),
    IntentSpec("create_fillet", "modeling", "cad", ("fillet", "chamfer", "round", "edge", "edges")),
    IntentSpec("set_keyframe", "keyframing", "animation", ("keyframe", "keyframes", "key", "timeline", "pose")),
    IntentSpec("edit_curves", "keyframing", "animation", ("curve", "curves", "easing", "interpolation", "graph")),
    IntentSpec("rig_character", "rigging", "animation", ("rig", "rigging", "bone", "bones", "skeleton", "skin")),
    IntentSpec("undo_help", "navigation", "general", ("undo", "revert", "history", "redo")),
    IntentSpec("find_tool", "navigation", "general", ("find", "where", "menu", "shortcut", "hotkey")),
)

DEFAULT_ENTITY_VOCABULARY: Tuple[str, ...] = (
    "box collider",
    "sphere collider",
    "mesh collider",
    "collider",
    "rigidbody",
    "script",
    "light",
    "camera",
    "material",
    "sketch",
    "profile",
    "fillet",
    "chamfer",
    "constraint",
    "keyframe",
    "timeline",
    "curve",
    "bone",
    "skeleton",
    "rig",
)

_QUOTED = re.compile(r"\"([^\"]+)\"|'([^']+)'")


class KeywordIntentModel:
    """Intent lookup tables loaded once and shared between assistants.

    The model must be loaded explicitly and closed when the host shuts down;
    classifiers built on top of it raise ``ModelUnavailable`` otherwise.
    """

    def __init__(self, intents: Iterable[IntentSpec] = DEFAULT_INTENTS) -> None:
        self._specs = tuple(intents)
        self._index: Optional[Dict[str, IntentSpec]] = None

    @property
    def loaded(self) -> bool:
        return self._index is not None

    def load(self) -> "KeywordIntentModel":
        if self._index is None:
            self._index = {spec.intent: spec for spec in self._specs}
            logger.info("Loaded keyword intent model with %d intents", len(self._index))
        return self

    def close(self) -> None:
        if self._index is not None:
            logger.info("Unloaded keyword intent model")
        self._index = None

    def __enter__(self) -> "KeywordIntentModel":
        return self.load()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def specs(self) -> Tuple[IntentSpec, ...]:
        if self._index is None:
            raise ModelUnavailable("keyword intent model is not loaded")
        return tuple(self._index.values())

    def category_for(self, intent: str) -> str:
        """Return the learning category of ``intent`` (the intent itself if unknown)."""

        for spec in self._specs:
            if spec.intent == intent:
                return spec.category
        return intent


class KeywordIntentClassifier:
    """Scores intents by keyword overlap, boosted when the domain matches."""

    def __init__(self, model: KeywordIntentModel, *, domain_bonus: float = 0.1) -> None:
        self.model = model
        self.domain_bonus = domain_bonus

    def classify(self, text: str, snapshot: ContextSnapshot) -> IntentPrediction:
        specs = self.model.specs()
        words = set(tokenize(text))
        best = IntentPrediction(intent=UNKNOWN_INTENT, confidence=0.0)
        for spec in specs:
            matches = len(words.intersection(spec.keywords))
            if not matches:
                continue
            confidence = 0.45 + 0.35 * min(1.0, matches / 2)
            if spec.domain == snapshot.domain:
                confidence += self.domain_bonus
            confidence = round(clamp(confidence, 0.0, 0.95), 4)
            if confidence > best.confidence:
                best = IntentPrediction(intent=spec.intent, confidence=confidence)
        return best


class VocabularyEntityExtractor:
    """Extracts known tool nouns and quoted names in order of appearance."""

    def __init__(self, vocabulary: Sequence[str] = DEFAULT_ENTITY_VOCABULARY) -> None:
        # Longest first so "box collider" wins over "collider".
        terms = sorted(vocabulary, key=len, reverse=True)
        self._pattern = re.compile(r"\b(" + "|".join(re.escape(term) for term in terms) + r")s?\b", re.IGNORECASE)

    def extract(self, text: str) -> List[str]:
        found: List[Tuple[int, str]] = []
        for match in self._pattern.finditer(text):
            found.append((match.start(), match.group(1).lower()))
        for match in _QUOTED.finditer(text):
            found.append((match.start(), match.group(1) or match.group(2)))
        found.sort(key=lambda item: item[0])
        return dedupe(entity for _, entity in found)
