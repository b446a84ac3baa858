"""Answer generation for interpreted queries."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

from .models import QueryResult, UserPreferences

NEUTRAL_TEXT = "No assistance available for that right now."

_FIRST_SENTENCE = re.compile(r"^(.+?[.!?])(\s|$)")

_TEMPLATES: Dict[str, Tuple[str, str]] = {
    "add_physics_component": (
        "collider",
        "Select the entity, open the Inspector and choose Add Component > Physics > {entity}. "
        "Pair it with a Rigidbody if the object should react to gravity.",
    ),
    "create_script": (
        "script",
        "Choose Add Component > New Script, name it, then double-click the {entity} to edit it. "
        "Public fields show up in the Inspector.",
    ),
    "light_scene": (
        "light",
        "Use Create > Light and pick a type for the {entity}. Bake lighting from the Lighting window "
        "once the layout is final.",
    ),
    "extrude_sketch": (
        "sketch",
        "Finish the {entity}, then pick Extrude and drag the arrow or type a distance. "
        "Closed profiles become solids.",
    ),
    "add_constraint": (
        "constraint",
        "Select the sketch entities and pick a {entity} from the Constraints toolbar. "
        "Fully constrained geometry turns black.",
    ),
    "create_fillet": (
        "fillet",
        "Select the edges and choose Modify > {entity} to round them. Enter the radius in the dialog.",
    ),
    "set_keyframe": (
        "keyframe",
        "Pose the object and press K to insert a {entity} at the current frame on the timeline.",
    ),
    "edit_curves": (
        "curve",
        "Open the Graph Editor, select the {entity} and change its interpolation from the Key menu.",
    ),
    "rig_character": (
        "bone",
        "Add an armature, place each {entity} inside the mesh, then parent the mesh with automatic weights.",
    ),
    "undo_help": (
        "history",
        "Press Ctrl+Z to undo or open the History panel to jump back several steps at once.",
    ),
    "find_tool": (
        "tool",
        "Press Ctrl+P to open the command palette and type the name of the {entity}.",
    ),
}


@dataclass(slots=True)
class AssistanceResponse:
    intent: str
    text: str
    resources: Tuple[str, ...] = ()
    neutral: bool = False


class ResponseGenerator:
    """Maps interpreted intents to domain-specific answers."""

    def __init__(self, templates: Dict[str, Tuple[str, str]] | None = None) -> None:
        self.templates = dict(_TEMPLATES if templates is None else templates)

    def generate(
        self,
        result: QueryResult,
        resources: Sequence[str] = (),
        preferences: UserPreferences | None = None,
    ) -> AssistanceResponse:
        default_entity, template = self.templates.get(
            result.intent,
            ("topic", "Here is what I found about {entity}. See the linked resources for details."),
        )
        entity = result.entities[0] if result.entities else default_entity
        text = template.format(entity=_title(entity))
        if preferences is not None and preferences.verbosity == "brief":
            match = _FIRST_SENTENCE.match(text)
            if match:
                text = match.group(1)
        return AssistanceResponse(intent=result.intent, text=text, resources=tuple(resources))

    @staticmethod
    def neutral(intent: str = "") -> AssistanceResponse:
        return AssistanceResponse(intent=intent, text=NEUTRAL_TEXT, neutral=True)


def _title(entity: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in entity.split())
