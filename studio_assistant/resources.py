"""Catalog of help resources attached to answers and suggestions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

import numpy as np

from .utils import cosine_similarity, embed_text, generate_id

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Resource:
    """Help page or tutorial retrievable for grounding assistance."""

    resource_id: str
    title: str
    path_or_url: str
    summary: str
    embedding: np.ndarray = field(repr=False)


DEFAULT_RESOURCES: Tuple[Tuple[str, str, str], ...] = (
    ("Physics components", "docs/game/physics.md", "collider rigidbody physics collision gravity add component"),
    ("Scripting basics", "docs/game/scripting.md", "script code behaviour component attach"),
    ("Lighting and baking", "docs/game/lighting.md", "light lighting shadow bake scene"),
    ("Prefabs and instancing", "docs/game/prefabs.md", "prefab duplicate instance reuse entity"),
    ("Sketch and extrude", "docs/cad/extrude.md", "sketch extrude profile pad solid"),
    ("Constraint solving", "docs/cad/constraints.md", "constraint dimension parallel perpendicular sketch"),
    ("Fillets and chamfers", "docs/cad/fillet.md", "fillet chamfer round edge"),
    ("Keyframing", "docs/animation/keyframes.md", "keyframe key timeline pose"),
    ("Graph editor curves", "docs/animation/curves.md", "curve easing interpolation graph"),
    ("Character rigging", "docs/animation/rigging.md", "rig bone skeleton skin weight"),
    ("History and undo", "docs/general/history.md", "undo redo history revert"),
    ("Command palette", "docs/general/palette.md", "find menu shortcut hotkey command palette tool"),
)


class ResourceCatalog:
    """In-memory resource index with bag-of-words similarity lookup."""

    def __init__(self, *, embedding_size: int = 64) -> None:
        self.embedding_size = embedding_size
        self._resources: List[Resource] = []

    def add(self, *, title: str, path_or_url: str, text: str) -> Resource:
        resource = Resource(
            resource_id=generate_id("res"),
            title=title,
            path_or_url=path_or_url,
            summary=text[:200],
            embedding=embed_text(f"{title} {text}", length=self.embedding_size),
        )
        self._resources.append(resource)
        return resource

    def add_many(self, entries: Iterable[Tuple[str, str, str]]) -> List[Resource]:
        return [self.add(title=title, path_or_url=path, text=text) for title, path, text in entries]

    def lookup(self, query: str, *, limit: int = 3, min_score: float = 0.1) -> List[Resource]:
        if not self._resources or not query.strip():
            return []
        query_vector = embed_text(query, length=self.embedding_size)
        scored = [
            (cosine_similarity(query_vector, resource.embedding), index, resource)
            for index, resource in enumerate(self._resources)
        ]
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [resource for score, _, resource in scored[:limit] if score >= min_score]

    def labels_for(self, query: str, *, limit: int = 3) -> Tuple[str, ...]:
        return tuple(resource.path_or_url for resource in self.lookup(query, limit=limit))

    def __len__(self) -> int:
        return len(self._resources)

    @classmethod
    def with_defaults(cls) -> "ResourceCatalog":
        catalog = cls()
        catalog.add_many(DEFAULT_RESOURCES)
        logger.debug("Loaded %d default resources", len(catalog))
        return catalog
