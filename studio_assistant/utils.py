"""Utilities supporting studio assistant modules."""

from __future__ import annotations

import hashlib
import random
import re
import string
from typing import Iterable, List

import numpy as np

_ID_ALPHABET = string.ascii_lowercase + string.digits
_WORD = re.compile(r"[a-z0-9]+")


def generate_id(prefix: str, *, size: int = 8) -> str:
    """Generate a short unique identifier with a readable prefix."""

    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(size))
    return f"{prefix}_{suffix}"


def tokenize(text: str) -> List[str]:
    return _WORD.findall(text.lower())


def embed_text(text: str, *, length: int = 64) -> np.ndarray:
    """Hash the words of ``text`` into a normalised bag-of-words vector.

    Words land in fixed buckets so texts sharing vocabulary get a positive
    cosine similarity without loading any model.
    """

    if length <= 0:
        raise ValueError("length must be positive")
    vector = np.zeros(length, dtype=np.float64)
    for word in tokenize(text):
        digest = hashlib.sha256(word.encode("utf-8")).digest()
        bucket = int.from_bytes(digest[:4], "little") % length
        vector[bucket] += 1.0
    norm = np.linalg.norm(vector)
    if norm:
        vector /= norm
    return vector


def cosine_similarity(vec_a: np.ndarray, vec_b: np.ndarray) -> float:
    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if not norm_a or not norm_b:
        return 0.0
    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def dedupe(items: Iterable[str]) -> List[str]:
    """Drop repeats while keeping first-seen order."""

    seen = set()
    ordered: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered
