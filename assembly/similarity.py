"""
Similarity measures shared by the redundancy eliminator and the uniqueness registrar.
"""

import math
import re
from typing import Iterable, List, Optional, Set

from assembly.schemas import Candidate


_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> Set[str]:
    """Lowercase word tokens longer than 2 characters, punctuation stripped."""
    cleaned = _NON_WORD.sub(" ", (text or "").lower())
    return {w for w in cleaned.split() if len(w) > 2}


def token_overlap(a: str, b: str) -> float:
    """Jaccard overlap of the two token sets (|A ∩ B| / |A ∪ B|)."""
    ta, tb = tokenize(a), tokenize(b)
    union = ta | tb
    if not union:
        return 0.0
    return len(ta & tb) / len(union)


def _cosine(a: List[float], b: List[float]) -> float:
    if not a or not b:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0 or nb == 0:
        return 0.0
    return dot / (na * nb)


def _usable_vector(vec: Optional[List[float]]) -> bool:
    return bool(vec) and any(x != 0.0 for x in vec)


def similarity(a: Candidate, b: Candidate) -> float:
    """
    Cosine of semantic vectors when both candidates carry a usable one,
    token overlap of the texts otherwise.
    """
    if (
        _usable_vector(a.semantic_vector)
        and _usable_vector(b.semantic_vector)
        and len(a.semantic_vector) == len(b.semantic_vector)
    ):
        return _cosine(a.semantic_vector, b.semantic_vector)
    return token_overlap(a.text, b.text)


def max_similarity(candidate: Candidate, others: Iterable[Candidate]) -> tuple:
    """Return (highest similarity, most similar candidate), or (0.0, None) if others is empty."""
    best, best_other = 0.0, None
    for other in others:
        sim = similarity(candidate, other)
        if sim > best:
            best, best_other = sim, other
    return best, best_other
