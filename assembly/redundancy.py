"""
Step 4 — Redundancy Eliminator

Drops candidates that are too close to anything already accepted in this run,
across ALL requirements processed so far, not just the current batch, or to an
earlier candidate kept from the same batch.

First seen wins: candidates are examined in store order, so of two near-duplicates
the one the store returned first survives.
"""

import logging
from typing import List, Optional

from assembly.context import PipelineContext
from assembly.schemas import Candidate
from assembly.similarity import max_similarity

log = logging.getLogger("assembly.pipeline")


def eliminate_redundancy(
    candidates: List[Candidate],
    accepted: List[Candidate],
    threshold: float,
    ctx: Optional[PipelineContext] = None,
) -> List[Candidate]:
    """
    Step 4: return the candidates whose similarity to every accepted item
    (and every earlier kept candidate) stays below `threshold`.

    Args:
        candidates: quality-filtered batch, in store order
        accepted: the run's global accepted set
        threshold: τ; a candidate at or above it is rejected
        ctx: when given, rejections are recorded on the run
    """
    kept: List[Candidate] = []
    duplicates = 0

    for cand in candidates:
        sim, other = max_similarity(cand, list(accepted) + kept)
        if other is not None and sim >= threshold:
            duplicates += 1
            if ctx is not None:
                ctx.reject(
                    cand,
                    f"Too similar to question {other.id} ({sim * 100:.1f}% similarity)",
                    similarity=sim,
                )
            continue
        kept.append(cand)

    if duplicates:
        log.info(f"[REDUNDANCY] Rejected {duplicates} near-duplicate(s), {len(kept)} remain")
    return kept
