"""
Step 2 — Candidate Sourcer

Pulls approved, non-deleted bank questions for one requirement bucket, least-used
first (wear-leveling), capped at `multiplier × count` so later stages have room
to reject.
"""

import logging
from typing import List

from assembly.context import Outcome
from assembly.errors import StoreUnavailable
from assembly.interfaces import QuestionStore
from assembly.schemas import Candidate, Requirement

log = logging.getLogger("assembly.pipeline")


def source_candidates(
    store: QuestionStore,
    requirement: Requirement,
    multiplier: int = 2,
) -> Outcome[List[Candidate]]:
    """
    Step 2: query the question store for one requirement.

    A store failure is not fatal; it comes back as an empty, degraded Outcome
    and shows up downstream as a shortfall.
    """
    if requirement.count <= 0:
        return Outcome.ok([])

    try:
        rows = store.query(
            requirement.topic,
            requirement.cognitive_level,
            requirement.difficulty,
            approved_only=True,
        )
    except StoreUnavailable as e:
        log.warning(f"[SOURCE] Store unavailable for {requirement.label()}: {e}")
        return Outcome.fail([], e)

    # Exact bucket match only; stable sort keeps store order among equal usage
    matching = [c.model_copy(update={"provenance": "existing"}) for c in rows if c.matches(requirement)]
    matching.sort(key=lambda c: c.used_count)
    limit = multiplier * requirement.count

    log.info(f"[SOURCE] {requirement.label()}: {len(matching)} match(es), keeping {min(limit, len(matching))}")
    return Outcome.ok(matching[:limit])
