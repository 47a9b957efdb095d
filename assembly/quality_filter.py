"""
Step 3 — Quality Filter

Scores each candidate through the classifier and keeps those at or above the
threshold. Scored candidates are copies; bank snapshots are never mutated.
"""

import logging
from typing import List, Optional, Tuple

from assembly.context import Outcome, PipelineContext
from assembly.errors import AssemblyError
from assembly.interfaces import Classifier
from assembly.schemas import Candidate

log = logging.getLogger("assembly.pipeline")


async def _score(classifier: Classifier, candidate: Candidate) -> Tuple[Candidate, Optional[Exception]]:
    try:
        result = await classifier.score(candidate.text, candidate.type, candidate.topic)
    except Exception as e:
        # Fall back to the score stored with the question
        return candidate, e
    return candidate.model_copy(update={
        "quality_score": result.quality_score,
        "confidence_score": result.confidence_score or candidate.confidence_score,
        "knowledge_dimension": result.knowledge_dimension or candidate.knowledge_dimension,
    }), None


async def filter_by_quality(
    classifier: Classifier,
    candidates: List[Candidate],
    threshold: float,
    ctx: Optional[PipelineContext] = None,
) -> Outcome[List[Candidate]]:
    """
    Step 3: keep candidates whose classifier quality_score ≥ threshold.

    Order is preserved. Classifier errors degrade to the candidate's stored
    quality_score and are reported on the Outcome.
    """
    kept: List[Candidate] = []
    last_error: Optional[AssemblyError] = None

    for cand in candidates:
        if ctx is not None:
            ctx.check_cancelled()
        scored, err = await _score(classifier, cand)
        if err is not None:
            log.warning(f"[QUALITY] Classifier failed for question {cand.id}: {err}; using stored score {cand.quality_score:.2f}")
            last_error = AssemblyError(f"classifier failed: {err}")
        if scored.quality_score >= threshold:
            kept.append(scored)
        elif ctx is not None:
            ctx.reject(scored, f"Quality {scored.quality_score:.2f} below threshold {threshold:.2f}")

    log.info(f"[QUALITY] {len(kept)}/{len(candidates)} candidate(s) passed (threshold {threshold:.2f})")
    if last_error is not None:
        return Outcome.fail(kept, last_error)
    return Outcome.ok(kept)
