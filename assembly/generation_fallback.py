"""
Step 6 — Generation Fallback

Asks the generator for the questions the bank could not supply. The request is
spread across question types (⌈needed / 4⌉ per type, in mcq → true_false →
short_answer → essay order) until `needed` is reached.

Every generator call runs under a timeout. A failed or timed-out call counts as
a zero-result batch; the shortfall carries forward to the completion gate.
"""

import asyncio
import logging
import math
from typing import List, Optional

from assembly.context import Outcome, PipelineContext
from assembly.errors import GenerationFailure
from assembly.interfaces import Generator
from assembly.schemas import QUESTION_TYPES, Candidate, Requirement

log = logging.getLogger("assembly.pipeline")


def _stamp(cand: Candidate, requirement: Requirement, qtype: str, default_confidence: float) -> Candidate:
    """Force the requested bucket onto a generated candidate and fill defaults."""
    confidence = cand.confidence_score or default_confidence
    return cand.model_copy(update={
        "id": None,
        "topic": requirement.topic,
        "cognitive_level": requirement.cognitive_level,
        "difficulty": requirement.difficulty,
        "type": cand.type if cand.type in QUESTION_TYPES else qtype,
        "provenance": "generated",
        "confidence_score": confidence,
        "quality_score": cand.quality_score or confidence,
        "fingerprint": None,
        "used_count": 0,
    })


async def generate_missing(
    generator: Generator,
    requirement: Requirement,
    needed: int,
    timeout: float,
    default_confidence: float = 0.75,
    ctx: Optional[PipelineContext] = None,
) -> Outcome[List[Candidate]]:
    """
    Step 6: request `needed` candidates for the requirement's bucket.

    Returns at most `needed` candidates; the Outcome is degraded if any call failed.
    """
    if needed <= 0:
        return Outcome.ok([])

    log.info(f"[GENERATE] {requirement.label()}: requesting {needed}")
    per_type = math.ceil(needed / len(QUESTION_TYPES))
    generated: List[Candidate] = []
    last_error: Optional[GenerationFailure] = None

    for qtype in QUESTION_TYPES:
        if len(generated) >= needed:
            break
        if ctx is not None:
            ctx.check_cancelled()
        type_count = min(per_type, needed - len(generated))
        try:
            batch = await asyncio.wait_for(
                generator.generate(
                    requirement.topic,
                    requirement.cognitive_level,
                    requirement.difficulty,
                    type_count,
                    qtype,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            last_error = GenerationFailure(f"{qtype} generation timed out after {timeout:.0f}s")
            log.warning(f"[GENERATE] {requirement.label()}: {last_error}")
            continue
        except Exception as e:
            last_error = e if isinstance(e, GenerationFailure) else GenerationFailure(str(e))
            log.warning(f"[GENERATE] {requirement.label()}: {qtype} generation failed: {e}")
            continue

        for cand in (batch or [])[:type_count]:
            if not (cand.text or "").strip():
                continue
            generated.append(_stamp(cand, requirement, qtype, default_confidence))

    generated = generated[:needed]
    log.info(f"[GENERATE] {requirement.label()}: received {len(generated)}/{needed}")
    if last_error is not None:
        return Outcome.fail(generated, last_error)
    return Outcome.ok(generated)
