"""
Bank Sufficiency Analysis (pre-flight)

Checks a resolved TOS against the approved question bank before anything is
assembled. For every (topic, level, difficulty) bucket it reports how many
questions are required, how many approved ones exist and the gap the
generation fallback will have to close.

A bucket passes when the bank covers it, warns at ≥ 70% coverage and fails
below that. The overall score is the share of required items the bank can
supply, counting at most `required` per bucket.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from assembly.interfaces import QuestionStore
from assembly.schemas import Requirement, RequirementSufficiency, SufficiencyReport

log = logging.getLogger("assembly.pipeline")

WARNING_RATIO = 0.7


def _status(available: int, required: int) -> str:
    if available >= required:
        return "pass"
    if available >= required * WARNING_RATIO:
        return "warning"
    return "fail"


def _merge(requirements: Sequence[Requirement]) -> List[Tuple[tuple, int]]:
    # the same bucket listed twice needs twice the questions
    merged: Dict[tuple, int] = {}
    for req in requirements:
        if req.count > 0:
            merged[req.bucket] = merged.get(req.bucket, 0) + req.count
    return list(merged.items())


def analyze_sufficiency(store: QuestionStore, requirements: Sequence[Requirement]) -> SufficiencyReport:
    """
    Count approved bank questions per bucket. Raises StoreUnavailable if the
    bank cannot be queried; a partial report would understate the gap.
    """
    results: List[RequirementSufficiency] = []
    total_required = 0
    total_covered = 0

    for (topic, level, difficulty), required in _merge(requirements):
        available = len(store.query(topic, level, difficulty, approved_only=True))
        total_required += required
        total_covered += min(available, required)
        results.append(RequirementSufficiency(
            topic=topic,
            cognitive_level=level,
            difficulty=difficulty,
            required=required,
            available=available,
            gap=max(0, required - available),
            sufficiency=_status(available, required),
        ))

    total_gap = sum(r.gap for r in results)
    score = 100.0 if total_required == 0 else min(100.0, total_covered / total_required * 100)

    if total_gap == 0:
        overall = "pass"
    elif score >= WARNING_RATIO * 100:
        overall = "warning"
    else:
        overall = "fail"

    recommendations: List[str] = []
    if total_required == 0:
        recommendations.append("Define TOS requirements to compute question gaps.")
    elif total_gap == 0:
        recommendations.append("Question bank has sufficient coverage for every requirement.")
    else:
        recommendations.append(f"AI will generate {total_gap} additional question(s) to complete the test.")
        for r in results:
            if r.sufficiency == "fail":
                recommendations.append(
                    f"Add approved questions for {r.topic} | {r.cognitive_level} | {r.difficulty} "
                    f"({r.available}/{r.required} available)."
                )

    log.info(f"[SUFFICIENCY] {overall}: {total_covered}/{total_required} coverable from the bank, gap {total_gap}")
    return SufficiencyReport(
        overall_status=overall,
        overall_score=round(score, 1),
        total_required=total_required,
        total_available=total_covered,
        total_gap=total_gap,
        results=results,
        recommendations=recommendations,
    )
