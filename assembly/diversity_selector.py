"""
Step 5 — Diversity Selector

Fills each requirement's quota from its non-redundant pool and scores the run:

    diversity = 0.3·topic + 0.3·level + 0.2·difficulty + 0.2·type
    coverage  = mean over requirements of min(1, selected / target)
    quality   = mean quality_score of the selected items

Each diversity sub-metric is (#distinct values) / (fixed denominator), capped at 1.
"""

import logging
from typing import List, Sequence

from assembly.context import PipelineContext
from assembly.schemas import Candidate, Requirement, SelectionResult

log = logging.getLogger("assembly.pipeline")


# (attribute, denominator, weight)
DIVERSITY_DIMENSIONS = (
    ("topic", 10, 0.3),
    ("cognitive_level", 6, 0.3),
    ("difficulty", 3, 0.2),
    ("type", 4, 0.2),
)


def fill_quota(ctx: PipelineContext, requirement_index: int, pool: List[Candidate]) -> int:
    """
    Greedily accept pool candidates until the requirement's deficit is met.
    The rest are rejected as quota overflow. Returns how many were accepted.
    """
    needed = ctx.deficit(requirement_index)
    taken = pool[:needed]
    for cand in taken:
        ctx.accept(requirement_index, cand)
    label = ctx.requirements[requirement_index].label()
    for cand in pool[needed:]:
        ctx.reject(cand, f"Exceeded quota for {label}")
    log.info(f"[SELECT] {label}: took {len(taken)}, {len(pool) - len(taken)} over quota")
    return len(taken)


def diversity_score(selected: Sequence[Candidate]) -> float:
    if not selected:
        return 0.0
    score = 0.0
    for attr, denominator, weight in DIVERSITY_DIMENSIONS:
        distinct = {getattr(c, attr) for c in selected}
        score += weight * min(1.0, len(distinct) / denominator)
    return score


def coverage_score(requirements: Sequence[Requirement], satisfied: Sequence[int]) -> float:
    """Mean of min(1, satisfied/target); a zero-count requirement counts as covered."""
    if not requirements:
        return 0.0
    total = 0.0
    for req, got in zip(requirements, satisfied):
        total += 1.0 if req.count == 0 else min(1.0, got / req.count)
    return total / len(requirements)


def quality_score(selected: Sequence[Candidate]) -> float:
    if not selected:
        return 0.0
    return sum(c.quality_score for c in selected) / len(selected)


def build_selection_result(ctx: PipelineContext) -> SelectionResult:
    selected = ctx.accepted_candidates
    satisfied = [ctx.satisfied(i) for i in range(len(ctx.requirements))]
    return SelectionResult(
        selected=selected,
        rejected=list(ctx.rejected),
        diversity_score=diversity_score(selected),
        coverage_score=coverage_score(ctx.requirements, satisfied),
        quality_score=quality_score(selected),
    )


def render_selection_report(result: SelectionResult) -> str:
    """Markdown summary of a selection, for logs and the API."""
    lines = [
        "# Question Selection Report",
        "",
        "## Summary",
        f"- **Selected Questions**: {len(result.selected)}",
        f"- **Rejected Questions**: {len(result.rejected)}",
        f"- **Overall Quality Score**: {result.quality_score * 100:.1f}%",
        f"- **Diversity Score**: {result.diversity_score * 100:.1f}%",
        f"- **Coverage Score**: {result.coverage_score * 100:.1f}%",
        "",
        "## Selected",
    ]
    for i, c in enumerate(result.selected, start=1):
        origin = "AI" if c.provenance == "generated" else "bank"
        lines.append(f"{i}. {c.topic} - {c.cognitive_level} ({c.difficulty}, {c.type}, {origin})")
    if result.rejected:
        lines += ["", "## Rejected"]
        for r in result.rejected:
            lines.append(f"- {r.candidate.text[:60]!r}: {r.reason}")
    return "\n".join(lines)
