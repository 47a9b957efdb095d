"""
Test Assembly Pipeline — orchestrator

Runs the 9 steps for one TOS:

    resolve → for each requirement:
                  source → quality → redundancy → quota
                  → (short?) generate → uniqueness/persist
            → completion gate → assemble/persist

Requirements are processed one at a time, in order, because redundancy and
uniqueness checks depend on everything accepted before. All collaborators are
injected; a fresh PipelineContext is created per call.
"""

import logging
from typing import Any, Dict, List, Optional

from assembly.assembler import build_test, persist_test
from assembly.candidate_sourcer import source_candidates
from assembly.completion_gate import CompletionGate
from assembly.config import AssemblyConfig
from assembly.context import CancelToken, PipelineContext
from assembly.diversity_selector import build_selection_result, fill_quota
from assembly.errors import AssemblyError
from assembly.generation_fallback import generate_missing
from assembly.interfaces import Classifier, Generator, QuestionStore, TestArtifactStore
from assembly.quality_filter import filter_by_quality
from assembly.redundancy import eliminate_redundancy
from assembly.requirement_resolver import resolve_requirements
from assembly.schemas import (
    AssemblyResult, Requirement, TestMetadata, UnmetRequirement,
)
from assembly.uniqueness import UniquenessRegistrar

log = logging.getLogger("assembly.pipeline")


class TestAssemblyPipeline:
    __test__ = False

    def __init__(
        self,
        question_store: QuestionStore,
        classifier: Classifier,
        generator: Generator,
        artifact_store: TestArtifactStore,
        config: Optional[AssemblyConfig] = None,
        embedder=None,
    ):
        self.question_store = question_store
        self.classifier = classifier
        self.generator = generator
        self.artifact_store = artifact_store
        self.config = config or AssemblyConfig()
        # optional; lets generated questions be compared by meaning before they are saved
        self.embedder = embedder

    # ─── Entry points ──────────────────────────────────────────────────────────

    async def assemble_from_tos(
        self,
        tos_matrix: Dict[str, Any],
        metadata: Optional[TestMetadata] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> AssemblyResult:
        requirements = resolve_requirements(tos_matrix, self.config.difficulty_split)
        return await self.assemble(requirements, metadata, cancel_token=cancel_token)

    async def assemble(
        self,
        requirements: List[Requirement],
        metadata: Optional[TestMetadata] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> AssemblyResult:
        """
        Assemble and persist one test.

        Returns an AssemblyResult for a test that satisfies every requirement
        exactly. Raises ContractViolation when the gate cannot close the gap,
        AssemblyCancelled when the token fires, StoreUnavailable when the final
        artifact cannot be saved.
        """
        metadata = metadata or TestMetadata()
        ctx = PipelineContext(
            requirements=list(requirements),
            cancel_token=cancel_token or CancelToken(),
        )
        if not ctx.requirements or ctx.required_total == 0:
            raise AssemblyError("No questions requested: requirement set is empty")

        registrar = UniquenessRegistrar(self.question_store, self.config.similarity_threshold, embedder=self.embedder)
        degraded: List[str] = []

        log.info("=" * 60)
        log.info(f"[PIPELINE] '{metadata.title}': {len(ctx.requirements)} requirement(s), {ctx.required_total} question(s)")

        # ── First pass ────────────────────────────────────────────────────────
        unmet: List[UnmetRequirement] = []
        for idx, requirement in enumerate(ctx.requirements):
            ctx.check_cancelled()
            short = await self._fill_requirement(ctx, idx, requirement, registrar, degraded)
            if short > 0:
                unmet.append(UnmetRequirement(
                    topic=requirement.topic,
                    cognitive_level=requirement.cognitive_level,
                    difficulty=requirement.difficulty,
                    count=short,
                ))

        log.info(f"[PIPELINE] First pass: {ctx.selected_total}/{ctx.required_total}, {len(unmet)} requirement(s) short")

        # ── Step 8: completion gate ───────────────────────────────────────────
        gate = CompletionGate(self.generator, registrar, self.config)
        await gate.run(ctx)

        # ── Step 9: assemble + persist ────────────────────────────────────────
        ctx.check_cancelled()
        selection = build_selection_result(ctx)
        test = build_test(ctx.accepted_candidates, metadata, self.config.points_per_item)
        artifact_id = persist_test(test, self.artifact_store, self.question_store)

        generated = sum(1 for c in selection.selected if c.provenance == "generated")
        existing = len(selection.selected) - generated
        log.info(
            f"[PIPELINE] Done: test {artifact_id}, {len(selection.selected)} question(s) "
            f"({existing} existing, {generated} generated), {gate.attempts} repair round(s)"
        )
        log.info("=" * 60)

        return AssemblyResult(
            artifact_id=artifact_id,
            total_selected=len(selection.selected),
            generated_count=generated,
            existing_count=existing,
            unmet_requirements=unmet,
            repair_attempts=gate.attempts,
            selection=selection,
            generation_metadata={
                "generated_persisted": ctx.generated_persisted,
                "generated_confidence": self.config.generated_confidence,
                "quality_threshold": self.config.quality_threshold,
                "similarity_threshold": self.config.similarity_threshold,
                "degraded_stages": degraded,
            },
        )

    # ─── Steps 2–7 for one requirement ─────────────────────────────────────────

    async def _fill_requirement(
        self,
        ctx: PipelineContext,
        idx: int,
        requirement: Requirement,
        registrar: UniquenessRegistrar,
        degraded: List[str],
    ) -> int:
        """Run one requirement through sourcing and fallback. Returns its first-pass deficit."""
        if requirement.count == 0:
            return 0

        log.info(f"[PIPELINE] Requirement {idx + 1}/{len(ctx.requirements)}: {requirement.label()} ×{requirement.count}")

        sourced = source_candidates(self.question_store, requirement, self.config.source_multiplier)
        if sourced.degraded:
            degraded.append(f"source: {requirement.label()}")

        ctx.check_cancelled()
        scored = await filter_by_quality(
            self.classifier, sourced.value, self.config.quality_threshold, ctx=ctx,
        )
        if scored.degraded:
            degraded.append(f"quality: {requirement.label()}")

        ctx.check_cancelled()
        distinct = eliminate_redundancy(
            scored.value, ctx.accepted_candidates, self.config.similarity_threshold, ctx=ctx,
        )
        fill_quota(ctx, idx, distinct)

        needed = ctx.deficit(idx)
        if needed == 0:
            return 0

        ctx.check_cancelled()
        batch = await generate_missing(
            self.generator,
            requirement,
            needed,
            timeout=self.config.generation_timeout,
            default_confidence=self.config.generated_confidence,
            ctx=ctx,
        )
        if batch.degraded:
            degraded.append(f"generate: {requirement.label()}")

        admitted = registrar.admit(ctx, idx, batch.value, limit=needed)
        if admitted.degraded:
            degraded.append(f"persist: {requirement.label()}")
        log.info(f"[UNIQUE] {requirement.label()}: admitted {len(admitted.value)}/{len(batch.value)} generated")

        return ctx.deficit(idx)
