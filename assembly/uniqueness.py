"""
Step 7 — Uniqueness Registrar

Run-scoped dedup for generated questions. Every accepted question (existing or
generated) is registered; every generated question is checked against what has
been registered BEFORE it is written to the question store, so duplicates never
reach the bank.

Three checks:
- structural: fingerprint = normalised tokens ⊕ topic ⊕ answer type ⊕ level ⊕ knowledge dimension
- textual:    token overlap against the rolling list of accepted texts (same τ as redundancy)
- semantic:   similarity() against every accepted question, cosine when both carry
              a vector (generated questions are embedded here, before save)
"""

import hashlib
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

from assembly.errors import AssemblyError, StoreUnavailable
from assembly.schemas import Candidate
from assembly.similarity import max_similarity, token_overlap, tokenize

if TYPE_CHECKING:
    from assembly.context import Outcome, PipelineContext
    from assembly.interfaces import QuestionStore

log = logging.getLogger("assembly.pipeline")


# Answer type is implied by the cognitive level the question targets
LEVEL_TO_ANSWER_TYPE: Dict[str, str] = {
    "remembering":   "definition",
    "understanding": "explanation",
    "applying":      "application",
    "analyzing":     "analysis",
    "evaluating":    "evaluation",
    "creating":      "design",
}


def normalise_text(text: str) -> str:
    return " ".join(sorted(tokenize(text)))


def fingerprint(candidate: Candidate) -> str:
    answer_type = LEVEL_TO_ANSWER_TYPE.get(candidate.cognitive_level, "explanation")
    key = "|".join([
        normalise_text(candidate.text),
        candidate.topic.strip().lower(),
        answer_type,
        candidate.cognitive_level,
        candidate.knowledge_dimension,
    ])
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class UniquenessStore:
    """Append-only fingerprint set + accepted-text list. Lives for one run."""

    def __init__(self):
        self._fingerprints: Set[str] = set()
        self._texts: List[str] = []

    def __len__(self) -> int:
        return len(self._texts)

    @property
    def texts(self) -> List[str]:
        return list(self._texts)

    def register(self, candidate: Candidate) -> str:
        fp = candidate.fingerprint or fingerprint(candidate)
        self._fingerprints.add(fp)
        self._texts.append(candidate.text)
        return fp

    def find_duplicate(self, candidate: Candidate, threshold: float) -> Optional[Tuple[str, float]]:
        """Return (reason, similarity) when the candidate duplicates something registered."""
        fp = candidate.fingerprint or fingerprint(candidate)
        if fp in self._fingerprints:
            return "duplicate fingerprint", 1.0
        for text in self._texts:
            overlap = token_overlap(candidate.text, text)
            if overlap >= threshold:
                return f"duplicate text ({overlap * 100:.1f}% token overlap)", overlap
        return None


class UniquenessRegistrar:
    """Gatekeeper between the generator and QuestionStore.save."""

    def __init__(self, store: "QuestionStore", threshold: float, embedder=None):
        self.store = store
        self.threshold = threshold
        self.embedder = embedder

    def _embed(self, cand: Candidate) -> None:
        if self.embedder is None or cand.semantic_vector:
            return
        vector = self.embedder.generate_embedding(cand.text)
        # all-zero means the embedding call failed; leave it for the backfill
        if any(vector):
            cand.semantic_vector = vector

    def admit(
        self,
        ctx: "PipelineContext",
        requirement_index: int,
        candidates: List[Candidate],
        limit: int,
    ) -> "Outcome[List[Candidate]]":
        """
        Check, persist and accept generated candidates for one requirement.

        At most `limit` candidates are persisted; the rest are rejected without
        touching the store. Save failures drop the candidate and are reported in
        the returned Outcome.
        """
        from assembly.context import Outcome

        accepted: List[Candidate] = []
        last_error: Optional[AssemblyError] = None

        for cand in candidates:
            ctx.check_cancelled()
            if len(accepted) >= limit:
                ctx.reject(cand, "exceeded quota (generated surplus, not persisted)")
                continue

            cand.fingerprint = fingerprint(cand)
            dup = ctx.uniqueness.find_duplicate(cand, self.threshold)
            if dup is not None:
                reason, sim = dup
                log.info(f"[UNIQUE] Rejected generated question ({reason}): '{cand.text[:60]}'")
                ctx.reject(cand, reason, similarity=sim)
                continue

            self._embed(cand)
            sim, other = max_similarity(cand, ctx.accepted_candidates)
            if other is not None and sim >= self.threshold:
                log.info(f"[UNIQUE] Rejected generated question (near-duplicate of {other.id}, {sim:.2f}): '{cand.text[:60]}'")
                ctx.reject(cand, f"Too similar to question {other.id} ({sim * 100:.1f}% similarity)", similarity=sim)
                continue

            try:
                saved = self.store.save(cand)
            except StoreUnavailable as e:
                log.warning(f"[UNIQUE] Could not persist generated question: {e}")
                ctx.reject(cand, f"persist failed: {e}")
                last_error = e
                continue

            if not saved.fingerprint:
                saved = saved.model_copy(update={"fingerprint": cand.fingerprint})
            ctx.accept(requirement_index, saved)
            ctx.generated_persisted += 1
            accepted.append(saved)

        if last_error is not None:
            return Outcome.fail(accepted, last_error)
        return Outcome.ok(accepted)
