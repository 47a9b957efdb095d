"""
Per-run pipeline state.

A single PipelineContext is created for every assemble() call and threaded through
each stage. It owns the global accepted list, the per-requirement slots, the
uniqueness store and the run's cancel token. Nothing here is shared across runs.
"""

import logging
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from assembly.errors import AssemblyCancelled, AssemblyError
from assembly.schemas import Candidate, RejectedCandidate, Requirement
from assembly.uniqueness import UniquenessStore

log = logging.getLogger("assembly.pipeline")

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    """Stage result: a value that is always usable, plus the error that degraded it."""
    value: T
    error: Optional[AssemblyError] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, value: T, error: AssemblyError) -> "Outcome[T]":
        return cls(value=value, error=error)


class CancelToken:
    """Cooperative cancellation flag checked at every stage boundary."""

    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AssemblyCancelled(self.reason or "cancelled")


@dataclass
class SelectedItem:
    requirement_index: int
    candidate: Candidate


@dataclass
class PipelineContext:
    requirements: List[Requirement]
    uniqueness: UniquenessStore = field(default_factory=UniquenessStore)
    cancel_token: CancelToken = field(default_factory=CancelToken)
    # Accumulation order == final numbering order
    accepted: List[SelectedItem] = field(default_factory=list)
    rejected: List[RejectedCandidate] = field(default_factory=list)
    generated_persisted: int = 0

    @property
    def required_total(self) -> int:
        return sum(r.count for r in self.requirements)

    @property
    def selected_total(self) -> int:
        return len(self.accepted)

    @property
    def shortfall(self) -> int:
        return max(0, self.required_total - self.selected_total)

    @property
    def accepted_candidates(self) -> List[Candidate]:
        return [item.candidate for item in self.accepted]

    def satisfied(self, index: int) -> int:
        return sum(1 for item in self.accepted if item.requirement_index == index)

    def deficit(self, index: int) -> int:
        return max(0, self.requirements[index].count - self.satisfied(index))

    def deficient_indices(self) -> List[int]:
        return [i for i in range(len(self.requirements)) if self.deficit(i) > 0]

    def accept(self, index: int, candidate: Candidate) -> None:
        self.accepted.append(SelectedItem(requirement_index=index, candidate=candidate))
        self.uniqueness.register(candidate)

    def reject(self, candidate: Candidate, reason: str, similarity: Optional[float] = None) -> None:
        self.rejected.append(RejectedCandidate(candidate=candidate, reason=reason, similarity=similarity))

    def trim(self) -> int:
        """Drop surplus per requirement, then cap the pool at required_total. Returns #dropped."""
        kept: List[SelectedItem] = []
        per_req = [0] * len(self.requirements)
        for item in self.accepted:
            idx = item.requirement_index
            if per_req[idx] >= self.requirements[idx].count:
                self.reject(item.candidate, "trimmed: surplus over requirement count")
                continue
            per_req[idx] += 1
            kept.append(item)
        kept = kept[: self.required_total]
        dropped = len(self.accepted) - len(kept)
        self.accepted = kept
        if dropped:
            log.info(f"[GATE] Trimmed {dropped} surplus item(s)")
        return dropped

    def check_cancelled(self) -> None:
        self.cancel_token.raise_if_cancelled()
