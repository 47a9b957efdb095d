"""
Collaborator interfaces consumed by the pipeline.

The pipeline never constructs these itself; the caller injects concrete
implementations (SQL adapters in database/, OpenAI adapters in services/, or
in-memory fakes in tests).
"""

from typing import List, Optional, Protocol, Sequence

from assembly.schemas import AssembledTest, Candidate, ClassifierScore


class QuestionStore(Protocol):
    def query(
        self,
        topic: str,
        level: str,
        difficulty: str,
        approved_only: bool = True,
    ) -> List[Candidate]:
        """Approved, non-deleted matches ordered by ascending usage. Raises StoreUnavailable."""
        ...

    def save(self, candidate: Candidate) -> Candidate:
        """Persist a generated candidate; returns it with its persistent id."""
        ...

    def increment_usage(self, ids: Sequence[str]) -> None:
        ...


class Classifier(Protocol):
    async def score(self, text: str, type: str, topic: str) -> ClassifierScore:
        ...


class Generator(Protocol):
    async def generate(
        self,
        topic: str,
        level: str,
        difficulty: str,
        count: int,
        type: str,
    ) -> List[Candidate]:
        """Raises GenerationFailure (or anything else) on failure."""
        ...


class TestArtifactStore(Protocol):
    __test__ = False

    def save(self, test: AssembledTest) -> str:
        """Persist the assembled test atomically; returns the artifact id."""
        ...

    def get(self, artifact_id: str) -> Optional[AssembledTest]:
        ...
