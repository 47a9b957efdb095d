"""
In-memory collaborators for pipeline tests.

Each fake implements one protocol from assembly.interfaces and records its calls
so tests can assert on what the pipeline asked for.
"""
import asyncio
import itertools
from typing import Dict, List, Optional, Sequence

from assembly.errors import StoreUnavailable
from assembly.schemas import AssembledTest, Candidate, ClassifierScore


# ─── Text helpers ──────────────────────────────────────────────────────────────

def distinct_text(n: int, topic: str = "loops") -> str:
    """Question text sharing almost no tokens with distinct_text(m) for m != n."""
    return f"Describe concept{n} of {topic} using example{n} within scenario{n}"


def make_candidate(
    n: int,
    topic: str = "Loops",
    level: str = "remembering",
    difficulty: str = "easy",
    **overrides,
) -> Candidate:
    fields = dict(
        id=f"q{n}",
        text=distinct_text(n, topic.lower()),
        topic=topic,
        cognitive_level=level,
        difficulty=difficulty,
        quality_score=0.9,
        confidence_score=0.9,
        correct_answer="A",
    )
    fields.update(overrides)
    return Candidate(**fields)


# ─── Fakes ─────────────────────────────────────────────────────────────────────

class InMemoryQuestionStore:
    def __init__(
        self,
        questions: Optional[List[Candidate]] = None,
        fail_query: bool = False,
        fail_save: bool = False,
        fail_usage: bool = False,
    ):
        self.questions: List[Candidate] = list(questions or [])
        self.saved: List[Candidate] = []
        self.usage_updates: List[List[str]] = []
        self.fail_query = fail_query
        self.fail_save = fail_save
        self.fail_usage = fail_usage
        self._ids = itertools.count(1)

    def query(self, topic, level, difficulty, approved_only=True):
        if self.fail_query:
            raise StoreUnavailable("database is down")
        rows = [
            q for q in self.questions
            if q.topic == topic and q.cognitive_level == level and q.difficulty == difficulty
        ]
        return sorted(rows, key=lambda q: q.used_count)

    def save(self, candidate):
        if self.fail_save:
            raise StoreUnavailable("insert failed")
        saved = candidate.model_copy(update={"id": f"gen-{next(self._ids)}"})
        self.saved.append(saved)
        self.questions.append(saved)
        return saved

    def increment_usage(self, ids: Sequence[str]):
        if self.fail_usage:
            raise StoreUnavailable("update failed")
        ids = list(ids)
        self.usage_updates.append(ids)
        for i, q in enumerate(self.questions):
            if q.id in ids:
                self.questions[i] = q.model_copy(update={"used_count": q.used_count + 1})


class StubClassifier:
    """Scores by text lookup; unknown texts get `default`."""

    def __init__(self, scores: Optional[Dict[str, float]] = None, default: float = 0.9, fail: bool = False):
        self.scores = scores or {}
        self.default = default
        self.fail = fail
        self.calls: List[str] = []

    async def score(self, text, type, topic):
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("classifier offline")
        return ClassifierScore(
            quality_score=self.scores.get(text, self.default),
            confidence_score=0.8,
            knowledge_dimension="conceptual",
        )


class ScriptedGenerator:
    """
    Plays back one scripted response per call: a list of texts, an exception to
    raise, or "hang" to sleep past any timeout. Once the script runs out it
    either returns nothing (exhaust="empty") or fresh distinct texts ("fresh").
    """

    def __init__(self, script: Optional[list] = None, exhaust: str = "fresh", start: int = 1000):
        self.script = list(script or [])
        self.exhaust = exhaust
        self.calls: List[dict] = []
        self._fresh = itertools.count(start)

    async def generate(self, topic, level, difficulty, count, type):
        self.calls.append(dict(topic=topic, level=level, difficulty=difficulty, count=count, type=type))
        if self.script:
            step = self.script.pop(0)
        elif self.exhaust == "fresh":
            step = [distinct_text(next(self._fresh), topic.lower()) for _ in range(count)]
        else:
            step = []

        if isinstance(step, Exception):
            raise step
        if step == "hang":
            await asyncio.sleep(10)
            return []
        return [
            Candidate(
                text=text,
                type=type,
                topic=topic,
                cognitive_level=level,
                difficulty=difficulty,
                provenance="generated",
                correct_answer="B",
            )
            for text in step[:count]
        ]


class InMemoryArtifactStore:
    def __init__(self, fail: bool = False):
        self.tests: Dict[str, AssembledTest] = {}
        self.fail = fail
        self._ids = itertools.count(1)

    def save(self, test):
        if self.fail:
            raise StoreUnavailable("artifact table locked")
        artifact_id = f"test-{next(self._ids)}"
        self.tests[artifact_id] = test
        return artifact_id

    def get(self, artifact_id):
        return self.tests.get(artifact_id)


class StubEmbedder:
    """Looks vectors up by text; unknown texts get a zero vector (a failed call)."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dim: int = 2):
        self.vectors = vectors or {}
        self.dim = dim
        self.calls: List[str] = []

    def generate_embedding(self, text):
        self.calls.append(text)
        return list(self.vectors.get(text, [0.0] * self.dim))
