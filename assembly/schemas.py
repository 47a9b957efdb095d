"""
Pydantic schemas for the test assembly pipeline.

Requirement     — one (topic, cognitive level, difficulty, count) bucket, frozen
Candidate       — a question, existing (bank snapshot) or generated
SelectionResult — selected / rejected candidates + diversity, coverage, quality
AssembledTest   — numbered items + answer key, persisted once per run
"""

from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field


# ─── Vocabularies ──────────────────────────────────────────────────────────────

CognitiveLevel = Literal[
    "remembering", "understanding", "applying", "analyzing", "evaluating", "creating"
]
Difficulty = Literal["easy", "average", "difficult"]
QuestionType = Literal["mcq", "true_false", "short_answer", "essay"]
KnowledgeDimension = Literal["factual", "conceptual", "procedural", "metacognitive"]
Provenance = Literal["existing", "generated"]

COGNITIVE_LEVELS: tuple = (
    "remembering", "understanding", "applying", "analyzing", "evaluating", "creating",
)
DIFFICULTIES: tuple = ("easy", "average", "difficult")
QUESTION_TYPES: tuple = ("mcq", "true_false", "short_answer", "essay")


# ─── Requirements ──────────────────────────────────────────────────────────────

class Requirement(BaseModel):
    """One TOS bucket. Immutable once resolved."""
    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., min_length=1)
    cognitive_level: CognitiveLevel
    difficulty: Difficulty
    count: int = Field(..., ge=0)

    @property
    def bucket(self) -> tuple:
        return (self.topic, self.cognitive_level, self.difficulty)

    def label(self) -> str:
        return f"{self.topic} | {self.cognitive_level} | {self.difficulty}"


class UnmetRequirement(BaseModel):
    """Requirement that was short after the first pass (before gate repairs)."""
    topic: str
    cognitive_level: CognitiveLevel
    difficulty: Difficulty
    count: int


# ─── Candidates ────────────────────────────────────────────────────────────────

class Candidate(BaseModel):
    """A question flowing through the pipeline."""
    id: Optional[str] = None            # None until persisted (generated)
    text: str
    type: QuestionType = "mcq"
    topic: str
    cognitive_level: CognitiveLevel
    difficulty: Difficulty
    knowledge_dimension: KnowledgeDimension = "conceptual"
    quality_score: float = Field(0.0, ge=0.0, le=1.0)
    confidence_score: float = Field(0.0, ge=0.0, le=1.0)
    semantic_vector: Optional[List[float]] = None
    provenance: Provenance = "existing"
    fingerprint: Optional[str] = None
    # Carried through to the answer key
    choices: Optional[Dict[str, str]] = None
    correct_answer: Optional[str] = None
    used_count: int = 0

    def matches(self, requirement: Requirement) -> bool:
        return (
            self.topic == requirement.topic
            and self.cognitive_level == requirement.cognitive_level
            and self.difficulty == requirement.difficulty
        )


class ClassifierScore(BaseModel):
    """Classifier collaborator output for one question."""
    quality_score: float = Field(..., ge=0.0, le=1.0)
    confidence_score: float = Field(0.0, ge=0.0, le=1.0)
    knowledge_dimension: KnowledgeDimension = "conceptual"
    cognitive_level: Optional[CognitiveLevel] = None
    difficulty: Optional[Difficulty] = None


# ─── Selection ─────────────────────────────────────────────────────────────────

class RejectedCandidate(BaseModel):
    candidate: Candidate
    reason: str
    similarity: Optional[float] = None


class SelectionResult(BaseModel):
    selected: List[Candidate] = Field(default_factory=list)
    rejected: List[RejectedCandidate] = Field(default_factory=list)
    diversity_score: float = 0.0
    coverage_score: float = 0.0
    quality_score: float = 0.0


# ─── Assembled test ────────────────────────────────────────────────────────────

class TestMetadata(BaseModel):
    """Caller-supplied header data stored alongside the test."""
    __test__ = False

    title: str = "Untitled Test"
    subject: Optional[str] = None
    course: Optional[str] = None
    year_section: Optional[str] = None
    exam_period: Optional[str] = None
    school_year: Optional[str] = None
    tos_id: Optional[str] = None


class TestItem(BaseModel):
    __test__ = False

    number: int = Field(..., ge=1)
    question: Candidate


class AnswerKeyEntry(BaseModel):
    number: int
    id: Optional[str]
    correct_answer: Optional[str] = None
    text: str
    points: int = 1
    cognitive_level: CognitiveLevel
    topic: str


class AssembledTest(BaseModel):
    __test__ = False

    metadata: TestMetadata
    items: List[TestItem]
    answer_key: List[AnswerKeyEntry]
    total_points: int
    points_per_question: int = 1


# ─── Pipeline result ───────────────────────────────────────────────────────────

class AssemblyResult(BaseModel):
    artifact_id: str
    total_selected: int
    generated_count: int
    existing_count: int
    unmet_requirements: List[UnmetRequirement] = Field(default_factory=list)
    repair_attempts: int = 0
    selection: Optional[SelectionResult] = None
    generation_metadata: Dict[str, Any] = Field(default_factory=dict)


# ─── Bank sufficiency ──────────────────────────────────────────────────────────

Sufficiency = Literal["pass", "warning", "fail"]


class RequirementSufficiency(BaseModel):
    topic: str
    cognitive_level: CognitiveLevel
    difficulty: Difficulty
    required: int
    available: int
    gap: int
    sufficiency: Sufficiency


class SufficiencyReport(BaseModel):
    """How much of a TOS the approved bank can cover before anything is generated."""
    overall_status: Sufficiency
    overall_score: float = Field(..., ge=0.0, le=100.0)
    total_required: int
    total_available: int
    total_gap: int
    results: List[RequirementSufficiency] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
