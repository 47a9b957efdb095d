"""
SQL adapters for the pipeline's store interfaces.

SqlQuestionStore      — QuestionStore over the `questions` table
SqlTestArtifactStore  — TestArtifactStore over `generated_tests`

Every SQLAlchemy error is rolled back and re-raised as StoreUnavailable; the
pipeline decides whether that is fatal.
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assembly.errors import StoreUnavailable
from assembly.schemas import AssembledTest, Candidate
from database import crud, models

log = logging.getLogger("assembly.store")


def row_to_candidate(row: models.BankQuestion) -> Candidate:
    return Candidate(
        id=str(row.id),
        text=row.text,
        type=row.question_type,
        topic=row.topic,
        cognitive_level=row.cognitive_level,
        difficulty=row.difficulty,
        knowledge_dimension=row.knowledge_dimension,
        quality_score=row.quality_score or 0.0,
        confidence_score=row.confidence_score or 0.0,
        semantic_vector=row.semantic_vector,
        provenance="generated" if row.created_by == "ai" else "existing",
        fingerprint=row.fingerprint,
        choices=row.choices,
        correct_answer=row.correct_answer,
        used_count=row.used_count or 0,
    )


class SqlQuestionStore:
    """
    Args:
        db: request-scoped session
        embedder: optional object with generate_embedding(text) -> List[float];
                  when set, generated questions get a semantic vector on save
        model_name: recorded in ai_generation_logs
        tos_id: stamped on generated rows
    """

    def __init__(self, db: Session, embedder=None, model_name: Optional[str] = None, tos_id: Optional[str] = None):
        self.db = db
        self.embedder = embedder
        self.model_name = model_name
        self.tos_id = tos_id

    def query(self, topic: str, level: str, difficulty: str, approved_only: bool = True) -> List[Candidate]:
        try:
            rows = crud.get_bank_questions(self.db, topic, level, difficulty, approved_only=approved_only)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable(f"question query failed: {e}") from e
        return [row_to_candidate(r) for r in rows]

    def save(self, candidate: Candidate) -> Candidate:
        """Persist a generated question (auto-approved) and its generation log entry."""
        vector = candidate.semantic_vector
        if vector is None and self.embedder is not None:
            vector = self.embedder.generate_embedding(candidate.text)
            # zero vector = failed call; keep NULL so the backfill picks it up
            vector = vector if any(vector) else None

        try:
            row = crud.create_bank_question(
                self.db,
                text=candidate.text,
                question_type=candidate.type,
                topic=candidate.topic,
                cognitive_level=candidate.cognitive_level,
                difficulty=candidate.difficulty,
                knowledge_dimension=candidate.knowledge_dimension,
                choices=candidate.choices,
                correct_answer=candidate.correct_answer,
                quality_score=candidate.quality_score,
                confidence_score=candidate.confidence_score,
                semantic_vector=vector,
                fingerprint=candidate.fingerprint,
                approved=True,
                deleted=False,
                used_count=0,
                created_by="ai" if candidate.provenance == "generated" else "teacher",
                tos_id=self.tos_id,
            )
            if candidate.provenance == "generated":
                crud.create_generation_log(self.db, row, model=self.model_name)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable(f"question save failed: {e}") from e

        log.info(f"[STORE] Saved question {row.id} ({row.topic} | {row.cognitive_level} | {row.difficulty})")
        return candidate.model_copy(update={"id": str(row.id), "semantic_vector": vector})

    def increment_usage(self, ids: Sequence[str]) -> None:
        try:
            crud.increment_usage(self.db, [int(i) for i in ids])
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable(f"usage update failed: {e}") from e


class SqlTestArtifactStore:
    __test__ = False

    def __init__(self, db: Session):
        self.db = db

    def save(self, test: AssembledTest) -> str:
        try:
            row = crud.create_generated_test(
                self.db,
                title=test.metadata.title,
                subject=test.metadata.subject,
                tos_id=test.metadata.tos_id,
                item_count=len(test.items),
                total_points=test.total_points,
                test_json=test.model_dump(mode="json"),
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable(f"test save failed: {e}") from e
        return str(row.id)

    def get(self, artifact_id: str) -> Optional[AssembledTest]:
        try:
            test_id = int(artifact_id)
        except (TypeError, ValueError):
            return None
        try:
            row = crud.get_generated_test(self.db, test_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable(f"test lookup failed: {e}") from e
        if row is None:
            return None
        return AssembledTest.model_validate(row.test_json)
