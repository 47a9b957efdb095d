"""
CRUD operations for the question bank and assembled tests
All database operations go through these functions
"""

from sqlalchemy import update
from sqlalchemy.orm import Session
from typing import List, Optional, Sequence
from database import models


# ==========================================
# QUESTION BANK CRUD
# ==========================================

def get_bank_questions(
    db: Session,
    topic: str,
    cognitive_level: str,
    difficulty: str,
    approved_only: bool = True,
    limit: Optional[int] = None,
) -> List[models.BankQuestion]:
    """Non-deleted questions for one bucket, least used first"""
    query = db.query(models.BankQuestion).filter(
        models.BankQuestion.topic == topic,
        models.BankQuestion.cognitive_level == cognitive_level,
        models.BankQuestion.difficulty == difficulty,
        models.BankQuestion.deleted.is_(False),
    )
    if approved_only:
        query = query.filter(models.BankQuestion.approved.is_(True))
    query = query.order_by(models.BankQuestion.used_count.asc(), models.BankQuestion.id.asc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_bank_question(db: Session, question_id: int) -> Optional[models.BankQuestion]:
    return db.query(models.BankQuestion).filter(models.BankQuestion.id == question_id).first()


def create_bank_question(db: Session, **fields) -> models.BankQuestion:
    """Insert a question and flush so the id is assigned (caller commits)"""
    db_question = models.BankQuestion(**fields)
    db.add(db_question)
    db.flush()
    return db_question


def increment_usage(db: Session, question_ids: Sequence[int]) -> int:
    """Bump used_count on every listed question. Returns #rows updated."""
    if not question_ids:
        return 0
    result = db.execute(
        update(models.BankQuestion)
        .where(models.BankQuestion.id.in_(list(question_ids)))
        .values(used_count=models.BankQuestion.used_count + 1)
    )
    db.commit()
    return result.rowcount


def get_questions_missing_vectors(db: Session, limit: Optional[int] = None) -> List[models.BankQuestion]:
    """Non-deleted questions without a semantic vector (for the backfill script)"""
    query = db.query(models.BankQuestion).filter(
        models.BankQuestion.semantic_vector.is_(None),
        models.BankQuestion.deleted.is_(False),
    ).order_by(models.BankQuestion.id.asc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


# ==========================================
# AI GENERATION LOG CRUD
# ==========================================

def create_generation_log(
    db: Session,
    question: models.BankQuestion,
    model: Optional[str] = None,
    generation_type: str = "fallback",
) -> models.AIGenerationLog:
    log_row = models.AIGenerationLog(
        question_id=question.id,
        generation_type=generation_type,
        model=model,
        topic=question.topic,
        cognitive_level=question.cognitive_level,
        difficulty=question.difficulty,
        question_type=question.question_type,
        confidence_score=question.confidence_score,
    )
    db.add(log_row)
    return log_row


def get_generation_logs(db: Session, question_id: int) -> List[models.AIGenerationLog]:
    return db.query(models.AIGenerationLog).filter(
        models.AIGenerationLog.question_id == question_id
    ).all()


# ==========================================
# GENERATED TEST CRUD
# ==========================================

def create_generated_test(
    db: Session,
    title: str,
    test_json: dict,
    item_count: int,
    total_points: int,
    subject: Optional[str] = None,
    tos_id: Optional[str] = None,
) -> models.GeneratedTest:
    """Store an assembled test in a single commit"""
    db_test = models.GeneratedTest(
        title=title,
        subject=subject,
        tos_id=tos_id,
        item_count=item_count,
        total_points=total_points,
        test_json=test_json,
    )
    db.add(db_test)
    db.commit()
    db.refresh(db_test)
    return db_test


def get_generated_test(db: Session, test_id: int) -> Optional[models.GeneratedTest]:
    return db.query(models.GeneratedTest).filter(models.GeneratedTest.id == test_id).first()


def get_generated_tests(db: Session, skip: int = 0, limit: int = 100) -> List[models.GeneratedTest]:
    return db.query(models.GeneratedTest).order_by(
        models.GeneratedTest.created_at.desc()
    ).offset(skip).limit(limit).all()
