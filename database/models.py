"""
SQLAlchemy models for the question bank and assembled tests

questions           — bank items (approved by a teacher, or AI-generated and auto-approved)
generated_tests     — one row per assembled test, full JSON snapshot
ai_generation_logs  — audit trail: one row per generated question that was saved
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, Float, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database.database import Base


# ==========================================
# QUESTION BANK
# ==========================================

class BankQuestion(Base):
    """
    A question in the bank.
    Only approved, non-deleted rows are ever offered to the assembly pipeline.
    """
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    text = Column(Text, nullable=False)
    question_type = Column(String(32), nullable=False, default="mcq")
    topic = Column(String(255), nullable=False, index=True)
    cognitive_level = Column(String(32), nullable=False, index=True)
    difficulty = Column(String(16), nullable=False, index=True)
    knowledge_dimension = Column(String(32), nullable=False, default="conceptual")

    choices = Column(JSON(none_as_null=True), nullable=True)           # {"A": "...", "B": "...", ...}
    correct_answer = Column(Text, nullable=True)

    quality_score = Column(Float, nullable=False, default=0.0)
    confidence_score = Column(Float, nullable=False, default=0.0)
    semantic_vector = Column(JSON(none_as_null=True), nullable=True)   # embedding as JSON array, filled on save or by backfill
    fingerprint = Column(String(64), nullable=True, index=True)

    approved = Column(Boolean, default=False, nullable=False, index=True)
    deleted = Column(Boolean, default=False, nullable=False, index=True)
    used_count = Column(Integer, default=0, nullable=False)
    created_by = Column(String(32), nullable=False, default="teacher")  # "teacher" | "ai"
    tos_id = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    generation_logs = relationship("AIGenerationLog", back_populates="question", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<BankQuestion(id={self.id}, topic='{self.topic}', level='{self.cognitive_level}', difficulty='{self.difficulty}')>"


# ==========================================
# ASSEMBLED TESTS
# ==========================================

class GeneratedTest(Base):
    """
    A complete assembled test.
    Stores the full AssembledTest JSON plus the header fields used for listing.
    """
    __tablename__ = "generated_tests"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=True)
    tos_id = Column(String(64), nullable=True, index=True)
    item_count = Column(Integer, nullable=False)
    total_points = Column(Integer, nullable=False)
    test_json = Column(JSON, nullable=False)     # Full AssembledTest serialised

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<GeneratedTest(id={self.id}, title='{self.title}', items={self.item_count})>"


class AIGenerationLog(Base):
    __tablename__ = "ai_generation_logs"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    generation_type = Column(String(32), nullable=False, default="fallback")
    model = Column(String(64), nullable=True)
    topic = Column(String(255), nullable=False)
    cognitive_level = Column(String(32), nullable=False)
    difficulty = Column(String(16), nullable=False)
    question_type = Column(String(32), nullable=False)
    confidence_score = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    question = relationship("BankQuestion", back_populates="generation_logs")
