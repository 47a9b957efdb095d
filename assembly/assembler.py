"""
Step 9 — Assembler

Numbers the final item list (1-based, accumulation order), builds the answer key,
persists the whole test as one artifact and bumps usage counters so future runs
prefer other questions.
"""

import logging
from typing import List

from assembly.errors import StoreUnavailable
from assembly.interfaces import QuestionStore, TestArtifactStore
from assembly.schemas import (
    AnswerKeyEntry, AssembledTest, Candidate, TestItem, TestMetadata,
)

log = logging.getLogger("assembly.pipeline")


def build_test(
    questions: List[Candidate],
    metadata: TestMetadata,
    points_per_item: int = 1,
) -> AssembledTest:
    items = [TestItem(number=n, question=q) for n, q in enumerate(questions, start=1)]
    answer_key = [
        AnswerKeyEntry(
            number=item.number,
            id=item.question.id,
            correct_answer=item.question.correct_answer,
            text=item.question.text,
            points=points_per_item,
            cognitive_level=item.question.cognitive_level,
            topic=item.question.topic,
        )
        for item in items
    ]
    return AssembledTest(
        metadata=metadata,
        items=items,
        answer_key=answer_key,
        total_points=sum(e.points for e in answer_key),
        points_per_question=points_per_item,
    )


def persist_test(
    test: AssembledTest,
    artifact_store: TestArtifactStore,
    question_store: QuestionStore,
) -> str:
    """
    Step 9: save the artifact, then record usage.

    A failed artifact save propagates (StoreUnavailable); there is no partial
    test to fall back to. A failed usage update is logged only; the test exists.
    """
    artifact_id = artifact_store.save(test)
    log.info(f"[ASSEMBLE] Saved test {artifact_id} ({len(test.items)} items, {test.total_points} points)")

    ids = [item.question.id for item in test.items if item.question.id is not None]
    try:
        question_store.increment_usage(ids)
    except StoreUnavailable as e:
        log.warning(f"[ASSEMBLE] Usage counters not updated for test {artifact_id}: {e}")
    return artifact_id
