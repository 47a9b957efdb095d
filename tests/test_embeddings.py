"""
Unit tests for the embedding generator and the semantic vector backfill.
"""

from types import SimpleNamespace

from database.models import BankQuestion
from embeddings import EmbeddingGenerator
from scripts.backfill_semantic_vectors import backfill_semantic_vectors
from tests.fakes import distinct_text


class FakeEmbeddingsClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self.embeddings = SimpleNamespace(create=self._create)

    def _create(self, input, model):
        self.calls.append(input)
        if self.fail:
            raise RuntimeError("rate limited")
        texts = input if isinstance(input, list) else [input]
        return SimpleNamespace(data=[SimpleNamespace(embedding=[float(len(t)), 1.0]) for t in texts])


def test_single_embedding():
    gen = EmbeddingGenerator(client=FakeEmbeddingsClient())
    assert gen.generate_embedding("abc") == [3.0, 1.0]


def test_empty_text_and_failures_give_zero_vectors():
    gen = EmbeddingGenerator(client=FakeEmbeddingsClient(fail=True))
    assert gen.generate_embedding("  ") == [0.0] * EmbeddingGenerator.EMBEDDING_DIM
    assert gen.generate_embedding("abc") == [0.0] * EmbeddingGenerator.EMBEDDING_DIM


def test_batches_preserve_order():
    client = FakeEmbeddingsClient()
    gen = EmbeddingGenerator(client=client)

    vectors = gen.generate_embeddings_batch(["a", "bb", "ccc"], batch_size=2, show_progress=False)

    assert vectors == [[1.0, 1.0], [2.0, 1.0], [3.0, 1.0]]
    assert len(client.calls) == 2


def test_backfill_fills_missing_vectors(db_session):
    for n in range(1, 4):
        db_session.add(BankQuestion(
            text=distinct_text(n), topic="Loops", cognitive_level="remembering", difficulty="easy",
        ))
    db_session.add(BankQuestion(
        text="already done", topic="Loops", cognitive_level="remembering", difficulty="easy",
        semantic_vector=[0.5, 0.5],
    ))
    db_session.commit()
    gen = EmbeddingGenerator(client=FakeEmbeddingsClient())

    stats = backfill_semantic_vectors(db_session, gen, batch_size=2)

    assert stats == {"found": 3, "embedded": 3, "failed": 0}
    rows = db_session.query(BankQuestion).order_by(BankQuestion.id).all()
    assert all(r.semantic_vector for r in rows)
    assert rows[3].semantic_vector == [0.5, 0.5]


def test_backfill_dry_run_changes_nothing(db_session):
    db_session.add(BankQuestion(text="q", topic="Loops", cognitive_level="remembering", difficulty="easy"))
    db_session.commit()

    stats = backfill_semantic_vectors(db_session, None, dry_run=True)

    assert stats["found"] == 1
    assert db_session.query(BankQuestion).one().semantic_vector is None


def test_backfill_leaves_failed_rows_null(db_session):
    db_session.add(BankQuestion(text="q", topic="Loops", cognitive_level="remembering", difficulty="easy"))
    db_session.commit()
    gen = EmbeddingGenerator(client=FakeEmbeddingsClient(fail=True))

    stats = backfill_semantic_vectors(db_session, gen)

    assert stats == {"found": 1, "embedded": 0, "failed": 1}
    assert db_session.query(BankQuestion).one().semantic_vector is None
