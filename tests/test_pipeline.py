"""
End-to-end tests for TestAssemblyPipeline over in-memory collaborators.
"""

from collections import Counter

import pytest

from assembly import TestAssemblyPipeline
from assembly.config import AssemblyConfig
from assembly.context import CancelToken
from assembly.errors import AssemblyCancelled, AssemblyError, ContractViolation, StoreUnavailable
from assembly.schemas import Candidate, Requirement, TestMetadata
from assembly.similarity import similarity
from tests.fakes import (
    InMemoryArtifactStore,
    InMemoryQuestionStore,
    ScriptedGenerator,
    StubClassifier,
    StubEmbedder,
    distinct_text,
    make_candidate,
)


def _pipeline(store=None, classifier=None, generator=None, artifacts=None, embedder=None, **config):
    config.setdefault("generation_timeout", 1.0)
    return TestAssemblyPipeline(
        question_store=store if store is not None else InMemoryQuestionStore(),
        classifier=classifier or StubClassifier(),
        generator=generator or ScriptedGenerator(),
        artifact_store=artifacts if artifacts is not None else InMemoryArtifactStore(),
        config=AssemblyConfig(**config),
        embedder=embedder,
    )


def _bank(numbers, **kwargs):
    return [make_candidate(n, **kwargs) for n in numbers]


# ─── Scenarios ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_bank_covers_everything(requirement):
    store = InMemoryQuestionStore(_bank(range(1, 6)))
    generator = ScriptedGenerator()
    artifacts = InMemoryArtifactStore()

    result = await _pipeline(store, generator=generator, artifacts=artifacts).assemble(
        [requirement], TestMetadata(title="Quiz 1"),
    )

    assert result.total_selected == 5
    assert result.existing_count == 5
    assert result.generated_count == 0
    assert result.repair_attempts == 0
    assert result.unmet_requirements == []
    assert generator.calls == []

    test = artifacts.get(result.artifact_id)
    assert test.metadata.title == "Quiz 1"
    assert [item.number for item in test.items] == [1, 2, 3, 4, 5]
    assert [entry.id for entry in test.answer_key] == ["q1", "q2", "q3", "q4", "q5"]
    assert test.total_points == 5
    assert sorted(store.usage_updates[0]) == ["q1", "q2", "q3", "q4", "q5"]


@pytest.mark.asyncio
async def test_fallback_fills_bank_shortage(requirement):
    store = InMemoryQuestionStore(_bank([1, 2]))

    result = await _pipeline(store).assemble([requirement])

    assert result.total_selected == 5
    assert result.existing_count == 2
    assert result.generated_count == 3
    assert result.repair_attempts == 0
    assert len(store.saved) == 3
    assert all(q.provenance == "generated" for q in store.saved)
    # usage counters cover generated items too, now that they have ids
    assert len(store.usage_updates[0]) == 5


@pytest.mark.asyncio
async def test_gate_repairs_duplicate_generation(requirement):
    store = InMemoryQuestionStore(_bank([1, 2]))
    # First pass asks one per type: a copy of q1, one fresh question, then nothing
    generator = ScriptedGenerator(script=[[distinct_text(1)], [distinct_text(50)], [], []])

    result = await _pipeline(store, generator=generator).assemble([requirement])

    assert result.total_selected == 5
    assert result.generated_count == 3
    assert result.repair_attempts == 1
    assert len(result.unmet_requirements) == 1
    assert result.unmet_requirements[0].count == 2
    reasons = [r.reason for r in result.selection.rejected]
    assert "duplicate fingerprint" in reasons


class _DuplicateGenerator:
    async def generate(self, topic, level, difficulty, count, type):
        return [
            Candidate(text=distinct_text(1), type=type, topic=topic, cognitive_level=level, difficulty=difficulty)
            for _ in range(count)
        ]


@pytest.mark.asyncio
async def test_only_duplicates_raises_contract_violation(requirement):
    store = InMemoryQuestionStore(_bank([1, 2]))
    artifacts = InMemoryArtifactStore()

    with pytest.raises(ContractViolation) as exc:
        await _pipeline(store, generator=_DuplicateGenerator(), artifacts=artifacts).assemble([requirement])

    assert exc.value.required == 5
    assert exc.value.selected == 2
    assert exc.value.shortfall == 3
    assert exc.value.attempts == 3
    # no partial test, nothing persisted
    assert artifacts.tests == {}
    assert store.saved == []
    assert store.usage_updates == []


@pytest.mark.asyncio
async def test_duplicate_requirements_double_the_demand():
    req = Requirement(topic="Loops", cognitive_level="remembering", difficulty="easy", count=2)
    store = InMemoryQuestionStore(_bank([1, 2]))

    result = await _pipeline(store).assemble([req, req])

    assert result.total_selected == 4
    assert result.existing_count == 2
    assert result.generated_count == 2


# ─── Invariants ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_finished_test_has_no_near_duplicates():
    reqs = [
        Requirement(topic="Loops", cognitive_level="remembering", difficulty="easy", count=3),
        Requirement(topic="Loops", cognitive_level="applying", difficulty="easy", count=3),
    ]
    bank = _bank([1, 2, 3]) + [
        # Same wording as the remembering items, filed under another level
        make_candidate(10 + n, text=distinct_text(n), level="applying") for n in (1, 2)
    ] + [make_candidate(20, level="applying")]
    artifacts = InMemoryArtifactStore()

    result = await _pipeline(InMemoryQuestionStore(bank), artifacts=artifacts).assemble(reqs)

    questions = [item.question for item in artifacts.get(result.artifact_id).items]
    for i, a in enumerate(questions):
        for b in questions[i + 1:]:
            assert similarity(a, b) < 0.75
    assert result.generated_count == 2


@pytest.mark.asyncio
async def test_generated_paraphrase_of_vectored_bank_item_is_replaced():
    req = Requirement(topic="Loops", cognitive_level="remembering", difficulty="easy", count=2)
    paraphrase = "Which statement best summarises how a loop repeats a block of code?"
    store = InMemoryQuestionStore([make_candidate(1, semantic_vector=[1.0, 0.0])])
    embedder = StubEmbedder({paraphrase: [1.0, 0.01]})
    artifacts = InMemoryArtifactStore()

    result = await _pipeline(
        store, generator=ScriptedGenerator(script=[[paraphrase]]), artifacts=artifacts, embedder=embedder,
    ).assemble([req])

    questions = [item.question for item in artifacts.get(result.artifact_id).items]
    assert len(questions) == 2
    assert paraphrase not in [q.text for q in questions]
    assert similarity(questions[0], questions[1]) < 0.75
    assert paraphrase not in [c.text for c in store.saved]
    assert result.repair_attempts == 1
    assert any(r.reason.startswith("Too similar to question q1") for r in result.selection.rejected)


@pytest.mark.asyncio
async def test_quota_and_contract_invariants():
    reqs = [
        Requirement(topic="Loops", cognitive_level="remembering", difficulty="easy", count=2),
        Requirement(topic="Loops", cognitive_level="remembering", difficulty="average", count=3),
        Requirement(topic="Arrays", cognitive_level="analyzing", difficulty="difficult", count=1),
    ]
    bank = (
        _bank(range(1, 6))
        + _bank(range(6, 8), difficulty="average")
        + _bank(range(8, 11), topic="Arrays", level="analyzing", difficulty="difficult")
    )
    artifacts = InMemoryArtifactStore()

    result = await _pipeline(InMemoryQuestionStore(bank), artifacts=artifacts).assemble(reqs)

    items = artifacts.get(result.artifact_id).items
    assert len(items) == sum(r.count for r in reqs) == result.total_selected
    per_bucket = Counter((i.question.topic, i.question.cognitive_level, i.question.difficulty) for i in items)
    assert per_bucket == {r.bucket: r.count for r in reqs}
    assert result.selection.coverage_score == 1.0


@pytest.mark.asyncio
async def test_low_quality_bank_items_are_replaced(requirement):
    bank = _bank(range(1, 6))
    classifier = StubClassifier(scores={bank[0].text: 0.1, bank[1].text: 0.2})

    result = await _pipeline(InMemoryQuestionStore(bank), classifier=classifier).assemble([requirement])

    assert result.existing_count == 3
    assert result.generated_count == 2
    assert "q1" not in {c.id for c in result.selection.selected}


@pytest.mark.asyncio
async def test_least_used_bank_items_are_preferred():
    req = Requirement(topic="Loops", cognitive_level="remembering", difficulty="easy", count=2)
    bank = [
        make_candidate(1, used_count=5),
        make_candidate(2, used_count=0),
        make_candidate(3, used_count=1),
    ]

    result = await _pipeline(InMemoryQuestionStore(bank)).assemble([req])

    assert [c.id for c in result.selection.selected] == ["q2", "q3"]


# ─── Degraded collaborators ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_store_outage_falls_back_to_generation(requirement, caplog):
    store = InMemoryQuestionStore(fail_query=True, fail_usage=True)

    result = await _pipeline(store).assemble([requirement])

    assert result.generated_count == 5
    assert result.generation_metadata["degraded_stages"] == ["source: Loops | remembering | easy"]
    assert "Usage counters not updated" in caplog.text


@pytest.mark.asyncio
async def test_classifier_outage_uses_stored_scores(requirement):
    bank = _bank(range(1, 6))

    result = await _pipeline(InMemoryQuestionStore(bank), classifier=StubClassifier(fail=True)).assemble([requirement])

    assert result.existing_count == 5
    assert result.generation_metadata["degraded_stages"] == ["quality: Loops | remembering | easy"]


@pytest.mark.asyncio
async def test_artifact_save_failure_propagates(requirement):
    store = InMemoryQuestionStore(_bank(range(1, 6)))

    with pytest.raises(StoreUnavailable):
        await _pipeline(store, artifacts=InMemoryArtifactStore(fail=True)).assemble([requirement])
    assert store.usage_updates == []


@pytest.mark.asyncio
async def test_empty_requirement_set_is_rejected():
    with pytest.raises(AssemblyError):
        await _pipeline().assemble([])
    with pytest.raises(AssemblyError):
        await _pipeline().assemble([
            Requirement(topic="Loops", cognitive_level="remembering", difficulty="easy", count=0),
        ])


# ─── Cancellation ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cancelled_before_start(requirement):
    token = CancelToken()
    token.cancel()
    artifacts = InMemoryArtifactStore()

    with pytest.raises(AssemblyCancelled):
        await _pipeline(artifacts=artifacts).assemble([requirement], cancel_token=token)
    assert artifacts.tests == {}


class _CancellingGenerator:
    def __init__(self, token):
        self.token = token

    async def generate(self, topic, level, difficulty, count, type):
        self.token.cancel("teacher closed the page")
        return [
            Candidate(text=distinct_text(900 + n), type=type, topic=topic, cognitive_level=level, difficulty=difficulty)
            for n in range(count)
        ]


@pytest.mark.asyncio
async def test_cancelled_during_generation(requirement):
    token = CancelToken()
    store = InMemoryQuestionStore()
    artifacts = InMemoryArtifactStore()

    with pytest.raises(AssemblyCancelled, match="teacher closed the page"):
        await _pipeline(store, generator=_CancellingGenerator(token), artifacts=artifacts).assemble(
            [requirement], cancel_token=token,
        )
    assert artifacts.tests == {}
    assert store.saved == []


# ─── TOS entry point ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_assemble_from_tos():
    artifacts = InMemoryArtifactStore()
    matrix = {"Loops": {"remembering": list(range(1, 11))}}

    result = await _pipeline(artifacts=artifacts).assemble_from_tos(matrix, TestMetadata(tos_id="tos-7"))

    assert result.total_selected == 10
    test = artifacts.get(result.artifact_id)
    assert Counter(i.question.difficulty for i in test.items) == {"easy": 3, "average": 5, "difficult": 2}
    assert test.metadata.tos_id == "tos-7"
