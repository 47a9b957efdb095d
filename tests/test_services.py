"""
Unit tests for the OpenAI-backed collaborators, with a fake chat client.
"""

import json
from types import SimpleNamespace

import pytest

from assembly.errors import AssemblyError, GenerationFailure
from services.gpt_client import extract_json_array, extract_json_obj
from services.llm_classifier import OpenAIQualityClassifier
from services.llm_generator import OpenAIQuestionGenerator


class FakeChatClient:
    """Mimics AsyncOpenAI.chat.completions.create with canned replies."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        content = self.replies.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestJsonExtraction:
    def test_object_inside_fences(self):
        assert extract_json_obj('```json\n{"a": 1}\n```') == {"a": 1}

    def test_array_with_chatter(self):
        assert extract_json_array('Here you go:\n[{"text": "Q"}]') == [{"text": "Q"}]

    def test_wrapped_question_list(self):
        assert extract_json_array('{"questions": [{"text": "Q"}]}') == [{"text": "Q"}]

    def test_no_json(self):
        with pytest.raises(ValueError):
            extract_json_array("sorry, I cannot help")


@pytest.mark.asyncio
async def test_generator_parses_mcq_batch():
    reply = json.dumps([
        {"text": "Which keyword starts a loop?", "choices": {"a": "for", "b": "if"}, "correct_answer": "A"},
        {"text": "   "},
        {"text": "Which loop runs at least once?", "options": [{"label": "A", "text": "do-while"}], "correct_answer": "A"},
    ])
    client = FakeChatClient(reply)

    questions = await OpenAIQuestionGenerator(client, model="test-model").generate(
        "Loops", "remembering", "easy", 2, "mcq",
    )

    assert [q.text for q in questions] == ["Which keyword starts a loop?", "Which loop runs at least once?"]
    assert questions[0].choices == {"A": "for", "B": "if"}
    assert questions[1].choices == {"A": "do-while"}
    assert all(q.provenance == "generated" and q.topic == "Loops" for q in questions)
    assert client.requests[0]["model"] == "test-model"
    assert "Generate exactly 2 distinct multiple choice" in client.requests[0]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_generator_truncates_to_count():
    reply = json.dumps([{"text": f"Question number {n}", "correct_answer": "True"} for n in range(5)])

    questions = await OpenAIQuestionGenerator(FakeChatClient(reply)).generate(
        "Loops", "remembering", "easy", 2, "true_false",
    )

    assert len(questions) == 2
    assert questions[0].choices is None
    assert questions[0].correct_answer == "True"


@pytest.mark.asyncio
async def test_generator_unparseable_output():
    with pytest.raises(GenerationFailure):
        await OpenAIQuestionGenerator(FakeChatClient("no json here")).generate(
            "Loops", "remembering", "easy", 1, "essay",
        )


@pytest.mark.asyncio
async def test_classifier_parses_and_clamps():
    reply = json.dumps({
        "quality_score": 1.4,
        "confidence_score": "0.7",
        "knowledge_dimension": "Procedural",
        "cognitive_level": "applying",
        "difficulty": "impossible",
    })

    score = await OpenAIQualityClassifier(FakeChatClient(reply)).score("Q?", "mcq", "Loops")

    assert score.quality_score == 1.0
    assert score.confidence_score == 0.7
    assert score.knowledge_dimension == "procedural"
    assert score.cognitive_level == "applying"
    assert score.difficulty is None


@pytest.mark.asyncio
async def test_classifier_without_score_fails():
    with pytest.raises(AssemblyError):
        await OpenAIQualityClassifier(FakeChatClient('{"confidence_score": 0.5}')).score("Q?", "mcq", "Loops")
