"""
Classifier collaborator — OpenAI

Scores one question for quality (0–1) and labels its knowledge dimension.
Failures raise; the quality filter falls back to the stored score.
"""

import json
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from assembly.errors import AssemblyError
from assembly.schemas import COGNITIVE_LEVELS, DIFFICULTIES, ClassifierScore
from services.gpt_client import GPT_MODEL, call_gpt, extract_json_obj


CLASSIFY_PROMPT = """You are an exam quality reviewer.

Rate this {type} question on the topic "{topic}".

QUESTION: {text}

Check:
1. Is it clear, unambiguous and self-contained?
2. Is it answerable from knowledge of the topic alone?
3. Is the grammar correct?

Respond with JSON ONLY:
{{
  "quality_score": <0.0-1.0>,
  "confidence_score": <0.0-1.0, how sure you are of the rating>,
  "knowledge_dimension": "<factual|conceptual|procedural|metacognitive>",
  "cognitive_level": "<remembering|understanding|applying|analyzing|evaluating|creating>",
  "difficulty": "<easy|average|difficult>"
}}"""

KNOWLEDGE_DIMENSIONS = ("factual", "conceptual", "procedural", "metacognitive")


def _clamp(value, default: float = 0.0) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default


def _pick(value, allowed: tuple) -> Optional[str]:
    value = str(value or "").strip().lower()
    return value if value in allowed else None


class OpenAIQualityClassifier:
    def __init__(self, client: AsyncOpenAI, model: str = GPT_MODEL):
        self.client = client
        self.model = model

    async def score(self, text: str, type: str, topic: str) -> ClassifierScore:
        try:
            raw = await call_gpt(
                self.client,
                CLASSIFY_PROMPT.format(type=type, topic=topic, text=text),
                system="You are an exam quality reviewer. Output only JSON.",
                model=self.model,
                temperature=0.0,
                max_tokens=200,
            )
            data = extract_json_obj(raw)
        except OpenAIError as e:
            raise AssemblyError(f"classifier call failed: {e}") from e
        except (ValueError, json.JSONDecodeError) as e:
            raise AssemblyError(f"unparseable classifier output: {e}") from e

        if "quality_score" not in data:
            raise AssemblyError("classifier output has no quality_score")

        return ClassifierScore(
            quality_score=_clamp(data.get("quality_score")),
            confidence_score=_clamp(data.get("confidence_score")),
            knowledge_dimension=_pick(data.get("knowledge_dimension"), KNOWLEDGE_DIMENSIONS) or "conceptual",
            cognitive_level=_pick(data.get("cognitive_level"), COGNITIVE_LEVELS),
            difficulty=_pick(data.get("difficulty"), DIFFICULTIES),
        )
