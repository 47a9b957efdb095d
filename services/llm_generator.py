"""
Generator collaborator — OpenAI

Produces `count` questions of one type for one (topic, level, difficulty) bucket.
The pipeline stamps the bucket onto whatever comes back, so the model's own
labels are ignored; only text, choices and answer are taken from the response.
"""

import json
import logging
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from assembly.errors import GenerationFailure
from assembly.schemas import Candidate
from services.gpt_client import GPT_MODEL, call_gpt, extract_json_array

log = logging.getLogger("assembly.generator")


# ─── Prompt ────────────────────────────────────────────────────────────────────

GENERATION_PROMPT = """You are an expert exam question setter.

Generate exactly {count} distinct {type_label} question(s).

SPECIFICATIONS:
- Topic: {topic}
- Bloom's Level: {level}
- Difficulty: {difficulty}

OUTPUT FORMAT — respond with ONLY a valid JSON array, no markdown, no explanation:
[
  {{
    "text": "<complete, self-contained question>",
{answer_format}
  }}
]

RULES:
1. Every question must target the Bloom's level "{level}"
2. Questions must not repeat or paraphrase each other
3. Do NOT use "All of the above" or "None of the above"
4. Return ONLY the JSON array
"""

TYPE_LABELS = {
    "mcq": "multiple choice",
    "true_false": "true/false",
    "short_answer": "short answer",
    "essay": "essay",
}

ANSWER_FORMATS = {
    "mcq": (
        '    "choices": {"A": "<option>", "B": "<option>", "C": "<option>", "D": "<option>"},\n'
        '    "correct_answer": "<A|B|C|D>"'
    ),
    "true_false": '    "correct_answer": "<True|False>"',
    "short_answer": '    "correct_answer": "<expected answer, one or two sentences>"',
    "essay": '    "correct_answer": "<model answer outline>"',
}


def _parse_choices(raw) -> Optional[Dict[str, str]]:
    if isinstance(raw, dict):
        choices = {str(k).upper().strip(): str(v).strip() for k, v in raw.items() if str(v).strip()}
    elif isinstance(raw, list):
        # [{"label": "A", "text": "..."}] option list
        choices = {
            str(o.get("label", "")).upper().strip(): str(o.get("text", "")).strip()
            for o in raw if isinstance(o, dict)
        }
        choices = {k: v for k, v in choices.items() if k and v}
    else:
        return None
    return choices or None


class OpenAIQuestionGenerator:
    def __init__(self, client: AsyncOpenAI, model: str = GPT_MODEL, temperature: float = 0.7):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def generate(
        self,
        topic: str,
        level: str,
        difficulty: str,
        count: int,
        type: str,
    ) -> List[Candidate]:
        if count <= 0:
            return []

        prompt = GENERATION_PROMPT.format(
            count=count,
            type_label=TYPE_LABELS.get(type, type),
            topic=topic,
            level=level,
            difficulty=difficulty,
            answer_format=ANSWER_FORMATS.get(type, ANSWER_FORMATS["short_answer"]),
        )

        try:
            raw = await call_gpt(
                self.client,
                prompt,
                system="You write exam questions. Output only valid JSON.",
                model=self.model,
                temperature=self.temperature,
                max_tokens=min(4000, 400 * count + 200),
            )
        except OpenAIError as e:
            raise GenerationFailure(f"OpenAI call failed: {e}") from e

        try:
            items = extract_json_array(raw)
        except (ValueError, json.JSONDecodeError) as e:
            raise GenerationFailure(f"Unparseable generator output: {e}") from e

        questions: List[Candidate] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            text = str(item.get("text") or item.get("question_text") or "").strip()
            if not text:
                continue
            answer = item.get("correct_answer", item.get("answer_key"))
            questions.append(Candidate(
                text=text,
                type=type,
                topic=topic,
                cognitive_level=level,
                difficulty=difficulty,
                provenance="generated",
                choices=_parse_choices(item.get("choices", item.get("options"))) if type == "mcq" else None,
                correct_answer=str(answer).strip() if answer is not None else None,
            ))

        log.info(f"[GENERATE] OpenAI returned {len(questions)}/{count} {type} question(s) for {topic}")
        return questions[:count]
