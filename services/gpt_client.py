"""
Shared OpenAI GPT helper for the assembly collaborators.

Used by:
  - llm_generator.py   (Generator — fallback question generation)
  - llm_classifier.py  (Classifier — quality scoring)

Model: gpt-4o-mini  (override with GPT_MODEL env var, e.g. "gpt-4o")
"""

import json
import os
import re
from typing import Optional

from openai import AsyncOpenAI

# ── Model config ───────────────────────────────────────────────────────────────
GPT_MODEL = os.getenv("GPT_MODEL", "gpt-4o-mini")
GPT_TIMEOUT = float(os.getenv("GPT_TIMEOUT", "60"))


def build_client(api_key: Optional[str] = None, timeout: float = GPT_TIMEOUT) -> AsyncOpenAI:
    api_key = api_key or os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError(
            "OPENAI_API_KEY is not set. Add it to your .env file."
        )
    return AsyncOpenAI(api_key=api_key, timeout=timeout)


async def call_gpt(
    client: AsyncOpenAI,
    prompt: str,
    system: str = "You are a helpful academic assistant. Output only what is asked.",
    model: str = GPT_MODEL,
    temperature: float = 0.4,
    max_tokens: int = 2048,
) -> str:
    """
    Call OpenAI Chat Completions and return the assistant message text.

    Args:
        client:      AsyncOpenAI client (owned by the caller)
        prompt:      User-turn message
        system:      System prompt
        model:       Chat model name
        temperature: Sampling temperature (lower = more deterministic)
        max_tokens:  Max response tokens
    """
    response = await client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return response.choices[0].message.content or ""


# ─── JSON extraction ───────────────────────────────────────────────────────────

def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw, flags=re.MULTILINE)
    return re.sub(r"\s*```$", "", raw, flags=re.MULTILINE)


def extract_json_obj(raw: str) -> dict:
    raw = _strip_fences(raw)
    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start == -1 or end == 0:
        raise ValueError(f"No JSON object found: {raw[:200]}")
    return json.loads(raw[start:end])


def extract_json_array(raw: str) -> list:
    """Top-level JSON array, or the `questions` list of a wrapping object."""
    raw = _strip_fences(raw)
    start = raw.find("[")
    obj_start = raw.find("{")
    if obj_start != -1 and (start == -1 or obj_start < start):
        data = extract_json_obj(raw)
        items = data.get("questions")
        if not isinstance(items, list):
            raise ValueError(f"No question list found: {raw[:200]}")
        return items
    end = raw.rfind("]") + 1
    if start == -1 or end == 0:
        raise ValueError(f"No JSON array found: {raw[:200]}")
    return json.loads(raw[start:end])
