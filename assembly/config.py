"""
Pipeline tunables.

Defaults live as module constants (overridable through env vars / .env) and are
bundled into an AssemblyConfig that gets injected into the pipeline.
"""

import os
from typing import Tuple

from pydantic import BaseModel, Field, field_validator


QUALITY_THRESHOLD = float(os.getenv("ASSEMBLY_QUALITY_THRESHOLD", "0.65"))
SIMILARITY_THRESHOLD = float(os.getenv("ASSEMBLY_SIMILARITY_THRESHOLD", "0.75"))
MAX_ATTEMPTS = int(os.getenv("ASSEMBLY_MAX_ATTEMPTS", "3"))
GENERATION_TIMEOUT = float(os.getenv("ASSEMBLY_GENERATION_TIMEOUT", "60"))
GENERATED_CONFIDENCE = float(os.getenv("ASSEMBLY_GENERATED_CONFIDENCE", "0.75"))
SOURCE_MULTIPLIER = int(os.getenv("ASSEMBLY_SOURCE_MULTIPLIER", "2"))
POINTS_PER_ITEM = int(os.getenv("ASSEMBLY_POINTS_PER_ITEM", "1"))
DIFFICULTY_SPLIT = os.getenv("ASSEMBLY_DIFFICULTY_SPLIT", "30,50,20")


def _parse_split(raw: str) -> Tuple[int, int, int]:
    parts = [int(p.strip()) for p in raw.split(",") if p.strip()]
    if len(parts) != 3:
        raise ValueError(f"difficulty split needs 3 percentages, got {raw!r}")
    return parts[0], parts[1], parts[2]


class AssemblyConfig(BaseModel):
    quality_threshold: float = Field(QUALITY_THRESHOLD, ge=0.0, le=1.0)
    similarity_threshold: float = Field(SIMILARITY_THRESHOLD, gt=0.0, le=1.0)
    max_attempts: int = Field(MAX_ATTEMPTS, ge=0)
    generation_timeout: float = Field(GENERATION_TIMEOUT, gt=0.0)
    generated_confidence: float = Field(GENERATED_CONFIDENCE, ge=0.0, le=1.0)
    source_multiplier: int = Field(SOURCE_MULTIPLIER, ge=1)
    points_per_item: int = Field(POINTS_PER_ITEM, ge=1)
    # easy / average / difficult, in percent
    difficulty_split: Tuple[int, int, int] = _parse_split(DIFFICULTY_SPLIT)

    @field_validator("difficulty_split")
    @classmethod
    def _split_sums_to_100(cls, v: Tuple[int, int, int]) -> Tuple[int, int, int]:
        if any(p < 0 for p in v) or sum(v) != 100:
            raise ValueError(f"difficulty split must be non-negative and sum to 100, got {v}")
        return v

    @classmethod
    def from_env(cls) -> "AssemblyConfig":
        """Re-read the environment (module constants are frozen at import time)."""
        return cls(
            quality_threshold=float(os.getenv("ASSEMBLY_QUALITY_THRESHOLD", QUALITY_THRESHOLD)),
            similarity_threshold=float(os.getenv("ASSEMBLY_SIMILARITY_THRESHOLD", SIMILARITY_THRESHOLD)),
            max_attempts=int(os.getenv("ASSEMBLY_MAX_ATTEMPTS", MAX_ATTEMPTS)),
            generation_timeout=float(os.getenv("ASSEMBLY_GENERATION_TIMEOUT", GENERATION_TIMEOUT)),
            generated_confidence=float(os.getenv("ASSEMBLY_GENERATED_CONFIDENCE", GENERATED_CONFIDENCE)),
            source_multiplier=int(os.getenv("ASSEMBLY_SOURCE_MULTIPLIER", SOURCE_MULTIPLIER)),
            points_per_item=int(os.getenv("ASSEMBLY_POINTS_PER_ITEM", POINTS_PER_ITEM)),
            difficulty_split=_parse_split(os.getenv("ASSEMBLY_DIFFICULTY_SPLIT", DIFFICULTY_SPLIT)),
        )
