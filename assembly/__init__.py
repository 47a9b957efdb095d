"""
Test Assembly Pipeline
assembly/

Steps:
1. Requirement Resolver   — flatten TOS matrix → (topic, level, difficulty, count)
2. Candidate Sourcer      — approved bank questions per requirement (usage-balanced)
3. Quality Filter         — classifier score ≥ threshold
4. Redundancy Eliminator  — drop near-duplicates against everything accepted so far
5. Diversity Selector     — per-requirement quotas + diversity / coverage metrics
6. Generation Fallback    — LLM generation for the shortfall, spread across types
7. Uniqueness Registrar   — fingerprint + text dedup before generated rows are saved
8. Completion Gate        — bounded repair rounds, exact TOS count or ContractViolation
9. Assembler              — number items, answer key, persist, bump usage counters
"""

from assembly.errors import (
    AssemblyError,
    AssemblyCancelled,
    ContractViolation,
    GenerationFailure,
    MalformedRequirement,
    StoreUnavailable,
)
from assembly.pipeline import TestAssemblyPipeline

__all__ = [
    "TestAssemblyPipeline",
    "AssemblyError",
    "AssemblyCancelled",
    "ContractViolation",
    "GenerationFailure",
    "MalformedRequirement",
    "StoreUnavailable",
]
