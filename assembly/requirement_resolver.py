"""
Step 1 — Requirement Resolver

Flattens a TOS matrix into discrete Requirement objects.

TOS matrix shape (topic → Bloom level → cell):
    {
      "Loops": {
        "remembering": [1, 2, 3],            # item-number array (count = len)
        "applying": {"count": 2, "items": [4, 5]},
        "creating": 1,                       # bare count
      },
      ...
    }

Each (topic, level) cell is split into easy / average / difficult buckets using
the configured percentage split (30/50/20 by default). Rounding uses the
largest-remainder method so the three buckets always add up to the cell count.

Malformed entries are skipped with a warning; resolution never fails hard.
Duplicate buckets are NOT merged.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from assembly.errors import MalformedRequirement
from assembly.schemas import COGNITIVE_LEVELS, DIFFICULTIES, Requirement

log = logging.getLogger("assembly.pipeline")


# Level-name normalisation (TOS sheets use several spellings)
LEVEL_ALIASES: Dict[str, str] = {
    "remembering":   "remembering",
    "remember":      "remembering",
    "knowledge":     "remembering",
    "understanding": "understanding",
    "understand":    "understanding",
    "comprehension": "understanding",
    "applying":      "applying",
    "apply":         "applying",
    "application":   "applying",
    "analyzing":     "analyzing",
    "analysing":     "analyzing",
    "analyze":       "analyzing",
    "analysis":      "analyzing",
    "evaluating":    "evaluating",
    "evaluate":      "evaluating",
    "evaluation":    "evaluating",
    "creating":      "creating",
    "create":        "creating",
    "synthesis":     "creating",
}


def normalise_level(raw: str) -> Optional[str]:
    return LEVEL_ALIASES.get(str(raw).strip().lower())


def split_by_difficulty(count: int, split: Sequence[int] = (30, 50, 20)) -> Tuple[int, int, int]:
    """
    Split `count` into (easy, average, difficult) with the largest-remainder method.

    Integer arithmetic on percentages avoids float drift; ties on the remainder go
    to the earlier bucket (easy before average before difficult).
    """
    total_weight = sum(split)
    floors = [count * w // total_weight for w in split]
    remainders = [count * w % total_weight for w in split]
    leftover = count - sum(floors)
    order = sorted(range(len(split)), key=lambda i: (-remainders[i], i))
    for i in order[:leftover]:
        floors[i] += 1
    return floors[0], floors[1], floors[2]


def _cell_count(cell: Any) -> int:
    """Item count of one TOS cell (array, {count, items} object, or int)."""
    if isinstance(cell, bool):
        raise MalformedRequirement(f"boolean is not a count: {cell!r}")
    if isinstance(cell, int):
        return cell
    if isinstance(cell, (list, tuple)):
        return len(cell)
    if isinstance(cell, Mapping):
        if "items" in cell and isinstance(cell["items"], (list, tuple)) and cell["items"]:
            return len(cell["items"])
        if "count" in cell:
            return _cell_count(cell["count"])
        if "items" in cell:
            return 0
    raise MalformedRequirement(f"unrecognised TOS cell: {cell!r}")


def resolve_requirements(
    tos_matrix: Mapping[str, Any],
    split: Sequence[int] = (30, 50, 20),
) -> List[Requirement]:
    """
    Step 1: TOS matrix → List[Requirement].

    Accepts either the bare topic mapping or a full TOS record carrying it under
    "distribution".

    Args:
        tos_matrix: topic → {level → cell}
        split: (easy, average, difficult) percentages

    Returns:
        Requirements in matrix order (topic, then Bloom order, then difficulty)
    """
    distribution = tos_matrix.get("distribution", tos_matrix) if isinstance(tos_matrix, Mapping) else {}
    if not isinstance(distribution, Mapping):
        log.warning("[RESOLVE] TOS distribution is not a mapping, nothing to resolve")
        return []

    requirements: List[Requirement] = []
    for topic, levels in distribution.items():
        topic_name = str(topic).strip() if topic is not None else ""
        if not topic_name:
            log.warning("[RESOLVE] Skipping entry with missing topic name")
            continue
        if not isinstance(levels, Mapping):
            log.warning(f"[RESOLVE] Skipping topic '{topic_name}': expected level mapping, got {type(levels).__name__}")
            continue

        resolved_cells: Dict[str, int] = {}
        for raw_level, cell in levels.items():
            level = normalise_level(raw_level)
            if level is None:
                # Non-level keys (hours, percentage, total) are expected in full TOS rows
                if str(raw_level).strip().lower() not in ("hours", "percentage", "total"):
                    log.warning(f"[RESOLVE] Skipping '{topic_name}': unknown cognitive level '{raw_level}'")
                continue
            try:
                count = _cell_count(cell)
            except MalformedRequirement as e:
                log.warning(f"[RESOLVE] Skipping '{topic_name}' / {level}: {e}")
                continue
            if count <= 0:
                log.warning(f"[RESOLVE] Skipping '{topic_name}' / {level}: count {count}")
                continue
            resolved_cells[level] = resolved_cells.get(level, 0) + count

        for level in COGNITIVE_LEVELS:
            count = resolved_cells.get(level)
            if not count:
                continue
            for difficulty, n in zip(DIFFICULTIES, split_by_difficulty(count, split)):
                if n > 0:
                    requirements.append(Requirement(
                        topic=topic_name,
                        cognitive_level=level,
                        difficulty=difficulty,
                        count=n,
                    ))

    log.info(
        f"[RESOLVE] {len(requirements)} requirement(s), "
        f"{sum(r.count for r in requirements)} item(s) total"
    )
    return requirements
