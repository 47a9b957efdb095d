"""
Step 8 — Completion Gate

Enforces the TOS contract after the first pass:

    RUNNING ──(shortfall == 0)──────────────────────────► SATISFIED
       │
       └──(attempts == max_attempts, shortfall > 0)────► FAILED  (ContractViolation)

Each repair round targets one still-short requirement (round-robin by attempt
number), asks the generator for the whole remaining shortfall in that bucket and
admits new questions through the uniqueness registrar, up to that requirement's
deficit. No per-call retries happen here: one round is one attempt.
"""

import enum
import logging

from assembly.config import AssemblyConfig
from assembly.context import PipelineContext
from assembly.errors import ContractViolation
from assembly.generation_fallback import generate_missing
from assembly.interfaces import Generator
from assembly.uniqueness import UniquenessRegistrar

log = logging.getLogger("assembly.pipeline")


class GateState(str, enum.Enum):
    RUNNING = "running"
    SATISFIED = "satisfied"
    FAILED = "failed"


class CompletionGate:
    def __init__(
        self,
        generator: Generator,
        registrar: UniquenessRegistrar,
        config: AssemblyConfig,
    ):
        self.generator = generator
        self.registrar = registrar
        self.config = config
        self.max_attempts = config.max_attempts
        self.attempts = 0
        self.state = GateState.RUNNING

    async def run(self, ctx: PipelineContext) -> GateState:
        """Repair until the contract holds or the attempt budget is spent."""
        required = ctx.required_total
        shortfall = ctx.shortfall

        while shortfall > 0 and self.attempts < self.max_attempts:
            ctx.check_cancelled()
            short = ctx.deficient_indices()
            target = short[self.attempts % len(short)]
            requirement = ctx.requirements[target]

            log.info(
                f"[GATE] Repair {self.attempts + 1}/{self.max_attempts}: "
                f"{ctx.selected_total}/{required}, {shortfall} short → {requirement.label()}"
            )
            batch = await generate_missing(
                self.generator,
                requirement,
                shortfall,
                timeout=self.config.generation_timeout,
                default_confidence=self.config.generated_confidence,
                ctx=ctx,
            )
            admitted = self.registrar.admit(ctx, target, batch.value, limit=ctx.deficit(target))
            log.info(f"[GATE] Repair {self.attempts + 1}: admitted {len(admitted.value)}")

            self.attempts += 1
            shortfall = ctx.shortfall

        if shortfall > 0:
            self.state = GateState.FAILED
            log.error(f"[GATE] TOS contract violation: {ctx.selected_total}/{required}")
            raise ContractViolation(required, ctx.selected_total, self.attempts)

        ctx.trim()
        self.state = GateState.SATISFIED
        log.info(f"[GATE] TOS contract satisfied: {ctx.selected_total}/{required}")
        return self.state
