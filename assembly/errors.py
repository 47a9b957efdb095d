"""
Error taxonomy for the assembly pipeline.

Only ContractViolation (and cancellation) ever leaves TestAssemblyPipeline.assemble
for a shortfall. The other errors are raised by collaborators and absorbed by the
stage that called them, which reports reduced supply instead.
"""


class AssemblyError(Exception):
    """Base class for every assembly pipeline error."""


class StoreUnavailable(AssemblyError):
    """Question store / artifact store call failed."""


class GenerationFailure(AssemblyError):
    """Generator call failed, timed out, or returned unparseable output."""


class MalformedRequirement(AssemblyError):
    """A TOS entry that cannot be turned into a requirement."""


class AssemblyCancelled(AssemblyError):
    """The run's cancel token fired before the test was persisted."""


class ContractViolation(AssemblyError):
    """Completion gate gave up with items still missing."""

    def __init__(self, required: int, selected: int, attempts: int = 0):
        self.required = required
        self.selected = selected
        self.attempts = attempts
        self.shortfall = required - selected
        super().__init__(
            f"Test generation incomplete: assembled {selected}/{required} questions "
            f"after {attempts} repair attempt(s). {self.shortfall} question(s) could not "
            f"be sourced or generated."
        )
