"""
Error taxonomy for pipeline configuration generation.

Every error here is a local, synchronous construction-time failure.
Any of them aborts generation; nothing partial is ever serialized.
"""

from enum import Enum
from typing import List, Optional


class PipelineConfigError(Exception):
    """Base class for all pipeline configuration errors."""


class DuplicateNodeError(PipelineConfigError):
    """Raised when a node name is added twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Node already exists: {name}")


class UnknownNodeError(PipelineConfigError):
    """Raised when a handle does not belong to the builder it is used with."""

    def __init__(self, name: str, reason: str = "handle was not issued by this builder"):
        self.name = name
        super().__init__(f"Unknown node {name!r}: {reason}")


class InvalidParamsError(PipelineConfigError):
    """Raised when node parameters or declarations do not fit the component type."""


class InvalidPatternError(PipelineConfigError):
    """Raised when an extract action carries a pattern that does not compile."""

    def __init__(self, pattern: str, error: str):
        self.pattern = pattern
        super().__init__(f"Invalid extraction pattern {pattern!r}: {error}")


class NotValidatedError(PipelineConfigError):
    """Raised when serialization is requested before a successful validate()."""

    def __init__(self) -> None:
        super().__init__("Pipeline must pass validate() before it can be serialized")


class ValidationFailure(str, Enum):
    """Kinds of graph invariant violations."""

    REFERENTIAL_INTEGRITY = "referential_integrity"
    CYCLE = "cycle"
    SIGNAL_MISMATCH = "signal_mismatch"


class ValidationError(PipelineConfigError):
    """A graph invariant violation found by validate()."""

    failure: ValidationFailure

    def __init__(self, message: str, node: Optional[str] = None):
        self.node = node
        super().__init__(message)


class ReferentialIntegrityError(ValidationError):
    """An edge names a node that is not part of the graph."""

    failure = ValidationFailure.REFERENTIAL_INTEGRITY

    def __init__(self, source: str, target: str, signal: str):
        self.source = source
        self.target = target
        self.signal = signal
        super().__init__(
            f"Node {source!r} sends {signal} to unknown node {target!r}", node=source
        )


class CycleError(ValidationError):
    """Nodes feed themselves, transitively, with the same signal kind."""

    failure = ValidationFailure.CYCLE

    def __init__(self, cycle: List[str], signal: str):
        self.cycle = list(cycle)
        self.signal = signal
        chain = " -> ".join(self.cycle)
        super().__init__(f"Cycle in {signal} pipeline: {chain}", node=self.cycle[0])


class SignalMismatchError(ValidationError):
    """An edge carries a signal its source does not emit or its target does not accept."""

    failure = ValidationFailure.SIGNAL_MISMATCH

    def __init__(self, source: str, target: str, signal: str, reason: str):
        self.source = source
        self.target = target
        self.signal = signal
        super().__init__(
            f"Cannot send {signal} from {source!r} to {target!r}: {reason}", node=source
        )


class SettingsError(PipelineConfigError):
    """Raised when the generator settings file cannot be loaded."""
