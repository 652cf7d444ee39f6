"""alloy-pipeline - Typed Grafana Alloy pipeline configuration for Proxmox VE hosts."""

__version__ = "1.0.0"

from .builder import NodeHandle, PipelineBuilder
from .errors import (
    CycleError,
    DuplicateNodeError,
    InvalidParamsError,
    InvalidPatternError,
    NotValidatedError,
    PipelineConfigError,
    ReferentialIntegrityError,
    SignalMismatchError,
    UnknownNodeError,
    ValidationError,
    ValidationFailure,
)
from .models import Attribute, AttributeAction, NodeKind, PipelineGraph, SignalKind

__all__ = [
    "Attribute",
    "AttributeAction",
    "CycleError",
    "DuplicateNodeError",
    "InvalidParamsError",
    "InvalidPatternError",
    "NodeHandle",
    "NodeKind",
    "NotValidatedError",
    "PipelineBuilder",
    "PipelineConfigError",
    "PipelineGraph",
    "ReferentialIntegrityError",
    "SignalKind",
    "SignalMismatchError",
    "UnknownNodeError",
    "ValidationError",
    "ValidationFailure",
]
