"""
Typed data model for telemetry pipeline graphs.

Nodes are receivers, processors and exporters; edges carry one signal
kind each. Everything here is frozen: the builder accumulates state and
produces a PipelineGraph snapshot when validation passes.
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from alloy_pipeline.errors import InvalidParamsError

# Capture reference used when an extract action does not name one
DEFAULT_CAPTURE = "$1"


class SignalKind(str, Enum):
    """Category of telemetry data flowing along an edge."""

    METRICS = "metrics"
    LOGS = "logs"


class NodeKind(str, Enum):
    """Role of a node in the pipeline."""

    RECEIVER = "receiver"
    PROCESSOR = "processor"
    EXPORTER = "exporter"


class AttributeAction(str, Enum):
    """What an attribute action does to a telemetry record."""

    INSERT = "insert"
    EXTRACT = "extract"


class Attribute(BaseModel):
    """
    An attribute action attached to an attributes processor.

    ``insert`` actions carry a literal value. ``extract`` actions carry a
    regular expression and the field it is matched against; ``value`` is
    then the capture reference written to ``key`` by the agent.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str = Field(..., min_length=1, description="Attribute key to write")
    action: AttributeAction
    value: Optional[str] = Field(None, description="Literal value or capture reference")
    pattern: Optional[str] = Field(None, description="Capture pattern for extract actions")
    source: Optional[str] = Field(None, description="Field path the pattern is matched against")

    @model_validator(mode="after")
    def _check_action_fields(self) -> "Attribute":
        if self.action == AttributeAction.INSERT:
            if self.value is None:
                raise InvalidParamsError(f"Insert action for {self.key!r} requires a value")
            if self.pattern is not None or self.source is not None:
                raise InvalidParamsError(
                    f"Insert action for {self.key!r} cannot carry a pattern or source field"
                )
        else:
            if not self.pattern:
                raise InvalidParamsError(f"Extract action for {self.key!r} requires a pattern")
            if not self.source or not self.source.strip():
                raise InvalidParamsError(
                    f"Extract action for {self.key!r} requires a source field reference"
                )
        return self

    @classmethod
    def insert(cls, key: str, value: str) -> "Attribute":
        """Create an action inserting a literal value."""
        return cls(key=key, action=AttributeAction.INSERT, value=value)

    @classmethod
    def extract(
        cls, key: str, pattern: str, source: str, value: str = DEFAULT_CAPTURE
    ) -> "Attribute":
        """Create an action extracting a value from ``source`` with ``pattern``."""
        return cls(
            key=key, action=AttributeAction.EXTRACT, pattern=pattern, source=source, value=value
        )

    @property
    def capture(self) -> str:
        """Capture reference for extract actions."""
        return self.value if self.value is not None else DEFAULT_CAPTURE


def freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become MappingProxyType, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


class Edge(BaseModel):
    """An output edge: ``signal`` data flows to the node named ``target``."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., min_length=1)
    signal: SignalKind


class Node(BaseModel):
    """One stage of the pipeline."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique node name, also the block label")
    kind: NodeKind
    type_tag: str = Field(..., min_length=1, description="Component type, e.g. otlp or batch")
    params: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    inputs: Tuple[SignalKind, ...] = ()
    outputs: Tuple[SignalKind, ...] = ()
    edges: Tuple[Edge, ...] = ()
    actions: Tuple[Attribute, ...] = ()
    description: Optional[str] = None

    @field_validator("params")
    @classmethod
    def _freeze_params(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return freeze(value)

    def edges_for(self, signal: SignalKind) -> List[Edge]:
        """Edges carrying ``signal``, in insertion order."""
        return [edge for edge in self.edges if edge.signal == signal]

    def targets(self, signal: SignalKind) -> List[str]:
        """Names of nodes fed with ``signal``."""
        return [edge.target for edge in self.edges_for(signal)]


class PipelineGraph(BaseModel):
    """
    Immutable pipeline graph.

    Nodes keep their insertion order, which breaks ties when the
    serializer orders them topologically.
    """

    model_config = ConfigDict(frozen=True)

    nodes: Tuple[Node, ...] = ()

    @model_validator(mode="after")
    def _check_unique_names(self) -> "PipelineGraph":
        seen = set()
        for node in self.nodes:
            if node.name in seen:
                raise InvalidParamsError(f"Duplicate node name in graph: {node.name}")
            seen.add(node.name)
        return self

    @property
    def names(self) -> List[str]:
        return [node.name for node in self.nodes]

    def by_name(self) -> Dict[str, Node]:
        """Map node names to nodes, preserving insertion order."""
        return {node.name: node for node in self.nodes}

    def get(self, name: str) -> Optional[Node]:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def __contains__(self, name: object) -> bool:
        return any(node.name == name for node in self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)
