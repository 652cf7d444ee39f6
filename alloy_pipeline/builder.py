"""
Pipeline configuration builder.

Accumulates nodes, edges and attribute actions from a sequence of
builder calls, validates the resulting graph and serializes it. The
builder has no notion of user selection: callers decide which calls to
make, the builder only records them in order.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from alloy_pipeline.components import resolve_component
from alloy_pipeline.errors import (
    DuplicateNodeError,
    InvalidParamsError,
    InvalidPatternError,
    NotValidatedError,
    UnknownNodeError,
)
from alloy_pipeline.models import (
    Attribute,
    AttributeAction,
    Edge,
    Node,
    NodeKind,
    PipelineGraph,
    SignalKind,
)
from alloy_pipeline.serializer import AlloySerializer
from alloy_pipeline.validation import validate_graph
from alloy_pipeline.writer import ConfigWriter

logger = logging.getLogger(__name__)

# Node names double as Alloy block labels and appear in component references
NODE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class NodeHandle:
    """Reference to a node, valid only for the builder that issued it."""

    name: str
    builder_id: str


@dataclass
class _PendingNode:
    name: str
    kind: NodeKind
    type_tag: str
    params: Dict[str, Any]
    inputs: tuple
    outputs: tuple
    description: Optional[str] = None
    edges: List[Edge] = field(default_factory=list)
    actions: List[Attribute] = field(default_factory=list)

    def freeze(self) -> Node:
        return Node(
            name=self.name,
            kind=self.kind,
            type_tag=self.type_tag,
            params=dict(self.params),
            inputs=self.inputs,
            outputs=self.outputs,
            edges=tuple(self.edges),
            actions=tuple(self.actions),
            description=self.description,
        )


class PipelineBuilder:
    """Builds, validates and serializes a telemetry pipeline graph."""

    def __init__(self) -> None:
        self.builder_id = uuid.uuid4().hex
        self._nodes: Dict[str, _PendingNode] = {}
        self._validated: Optional[PipelineGraph] = None

    # ---------- construction ----------

    def add_node(
        self,
        name: str,
        kind: Union[NodeKind, str],
        type_tag: str,
        params: Optional[Dict[str, Any]] = None,
        inputs: Optional[Iterable[Union[SignalKind, str]]] = None,
        outputs: Optional[Iterable[Union[SignalKind, str]]] = None,
        description: Optional[str] = None,
    ) -> NodeHandle:
        """
        Add a node to the graph.

        Args:
            name: Unique node name, used as the Alloy block label
            kind: receiver, processor or exporter
            type_tag: Component type within the kind (e.g. otlp, attributes, batch)
            params: Component parameters
            inputs: Signals the node accepts; defaults to all the component supports
            outputs: Signals the node emits; defaults to all the component supports
            description: Comment rendered above the node's block

        Returns:
            Handle for connecting the node

        Raises:
            DuplicateNodeError: If ``name`` is already in the graph
            InvalidParamsError: If the type is unknown, params are missing a required
                field, or declared signals are not supported by the component
        """
        if name in self._nodes:
            raise DuplicateNodeError(name)
        if not isinstance(name, str) or not NODE_NAME_PATTERN.match(name):
            raise InvalidParamsError(
                f"Invalid node name {name!r}: use letters, digits and underscores"
            )

        _check_text(params, f"params of node {name!r}")
        _check_text(description, f"description of node {name!r}")
        component = resolve_component(kind, type_tag)
        self._nodes[name] = _PendingNode(
            name=name,
            kind=component.kind,
            type_tag=component.type_tag,
            params=component.validate_params(params),
            inputs=component.check_signals(inputs, "input"),
            outputs=component.check_signals(outputs, "output"),
            description=description,
        )
        self._invalidate()
        logger.debug(f"Added {component.kind.value} node {name!r} ({component.block})")
        return NodeHandle(name=name, builder_id=self.builder_id)

    def connect(
        self, source: NodeHandle, signal: Union[SignalKind, str], target: NodeHandle
    ) -> None:
        """
        Send ``signal`` data from ``source`` to ``target``.

        Connecting the same pair with the same signal again is a no-op.

        Raises:
            UnknownNodeError: If either handle was not issued by this builder
        """
        pending = self._require(source)
        self._require(target)
        self._add_edge(pending, target.name, signal)

    def connect_by_name(self, source: str, signal: Union[SignalKind, str], target: str) -> None:
        """
        Connect nodes by name.

        The target does not need to exist yet, so documents can reference
        nodes declared further down. Dangling targets are reported by
        validate() as referential integrity errors.
        """
        pending = self._nodes.get(source)
        if pending is None:
            raise UnknownNodeError(source, "no node with this name")
        self._add_edge(pending, target, signal)

    def add_attribute_action(self, node: NodeHandle, attribute: Attribute) -> None:
        """
        Append an attribute action to a node.

        Actions keep their call order. Later actions may overwrite earlier
        ones with the same key when the agent applies them, so nothing is
        reordered or deduplicated here.

        Raises:
            UnknownNodeError: If the handle was not issued by this builder
            InvalidParamsError: If the node's component does not carry actions
            InvalidPatternError: If an extract pattern does not compile
        """
        pending = self._require(node)
        component = resolve_component(pending.kind, pending.type_tag)
        if not component.accepts_actions:
            raise InvalidParamsError(
                f"Node {pending.name!r} ({component.block}) does not take attribute actions"
            )

        _check_text(
            [attribute.key, attribute.value, attribute.pattern, attribute.source],
            f"attribute action for {attribute.key!r}",
        )

        if attribute.action == AttributeAction.EXTRACT:
            try:
                re.compile(attribute.pattern)
            except re.error as e:
                raise InvalidPatternError(attribute.pattern, str(e))
            if not attribute.source or not attribute.source.strip():
                raise InvalidParamsError(
                    f"Extract action for {attribute.key!r} requires a source field reference"
                )

        pending.actions.append(attribute)
        self._invalidate()
        logger.debug(
            f"Added {attribute.action.value} action for {attribute.key!r} to {pending.name!r}"
        )

    def handle(self, name: str) -> NodeHandle:
        """Return the handle for an existing node."""
        if name not in self._nodes:
            raise UnknownNodeError(name, "no node with this name")
        return NodeHandle(name=name, builder_id=self.builder_id)

    # ---------- validation and output ----------

    def graph(self) -> PipelineGraph:
        """Snapshot the current state as an immutable, unvalidated graph."""
        return PipelineGraph(nodes=tuple(pending.freeze() for pending in self._nodes.values()))

    def validate(self) -> PipelineGraph:
        """
        Check referential integrity, per-signal acyclicity and signal compatibility.

        Returns:
            The validated, immutable graph

        Raises:
            ValidationError: The first violation found
        """
        graph = self.graph()
        validate_graph(graph)
        self._validated = graph
        logger.info(f"Pipeline validated: {len(graph)} nodes")
        return graph

    @property
    def is_validated(self) -> bool:
        return self._validated is not None

    def serialize(self, header: bool = True) -> str:
        """
        Render the validated graph as Alloy configuration.

        Raises:
            NotValidatedError: If validate() has not passed since the last change
        """
        if self._validated is None:
            raise NotValidatedError()
        return AlloySerializer(header=header).render(self._validated)

    def write(self, path: Union[str, Path], backup_count: int = 0) -> Path:
        """
        Serialize and atomically write the configuration to ``path``.

        Args:
            path: Destination file
            backup_count: Timestamped backups of the previous file to keep (0 disables)

        Returns:
            Path written
        """
        text = self.serialize()
        return ConfigWriter(path, backup_count=backup_count).write(text)

    # ---------- helpers ----------

    def _require(self, handle: NodeHandle) -> _PendingNode:
        if not isinstance(handle, NodeHandle) or handle.builder_id != self.builder_id:
            raise UnknownNodeError(getattr(handle, "name", repr(handle)))
        pending = self._nodes.get(handle.name)
        if pending is None:
            raise UnknownNodeError(handle.name, "node is no longer part of this builder")
        return pending

    def _add_edge(
        self, pending: _PendingNode, target: str, signal: Union[SignalKind, str]
    ) -> None:
        try:
            signal = SignalKind(signal)
        except ValueError:
            raise InvalidParamsError(f"Unknown signal kind: {signal!r}")
        if not isinstance(target, str) or not target:
            raise InvalidParamsError(
                f"Edge from {pending.name!r} needs a target node name, got {target!r}"
            )

        edge = Edge(target=target, signal=signal)
        if edge in pending.edges:
            logger.debug(f"Edge {pending.name} -{signal.value}-> {target} already present")
            return
        pending.edges.append(edge)
        self._invalidate()

    def _invalidate(self) -> None:
        self._validated = None


def _check_text(value: Any, context: str) -> None:
    """Reject strings that cannot be written as UTF-8 (lone surrogates from raw bytes)."""
    if isinstance(value, str):
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise InvalidParamsError(f"{context} is not valid UTF-8 text: {value!r}")
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_text(key, context)
            _check_text(item, context)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_text(item, context)
