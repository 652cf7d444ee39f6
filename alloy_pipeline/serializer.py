"""
Alloy configuration rendering.

Renders a validated PipelineGraph as Alloy configuration text. Every
string value is emitted as a quoted, escaped literal so host-provided
values (CPU or GPU model strings, cluster names) can never break out of
their position in the document.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping

from alloy_pipeline.components import ComponentType, resolve_component
from alloy_pipeline.errors import InvalidParamsError
from alloy_pipeline.models import Attribute, AttributeAction, Node, PipelineGraph, SignalKind
from alloy_pipeline.validation import topological_order

logger = logging.getLogger(__name__)

HEADER = "// Generated by alloy-pipeline. Manual changes are overwritten on the next run."

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def quote(value: str) -> str:
    """Return ``value`` as a double-quoted Alloy string literal."""
    out = []
    for char in value:
        if char in _ESCAPES:
            out.append(_ESCAPES[char])
        elif 0xD800 <= ord(char) <= 0xDFFF:
            raise InvalidParamsError(f"Cannot render non-UTF-8 text: {value!r}")
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            out.append(f"\\u{ord(char):04x}")
        else:
            out.append(char)
    return '"' + "".join(out) + '"'


def format_value(value: Any) -> str:
    """Format a parameter value as an Alloy expression."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        if not value:
            return "{}"
        pairs = ", ".join(f"{quote(str(k))} = {format_value(v)}" for k, v in value.items())
        return "{ " + pairs + " }"
    raise TypeError(f"Cannot render value of type {type(value).__name__}")


class _Lines:
    """Indented line accumulator."""

    def __init__(self, indent: str = "  "):
        self.indent = indent
        self.depth = 0
        self.lines: List[str] = []

    def add(self, text: str = "") -> None:
        self.lines.append(f"{self.indent * self.depth}{text}" if text else "")

    @contextmanager
    def block(self, header: str) -> Iterator[None]:
        self.add(f"{header} {{")
        self.depth += 1
        yield
        self.depth -= 1
        self.add("}")

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


class AlloySerializer:
    """Deterministic Alloy configuration renderer."""

    def __init__(self, header: bool = True):
        """
        Initialize serializer.

        Args:
            header: Emit the generated-file banner comment at the top
        """
        self.header = header
        self._bodies: Dict[str, Callable[[_Lines, Node], None]] = {
            "otelcol.receiver.otlp": self._otlp_receiver_body,
            "otelcol.receiver.journald": self._journald_body,
            "prometheus.scrape": self._scrape_body,
            "otelcol.receiver.static": self._static_body,
            "otelcol.processor.attributes": self._attributes_body,
            "otelcol.processor.batch": self._batch_body,
            "otelcol.exporter.otlp": self._otlp_exporter_body,
            "otelcol.exporter.otlphttp": self._otlp_exporter_body,
        }

    def render(self, graph: PipelineGraph) -> str:
        """
        Render a graph that has passed validation.

        Nodes are emitted producers first, ties broken by insertion order.

        Args:
            graph: Validated pipeline graph

        Returns:
            Complete Alloy configuration document
        """
        components = {
            node.name: resolve_component(node.kind, node.type_tag) for node in graph.nodes
        }
        out = _Lines()
        if self.header:
            out.add(HEADER)

        for node in topological_order(graph):
            if out.lines:
                out.add()
            self._render_node(out, node, components)

        text = out.text()
        logger.debug(f"Rendered {len(graph)} nodes into {len(text)} bytes")
        return text

    def _render_node(
        self, out: _Lines, node: Node, components: Dict[str, ComponentType]
    ) -> None:
        component = components[node.name]
        if node.description:
            for line in node.description.splitlines():
                out.add(f"// {line}".rstrip())

        with out.block(f"{component.block} {quote(node.name)}"):
            self._bodies[component.block](out, node)
            if component.forward_to:
                refs = [
                    self._reference(components, target, "receiver")
                    for target in node.targets(SignalKind.METRICS)
                ]
                out.add(f"forward_to = [{', '.join(refs)}]")
            elif component.outputs:
                self._render_output(out, node, components)

    def _render_output(
        self, out: _Lines, node: Node, components: Dict[str, ComponentType]
    ) -> None:
        with out.block("output"):
            for signal in SignalKind:
                targets = node.targets(signal)
                if targets:
                    refs = ", ".join(
                        self._reference(components, target, "input") for target in targets
                    )
                    out.add(f"{signal.value} = [{refs}]")

    @staticmethod
    def _reference(components: Dict[str, ComponentType], name: str, export: str) -> str:
        return f"{components[name].block}.{name}.{export}"

    # ---------- component bodies ----------

    def _otlp_receiver_body(self, out: _Lines, node: Node) -> None:
        with out.block(node.params["protocol"]):
            out.add(f"endpoint = {quote(node.params['endpoint'])}")

    def _journald_body(self, out: _Lines, node: Node) -> None:
        if node.params.get("units"):
            out.add(f"units = {format_value(node.params['units'])}")
        if node.params.get("priority"):
            out.add(f"priority = {quote(node.params['priority'])}")

    def _scrape_body(self, out: _Lines, node: Node) -> None:
        out.add("targets = [")
        out.depth += 1
        for target in node.params["targets"]:
            out.add(f"{format_value({'__address__': target})},")
        out.depth -= 1
        out.add("]")
        if node.params.get("job_name"):
            out.add(f"job_name = {quote(node.params['job_name'])}")
        out.add(f"scrape_interval = {quote(node.params['scrape_interval'])}")

    def _static_body(self, out: _Lines, node: Node) -> None:
        params = node.params
        with out.block("metric"):
            out.add(f"name = {quote(params['metric_name'])}")
            out.add(f"type = {quote(params['metric_type'])}")
            out.add(f"unit = {quote(params['unit'])}")
            if params["attributes"]:
                with out.block("attributes ="):
                    for key, value in params["attributes"].items():
                        out.add(f"{quote(key)} = {quote(value)},")
            else:
                out.add("attributes = {}")
            out.add(f"value = {format_value(params['value'])}")

    def _attributes_body(self, out: _Lines, node: Node) -> None:
        if not node.actions:
            out.add("actions = []")
            return
        out.add("actions = [")
        out.depth += 1
        for action in node.actions:
            out.add(f"{self._format_action(action)},")
        out.depth -= 1
        out.add("]")

    @staticmethod
    def _format_action(action: Attribute) -> str:
        fields = [f"key = {quote(action.key)}"]
        if action.action == AttributeAction.INSERT:
            fields.append(f"value = {quote(action.value)}")
            fields.append(f"action = {quote(action.action.value)}")
        else:
            fields.append(f"pattern = {quote(action.pattern)}")
            fields.append(f"value = {quote(action.capture)}")
            fields.append(f"action = {quote(action.action.value)}")
            fields.append(f"from = {quote(action.source)}")
        return "{ " + ", ".join(fields) + " }"

    def _batch_body(self, out: _Lines, node: Node) -> None:
        if node.params.get("timeout"):
            out.add(f"timeout = {quote(node.params['timeout'])}")
        if node.params.get("send_batch_size"):
            out.add(f"send_batch_size = {node.params['send_batch_size']}")

    def _otlp_exporter_body(self, out: _Lines, node: Node) -> None:
        with out.block("client"):
            out.add(f"endpoint = {quote(node.params['endpoint'])}")
            with out.block("tls"):
                out.add(f"insecure = {format_value(node.params['insecure'])}")


def render_graph(graph: PipelineGraph, header: bool = True) -> str:
    """Render ``graph`` with a default serializer."""
    return AlloySerializer(header=header).render(graph)
