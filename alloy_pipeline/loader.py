"""
Declarative pipeline documents.

A pipeline can be described in YAML instead of code:

    nodes:
      - name: proxmox
        kind: receiver
        type: otlp
        params: {endpoint: "0.0.0.0:4318"}
        forward:
          metrics: [batch]
      - name: batch
        kind: processor
        type: batch
        forward:
          metrics: [external]
      - name: external
        kind: exporter
        type: otlp
        params: {endpoint: "collector.example.com:4317"}

Edges may name nodes declared further down the document. Names that
never get declared are reported by validate().
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from alloy_pipeline.builder import PipelineBuilder
from alloy_pipeline.errors import InvalidParamsError
from alloy_pipeline.models import Attribute, NodeKind, SignalKind

logger = logging.getLogger(__name__)


class NodeSpec(BaseModel):
    """One node entry of a pipeline document."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str
    kind: NodeKind
    type_tag: str = Field(..., alias="type")
    description: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)
    inputs: Optional[List[SignalKind]] = None
    outputs: Optional[List[SignalKind]] = None
    actions: List[Dict[str, Any]] = Field(default_factory=list)
    forward: Dict[SignalKind, List[str]] = Field(default_factory=dict)


class PipelineDocument(BaseModel):
    """Top level of a pipeline document."""

    model_config = ConfigDict(extra="forbid")

    nodes: List[NodeSpec] = Field(default_factory=list)


def build_from_document(data: Any) -> PipelineBuilder:
    """
    Replay a parsed pipeline document as builder calls.

    Args:
        data: Parsed YAML (a mapping with a ``nodes`` list)

    Returns:
        Builder holding the pipeline, not yet validated

    Raises:
        InvalidParamsError: If the document structure is invalid
    """
    try:
        document = PipelineDocument.model_validate(data or {})
    except ValidationError as e:
        raise InvalidParamsError(f"Invalid pipeline document: {e}")

    builder = PipelineBuilder()
    handles = {}
    for entry in document.nodes:
        handles[entry.name] = builder.add_node(
            entry.name,
            entry.kind,
            entry.type_tag,
            entry.params,
            inputs=entry.inputs,
            outputs=entry.outputs,
            description=entry.description,
        )

    for entry in document.nodes:
        for raw in entry.actions:
            try:
                action = Attribute.model_validate(raw)
            except ValidationError as e:
                raise InvalidParamsError(f"Invalid attribute action on {entry.name!r}: {e}")
            builder.add_attribute_action(handles[entry.name], action)

        for signal, targets in entry.forward.items():
            for target in targets:
                builder.connect_by_name(entry.name, signal, target)

    logger.info(f"Loaded pipeline document with {len(document.nodes)} nodes")
    return builder


def load_pipeline_text(text: str) -> PipelineBuilder:
    """Parse a YAML pipeline document from a string."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidParamsError(f"Failed to parse pipeline YAML: {e}")
    return build_from_document(data)


def load_pipeline(path: Union[str, Path]) -> PipelineBuilder:
    """Load a YAML pipeline document from a file."""
    path = Path(path)
    logger.debug(f"Loading pipeline document from {path}")
    return load_pipeline_text(path.read_text(encoding="utf-8"))
