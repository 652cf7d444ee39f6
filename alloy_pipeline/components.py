"""
Registry of pipeline component types.

Each component type is identified by a (kind, type_tag) pair and knows
its Alloy block name, its parameter schema, and which signals it can
accept and emit.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from alloy_pipeline.errors import InvalidParamsError
from alloy_pipeline.models import NodeKind, SignalKind

BOTH_SIGNALS = (SignalKind.METRICS, SignalKind.LOGS)


# ============================================================================
# PARAMETER SCHEMAS
# ============================================================================


class ComponentParams(BaseModel):
    """Base for component parameter schemas. Unknown parameters are rejected."""

    model_config = ConfigDict(extra="forbid")


class OtlpReceiverParams(ComponentParams):
    endpoint: str = Field(..., min_length=1, description="Listen address, host:port")
    protocol: Literal["http", "grpc"] = "http"


class JournaldReceiverParams(ComponentParams):
    units: List[str] = Field(default_factory=list, description="Restrict to these systemd units")
    priority: Optional[str] = Field(None, description="Minimum journal priority")


class ScrapeParams(ComponentParams):
    targets: List[str] = Field(..., min_length=1, description="Scrape addresses, host:port")
    scrape_interval: str = "60s"
    job_name: Optional[str] = None

    @field_validator("targets")
    @classmethod
    def _targets_not_blank(cls, value: List[str]) -> List[str]:
        if any(not target.strip() for target in value):
            raise ValueError("scrape targets must not be empty")
        return value


class StaticMetricParams(ComponentParams):
    metric_name: str = Field(..., min_length=1)
    metric_type: Literal["gauge", "sum"] = "gauge"
    unit: str = "1"
    value: Union[int, float] = 1
    attributes: Dict[str, str] = Field(default_factory=dict)


class AttributesProcessorParams(ComponentParams):
    """The attributes processor is configured through attribute actions only."""


class BatchProcessorParams(ComponentParams):
    timeout: Optional[str] = None
    send_batch_size: Optional[int] = Field(None, ge=1)


class OtlpExporterParams(ComponentParams):
    endpoint: str = Field(..., description="Collector address, host:port")
    insecure: bool = True

    @field_validator("endpoint")
    @classmethod
    def _endpoint_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("exporter endpoint must not be empty")
        return value


# ============================================================================
# COMPONENT TYPES
# ============================================================================


@dataclass(frozen=True)
class ComponentType:
    """Static description of one supported component."""

    kind: NodeKind
    type_tag: str
    block: str
    params_model: Type[ComponentParams]
    inputs: Tuple[SignalKind, ...] = ()
    outputs: Tuple[SignalKind, ...] = ()
    # prometheus.* components push with forward_to instead of an output block
    forward_to: bool = False
    accepts_actions: bool = False

    def validate_params(self, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate parameters against this component's schema.

        Args:
            params: Raw parameters supplied by the caller

        Returns:
            Normalized parameters with defaults filled in

        Raises:
            InvalidParamsError: If a required field is missing or a value is malformed
        """
        try:
            model = self.params_model.model_validate(params or {})
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'params'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidParamsError(
                f"Invalid params for {self.kind.value} {self.type_tag!r}: {problems}"
            )
        return model.model_dump()

    def check_signals(
        self, declared: Optional[Iterable[SignalKind]], direction: str
    ) -> Tuple[SignalKind, ...]:
        """
        Resolve declared input or output signals for a node.

        Declarations default to everything the component supports and
        must be a subset of it.
        """
        supported = self.inputs if direction == "input" else self.outputs
        if declared is None:
            return supported

        resolved = []
        for value in declared:
            try:
                signal = SignalKind(value)
            except ValueError:
                raise InvalidParamsError(f"Unknown signal kind: {value!r}")
            if signal not in supported:
                raise InvalidParamsError(
                    f"{self.kind.value} {self.type_tag!r} does not support "
                    f"{signal.value} {direction}"
                )
            if signal not in resolved:
                resolved.append(signal)
        return tuple(resolved)


COMPONENTS: Dict[Tuple[NodeKind, str], ComponentType] = {
    (c.kind, c.type_tag): c
    for c in (
        ComponentType(
            kind=NodeKind.RECEIVER,
            type_tag="otlp",
            block="otelcol.receiver.otlp",
            params_model=OtlpReceiverParams,
            outputs=BOTH_SIGNALS,
        ),
        ComponentType(
            kind=NodeKind.RECEIVER,
            type_tag="journald",
            block="otelcol.receiver.journald",
            params_model=JournaldReceiverParams,
            outputs=(SignalKind.LOGS,),
        ),
        ComponentType(
            kind=NodeKind.RECEIVER,
            type_tag="scrape",
            block="prometheus.scrape",
            params_model=ScrapeParams,
            outputs=(SignalKind.METRICS,),
            forward_to=True,
        ),
        ComponentType(
            kind=NodeKind.RECEIVER,
            type_tag="static",
            block="otelcol.receiver.static",
            params_model=StaticMetricParams,
            outputs=(SignalKind.METRICS,),
        ),
        ComponentType(
            kind=NodeKind.PROCESSOR,
            type_tag="attributes",
            block="otelcol.processor.attributes",
            params_model=AttributesProcessorParams,
            inputs=BOTH_SIGNALS,
            outputs=BOTH_SIGNALS,
            accepts_actions=True,
        ),
        ComponentType(
            kind=NodeKind.PROCESSOR,
            type_tag="batch",
            block="otelcol.processor.batch",
            params_model=BatchProcessorParams,
            inputs=BOTH_SIGNALS,
            outputs=BOTH_SIGNALS,
        ),
        ComponentType(
            kind=NodeKind.EXPORTER,
            type_tag="otlp",
            block="otelcol.exporter.otlp",
            params_model=OtlpExporterParams,
            inputs=BOTH_SIGNALS,
        ),
        ComponentType(
            kind=NodeKind.EXPORTER,
            type_tag="otlphttp",
            block="otelcol.exporter.otlphttp",
            params_model=OtlpExporterParams,
            inputs=BOTH_SIGNALS,
        ),
    )
}


def resolve_component(kind: Union[NodeKind, str], type_tag: str) -> ComponentType:
    """
    Look up a component type.

    Raises:
        InvalidParamsError: If the kind or the (kind, type_tag) pair is unknown
    """
    try:
        kind = NodeKind(kind)
    except ValueError:
        raise InvalidParamsError(f"Unknown node kind: {kind!r}")

    component = COMPONENTS.get((kind, type_tag))
    if component is None:
        known = ", ".join(sorted(tag for k, tag in COMPONENTS if k == kind))
        raise InvalidParamsError(f"Unknown {kind.value} type {type_tag!r} (supported: {known})")
    return component
