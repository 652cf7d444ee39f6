"""
Standard pipeline for a Proxmox VE host.

Collects Proxmox OTLP metrics, journald logs, node_exporter metrics and
a static host.hardware_info gauge, tags them with the host attributes
the operator selected, and forwards everything to one external OTLP
collector. Which nodes and attributes are included is decided here;
the builder only records the calls.
"""

import logging
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from alloy_pipeline.builder import PipelineBuilder
from alloy_pipeline.errors import InvalidParamsError
from alloy_pipeline.models import Attribute, NodeKind, SignalKind
from alloy_pipeline.settings import ProxmoxSettings

logger = logging.getLogger(__name__)

# Host attributes an operator can choose to attach, in prompt order
HOST_ATTRIBUTES = (
    "host.name",
    "host.os",
    "host.kernel",
    "host.pve_version",
    "host.cpu_model",
    "host.gpu_model",
    "host.memory_total",
    "host.disk_total",
    "host.network_interface",
    "host.proxmox_cluster",
    "host.bios_version",
)

# Value used for optional attributes the host could not resolve
MISSING_VALUE = "none"

# Journal fields copied verbatim into log resource attributes
LOG_FIELD_ATTRIBUTES = (
    ("service.name", "log.body._SYSTEMD_UNIT"),
    ("container.id", "log.body._CONTAINER_ID"),
)

# VM (QEMU) and container (LXC) identifiers parsed out of journal messages
GUEST_EXTRACTIONS = (
    ("vm.id", r"vmid=([0-9]+)"),
    ("vm.name", r"vm: ([^ ]+)"),
    ("ct.id", r"CT ([0-9]+)"),
    ("ct.name", r"lxc-start ([^ ]+)"),
)
MESSAGE_FIELD = "log.body.MESSAGE"

HARDWARE_INFO_METRIC = "host.hardware_info"


class SelectedAttribute(BaseModel):
    """A host attribute chosen by the operator, with its resolved value."""

    name: str = Field(..., description="One of HOST_ATTRIBUTES")
    value: Optional[str] = Field(None, description="Value resolved by host introspection")
    optional: bool = Field(False, description="Fall back to 'none' when no value is available")


def resolve_attributes(selected: Iterable[SelectedAttribute]) -> Dict[str, str]:
    """
    Turn selected attributes into an ordered key/value mapping.

    Args:
        selected: Attributes in selection order

    Returns:
        Mapping of attribute name to value, in first-selection order

    Raises:
        InvalidParamsError: For unknown attribute names, or a missing value on
            an attribute not marked optional
    """
    resolved: Dict[str, str] = {}
    for attribute in selected:
        if attribute.name not in HOST_ATTRIBUTES:
            raise InvalidParamsError(
                f"Unknown host attribute {attribute.name!r} "
                f"(supported: {', '.join(HOST_ATTRIBUTES)})"
            )
        if attribute.name in resolved:
            logger.warning(f"Host attribute {attribute.name} selected more than once, ignoring")
            continue

        value = attribute.value
        if value is None:
            if not attribute.optional:
                raise InvalidParamsError(f"No value resolved for host attribute {attribute.name}")
            logger.info(f"No value for {attribute.name}, using {MISSING_VALUE!r}")
            value = MISSING_VALUE
        resolved[attribute.name] = value
    return resolved


def build_proxmox_pipeline(
    selected: Iterable[SelectedAttribute],
    exporter_endpoint: Optional[str],
    options: Optional[ProxmoxSettings] = None,
    exporter_protocol: str = "grpc",
    insecure: bool = True,
) -> PipelineBuilder:
    """
    Issue the builder calls for the Proxmox host pipeline.

    Args:
        selected: Host attributes to attach to logs and metrics
        exporter_endpoint: External collector host:port, must not be empty
        options: Pipeline shape; defaults to ProxmoxSettings()
        exporter_protocol: "grpc" for otlp, "http" for otlphttp
        insecure: Disable TLS verification on the exporter

    Returns:
        Builder holding the pipeline, not yet validated
    """
    options = options or ProxmoxSettings()
    attributes = resolve_attributes(selected)
    static_attributes = dict(attributes)
    static_attributes["node.type"] = options.node_type

    builder = PipelineBuilder()
    metrics, logs = SignalKind.METRICS, SignalKind.LOGS

    # Nodes are added in the order they should appear in the document
    proxmox = builder.add_node(
        "proxmox",
        NodeKind.RECEIVER,
        "otlp",
        {"endpoint": options.otlp_endpoint, "protocol": "http"},
        outputs=[metrics],
        description="Receive OTLP metrics from Proxmox (via HTTP)",
    )
    journal = None
    if options.collect_journal:
        journal = builder.add_node(
            "journal",
            NodeKind.RECEIVER,
            "journald",
            description="Collect logs from journald (includes Proxmox, LXC, and VM related logs)",
        )
    hardware = None
    if options.scrape_node_exporter:
        hardware = builder.add_node(
            "hardware",
            NodeKind.RECEIVER,
            "scrape",
            {
                "targets": [options.node_exporter_target],
                "scrape_interval": options.scrape_interval,
            },
            description="Scrape generic dynamic hardware metrics from node_exporter",
        )
    metric_attributes = builder.add_node(
        "metrics",
        NodeKind.PROCESSOR,
        "attributes",
        inputs=[metrics],
        outputs=[metrics],
        description="Add selected host-specific attributes to Proxmox and node_exporter metrics",
    )
    log_attributes = None
    if journal:
        log_attributes = builder.add_node(
            "logs",
            NodeKind.PROCESSOR,
            "attributes",
            inputs=[logs],
            outputs=[logs],
            description="Add resource, VM, LXC and host-specific attributes to logs",
        )
    hardware_info = None
    if options.hardware_info:
        hardware_info = builder.add_node(
            "hardware_info",
            NodeKind.RECEIVER,
            "static",
            {"metric_name": HARDWARE_INFO_METRIC, "attributes": static_attributes},
            description="Static gauge carrying the selected host hardware attributes",
        )
    metrics_batch = builder.add_node(
        "metrics_batch",
        NodeKind.PROCESSOR,
        "batch",
        inputs=[metrics],
        outputs=[metrics],
        description="Batch processor for Proxmox and node_exporter metrics",
    )
    logs_batch = None
    if log_attributes:
        logs_batch = builder.add_node(
            "logs_batch",
            NodeKind.PROCESSOR,
            "batch",
            inputs=[logs],
            outputs=[logs],
            description="Batch processor for logs",
        )
    hardware_batch = None
    if hardware_info:
        hardware_batch = builder.add_node(
            "hardware_metrics",
            NodeKind.PROCESSOR,
            "batch",
            inputs=[metrics],
            outputs=[metrics],
            description="Batch processor for static hardware metrics",
        )
    external = builder.add_node(
        "external",
        NodeKind.EXPORTER,
        "otlphttp" if exporter_protocol == "http" else "otlp",
        {"endpoint": exporter_endpoint, "insecure": insecure},
        description="Export to external OTLP collector",
    )

    # Edges
    builder.connect(proxmox, metrics, metric_attributes)
    if hardware:
        builder.connect(hardware, metrics, metric_attributes)
    builder.connect(metric_attributes, metrics, metrics_batch)
    builder.connect(metrics_batch, metrics, external)
    if journal and log_attributes and logs_batch:
        builder.connect(journal, logs, log_attributes)
        builder.connect(log_attributes, logs, logs_batch)
        builder.connect(logs_batch, logs, external)
    if hardware_info and hardware_batch:
        builder.connect(hardware_info, metrics, hardware_batch)
        builder.connect(hardware_batch, metrics, external)

    # Attribute actions
    for action in _metric_actions(attributes, options.node_type):
        builder.add_attribute_action(metric_attributes, action)
    if log_attributes:
        for action in _log_actions(attributes, options.node_type):
            builder.add_attribute_action(log_attributes, action)

    logger.info(
        f"Built Proxmox pipeline with {len(attributes)} host attributes "
        f"({', '.join(attributes) or 'none selected'})"
    )
    return builder


def _metric_actions(attributes: Dict[str, str], node_type: str) -> List[Attribute]:
    actions = [Attribute.insert(key, value) for key, value in attributes.items()]
    actions.append(Attribute.insert("node.type", node_type))
    return actions


def _log_actions(attributes: Dict[str, str], node_type: str) -> List[Attribute]:
    actions = [Attribute.insert(key, value) for key, value in attributes.items()]
    actions.append(Attribute.insert("node.type", node_type))
    for key, field in LOG_FIELD_ATTRIBUTES:
        actions.append(Attribute.extract(key, r"^(.+)$", field))
    for key, pattern in GUEST_EXTRACTIONS:
        actions.append(Attribute.extract(key, pattern, MESSAGE_FIELD))
    return actions
