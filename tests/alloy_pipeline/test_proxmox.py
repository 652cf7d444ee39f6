"""
Tests for the standard Proxmox host pipeline.
"""

import pytest

from alloy_pipeline.errors import InvalidParamsError
from alloy_pipeline.models import AttributeAction
from alloy_pipeline.proxmox import (
    HOST_ATTRIBUTES,
    MISSING_VALUE,
    SelectedAttribute,
    build_proxmox_pipeline,
    resolve_attributes,
)
from alloy_pipeline.settings import ProxmoxSettings
from alloy_pipeline.validation import topological_order

ENDPOINT = "collector.example.com:4317"


@pytest.fixture
def selected():
    return [
        SelectedAttribute(name="host.name", value="pve1"),
        SelectedAttribute(name="host.kernel", value="6.8.12-4-pve"),
        SelectedAttribute(name="host.gpu_model", optional=True),
    ]


class TestResolveAttributes:
    """Test host attribute selection."""

    def test_values_in_selection_order(self, selected):
        """Selected values come back in order; missing optionals become 'none'."""
        assert resolve_attributes(selected) == {
            "host.name": "pve1",
            "host.kernel": "6.8.12-4-pve",
            "host.gpu_model": MISSING_VALUE,
        }
        assert list(resolve_attributes(selected)) == ["host.name", "host.kernel", "host.gpu_model"]

    def test_unknown_attribute(self):
        """Attributes outside the known list are rejected."""
        with pytest.raises(InvalidParamsError, match="host.color"):
            resolve_attributes([SelectedAttribute(name="host.color", value="red")])

    def test_missing_required_value(self):
        """A required attribute without a value is rejected."""
        with pytest.raises(InvalidParamsError):
            resolve_attributes([SelectedAttribute(name="host.os")])

    def test_duplicates_keep_first(self):
        """Selecting an attribute twice keeps the first value."""
        resolved = resolve_attributes(
            [
                SelectedAttribute(name="host.name", value="pve1"),
                SelectedAttribute(name="host.name", value="pve2"),
            ]
        )
        assert resolved == {"host.name": "pve1"}

    def test_known_attributes(self):
        """Every documented host attribute is selectable."""
        assert "host.pve_version" in HOST_ATTRIBUTES
        assert "host.bios_version" in HOST_ATTRIBUTES
        assert len(HOST_ATTRIBUTES) == len(set(HOST_ATTRIBUTES))


class TestBuildProxmoxPipeline:
    """Test the generated Proxmox pipeline."""

    def test_node_order(self, selected):
        """Nodes render receivers first and the exporter last."""
        graph = build_proxmox_pipeline(selected, ENDPOINT).validate()
        assert [n.name for n in topological_order(graph)] == [
            "proxmox",
            "journal",
            "hardware",
            "metrics",
            "logs",
            "hardware_info",
            "metrics_batch",
            "logs_batch",
            "hardware_metrics",
            "external",
        ]

    def test_metric_actions(self, selected):
        """Metrics get the selected attributes and node.type."""
        graph = build_proxmox_pipeline(selected, ENDPOINT).validate()
        actions = graph.get("metrics").actions
        assert [(a.key, a.value) for a in actions] == [
            ("host.name", "pve1"),
            ("host.kernel", "6.8.12-4-pve"),
            ("host.gpu_model", "none"),
            ("node.type", "proxmox"),
        ]

    def test_log_actions(self, selected):
        """Logs also get field copies and guest identifiers."""
        graph = build_proxmox_pipeline(selected, ENDPOINT).validate()
        actions = graph.get("logs").actions
        assert [a.key for a in actions] == [
            "host.name",
            "host.kernel",
            "host.gpu_model",
            "node.type",
            "service.name",
            "container.id",
            "vm.id",
            "vm.name",
            "ct.id",
            "ct.name",
        ]
        vm_id = actions[6]
        assert vm_id.action == AttributeAction.EXTRACT
        assert vm_id.pattern == r"vmid=([0-9]+)"
        assert vm_id.source == "log.body.MESSAGE"

    def test_hardware_info_attributes(self, selected):
        """The static gauge carries the same attributes plus node.type."""
        graph = build_proxmox_pipeline(selected, ENDPOINT).validate()
        params = graph.get("hardware_info").params
        assert params["metric_name"] == "host.hardware_info"
        assert params["attributes"] == {
            "host.name": "pve1",
            "host.kernel": "6.8.12-4-pve",
            "host.gpu_model": "none",
            "node.type": "proxmox",
        }

    def test_rendered_document(self, selected):
        """The rendered document wires every stage to the exporter."""
        builder = build_proxmox_pipeline(selected, ENDPOINT)
        builder.validate()
        text = builder.serialize()
        assert 'otelcol.exporter.otlp "external" {' in text
        assert f'endpoint = "{ENDPOINT}"' in text
        assert "forward_to = [otelcol.processor.attributes.metrics.receiver]" in text
        assert "logs = [otelcol.processor.attributes.logs.input]" in text
        assert text.count("otelcol.exporter.otlp.external.input") == 3

    @pytest.mark.parametrize("endpoint", ["", "   ", None])
    def test_empty_endpoint(self, selected, endpoint):
        """An empty exporter endpoint is rejected."""
        with pytest.raises(InvalidParamsError):
            build_proxmox_pipeline(selected, endpoint)

    def test_http_exporter(self, selected):
        """The http protocol selects the otlphttp exporter."""
        builder = build_proxmox_pipeline(selected, ENDPOINT, exporter_protocol="http")
        builder.validate()
        assert 'otelcol.exporter.otlphttp "external" {' in builder.serialize()

    def test_minimal_shape(self):
        """Optional stages can be switched off."""
        options = ProxmoxSettings(
            collect_journal=False, scrape_node_exporter=False, hardware_info=False
        )
        graph = build_proxmox_pipeline([], ENDPOINT, options=options).validate()
        assert graph.names == ["proxmox", "metrics", "metrics_batch", "external"]
        assert [(a.key, a.value) for a in graph.get("metrics").actions] == [
            ("node.type", "proxmox")
        ]

    def test_custom_node_type(self):
        """node.type follows the settings."""
        options = ProxmoxSettings(node_type="pve-lab")
        graph = build_proxmox_pipeline([], ENDPOINT, options=options).validate()
        assert graph.get("metrics").actions[-1].value == "pve-lab"
