"""
Tests for Alloy configuration rendering.
"""

import pytest

from alloy_pipeline.builder import PipelineBuilder
from alloy_pipeline.errors import InvalidParamsError
from alloy_pipeline.models import Attribute, NodeKind, SignalKind
from alloy_pipeline.serializer import HEADER, format_value, quote, render_graph


class TestQuote:
    """Test string literal escaping."""

    def test_plain(self):
        """Ordinary text is only wrapped in quotes."""
        assert quote("Intel Xeon E-2236") == '"Intel Xeon E-2236"'

    def test_escapes(self):
        """Quotes, backslashes and newlines are escaped."""
        assert quote('a"b\\c\nd') == '"a\\"b\\\\c\\nd"'
        assert quote("tab\there\r") == '"tab\\there\\r"'

    def test_control_characters(self):
        """Other control characters become unicode escapes."""
        assert quote("a\x01b") == '"a\\u0001b"'

    def test_lone_surrogate_rejected(self):
        """Text that cannot be encoded is refused."""
        with pytest.raises(InvalidParamsError):
            quote("gpu \udcff")

    def test_unicode_kept(self):
        """Non-ASCII text is kept as is."""
        assert quote("Größe") == '"Größe"'


class TestFormatValue:
    """Test parameter value formatting."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, "true"),
            (False, "false"),
            (10, "10"),
            (1.5, "1.5"),
            ("x", '"x"'),
            (["a", "b"], '["a", "b"]'),
            ({"__address__": "localhost:9100"}, '{ "__address__" = "localhost:9100" }'),
            ({}, "{}"),
        ],
    )
    def test_values(self, value, expected):
        """Each value type has one rendering."""
        assert format_value(value) == expected

    def test_unsupported(self):
        """Unsupported types are a programming error."""
        with pytest.raises(TypeError):
            format_value(object())


class TestRender:
    """Test full document rendering."""

    def test_linear_pipeline(self, linear_builder):
        """A receiver, processor and exporter chain renders exactly."""
        linear_builder.validate()
        expected = """\
otelcol.receiver.otlp "proxmox" {
  http {
    endpoint = "0.0.0.0:4318"
  }
  output {
    metrics = [otelcol.processor.attributes.metrics.input]
  }
}

otelcol.processor.attributes "metrics" {
  actions = [
    { key = "host.name", value = "pve1", action = "insert" },
  ]
  output {
    metrics = [otelcol.exporter.otlp.external.input]
  }
}

otelcol.exporter.otlp "external" {
  client {
    endpoint = "collector.example.com:4317"
    tls {
      insecure = true
    }
  }
}
"""
        assert linear_builder.serialize(header=False) == expected

    def test_header(self, linear_builder):
        """The banner comes first by default."""
        linear_builder.validate()
        text = linear_builder.serialize()
        assert text.startswith(HEADER + "\n\n")
        assert render_graph(linear_builder.validate()) == text

    def test_hostile_attribute_value(self, builder):
        """Host values cannot break out of their string literal."""
        p = builder.add_node("p", NodeKind.PROCESSOR, "attributes")
        builder.add_attribute_action(p, Attribute.insert("host.cpu_model", 'Intel "Xeon"\n}'))
        builder.validate()
        text = builder.serialize(header=False)
        assert (
            '{ key = "host.cpu_model", value = "Intel \\"Xeon\\"\\n}", action = "insert" },'
        ) in text
        assert len(text.splitlines()) == 7

    def test_empty_actions(self, builder):
        """An attributes processor without actions still renders."""
        builder.add_node("p", NodeKind.PROCESSOR, "attributes")
        builder.validate()
        assert "  actions = []\n" in builder.serialize(header=False)

    def test_extract_action(self, builder):
        """Extract actions name pattern, capture and source field."""
        p = builder.add_node("p", NodeKind.PROCESSOR, "attributes")
        builder.add_attribute_action(
            p, Attribute.extract("vm.id", r"vmid=([0-9]+)", "log.body.MESSAGE")
        )
        builder.validate()
        assert (
            '{ key = "vm.id", pattern = "vmid=([0-9]+)", value = "$1", '
            'action = "extract", from = "log.body.MESSAGE" },'
        ) in builder.serialize(header=False)

    def test_action_order_is_output_order(self):
        """Swapping the call order swaps the rendered order."""

        def render(keys):
            b = PipelineBuilder()
            p = b.add_node("p", NodeKind.PROCESSOR, "attributes")
            for key in keys:
                b.add_attribute_action(p, Attribute.insert(key, "v"))
            b.validate()
            return b.serialize(header=False)

        first = render(["a.key", "b.key"])
        second = render(["b.key", "a.key"])
        assert first.index('"a.key"') < first.index('"b.key"')
        assert second.index('"b.key"') < second.index('"a.key"')

    def test_scrape_forward_to(self, builder):
        """Scrape blocks list targets and forward to receiver exports."""
        s = builder.add_node(
            "hardware", NodeKind.RECEIVER, "scrape", {"targets": ["localhost:9100"]}
        )
        p = builder.add_node("metrics", NodeKind.PROCESSOR, "attributes")
        builder.connect(s, SignalKind.METRICS, p)
        builder.validate()
        text = builder.serialize(header=False)
        assert 'prometheus.scrape "hardware" {' in text
        assert '    { "__address__" = "localhost:9100" },' in text
        assert 'scrape_interval = "60s"' in text
        assert "forward_to = [otelcol.processor.attributes.metrics.receiver]" in text

    def test_static_metric(self, builder):
        """Static gauges render their attributes as a map."""
        builder.add_node(
            "hardware_info",
            NodeKind.RECEIVER,
            "static",
            {"metric_name": "host.hardware_info", "attributes": {"host.name": "pve1"}},
        )
        builder.validate()
        text = builder.serialize(header=False)
        assert 'name = "host.hardware_info"' in text
        assert 'type = "gauge"' in text
        assert '      "host.name" = "pve1",' in text
        assert "value = 1" in text

    def test_multiple_signals(self, builder):
        """Each signal gets its own line in the output block."""
        r = builder.add_node("r", NodeKind.RECEIVER, "otlp", {"endpoint": "0.0.0.0:4318"})
        m = builder.add_node("m", NodeKind.PROCESSOR, "batch")
        lg = builder.add_node("lg", NodeKind.PROCESSOR, "batch")
        builder.connect(r, SignalKind.LOGS, lg)
        builder.connect(r, SignalKind.METRICS, m)
        builder.validate()
        text = builder.serialize(header=False)
        assert (
            "  output {\n"
            "    metrics = [otelcol.processor.batch.m.input]\n"
            "    logs = [otelcol.processor.batch.lg.input]\n"
            "  }\n"
        ) in text

    def test_description_comment(self, builder):
        """Descriptions render as comments above the block."""
        builder.add_node(
            "b", NodeKind.PROCESSOR, "batch", description="Batch processor for logs"
        )
        builder.validate()
        assert builder.serialize(header=False).startswith(
            '// Batch processor for logs\notelcol.processor.batch "b" {'
        )
