"""
Pytest configuration and fixtures for alloy-pipeline tests.
"""

import logging

import pytest

from alloy_pipeline.builder import PipelineBuilder
from alloy_pipeline.models import Attribute, NodeKind, SignalKind
from alloy_pipeline.settings import GeneratorSettings


@pytest.fixture
def builder():
    """Empty pipeline builder."""
    return PipelineBuilder()


@pytest.fixture
def linear_builder():
    """Receiver -> attributes -> exporter, one insert action, not yet validated."""
    b = PipelineBuilder()
    receiver = b.add_node(
        "proxmox", NodeKind.RECEIVER, "otlp", {"endpoint": "0.0.0.0:4318", "protocol": "http"}
    )
    processor = b.add_node("metrics", NodeKind.PROCESSOR, "attributes")
    exporter = b.add_node(
        "external", NodeKind.EXPORTER, "otlp", {"endpoint": "collector.example.com:4317"}
    )
    b.connect(receiver, SignalKind.METRICS, processor)
    b.connect(processor, SignalKind.METRICS, exporter)
    b.add_attribute_action(processor, Attribute.insert("host.name", "pve1"))
    return b


@pytest.fixture
def settings_file(tmp_path):
    """Default settings saved to a temporary file, output redirected into tmp_path."""
    settings = GeneratorSettings()
    settings.output.path = str(tmp_path / "alloy" / "config.alloy")
    settings.logging.directory = str(tmp_path / "logs")
    path = tmp_path / "settings.yml"
    settings.save(path)
    return path


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers and level after a test reconfigures logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    updates = logging.getLogger("alloy_pipeline.writer")
    updates_handlers = list(updates.handlers)
    updates_level = updates.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    for handler in updates.handlers:
        if handler not in updates_handlers:
            handler.close()
    updates.handlers[:] = updates_handlers
    updates.setLevel(updates_level)
