"""
Generator settings.

Settings live in a YAML file with one section per concern. Every field
has a default, so a missing section or an empty file is valid; command
line flags override file values.
"""

import logging
from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from alloy_pipeline.errors import SettingsError
from alloy_pipeline.writer import DEFAULT_CONFIG_PATH

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = "/etc/alloy-pipeline/settings.yml"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class OutputSettings(BaseModel):
    """Where and how the generated document is written."""

    model_config = ConfigDict(extra="forbid")

    path: str = Field(DEFAULT_CONFIG_PATH, description="Alloy configuration file")
    backup_count: int = Field(3, ge=0, description="Timestamped backups to keep, 0 disables")
    header: bool = Field(True, description="Emit the generated-file banner")


class ExporterSettings(BaseModel):
    """External OTLP collector everything is forwarded to."""

    model_config = ConfigDict(extra="forbid")

    endpoint: Optional[str] = Field(None, description="Collector host:port")
    protocol: Literal["grpc", "http"] = Field("grpc", description="otlp (grpc) or otlphttp")
    insecure: bool = Field(True, description="Disable TLS verification")


class ProxmoxSettings(BaseModel):
    """Shape of the standard Proxmox host pipeline."""

    model_config = ConfigDict(extra="forbid")

    otlp_endpoint: str = Field("0.0.0.0:4318", description="Where Proxmox pushes OTLP metrics")
    node_exporter_target: str = Field("localhost:9100", description="node_exporter address")
    scrape_interval: str = "60s"
    node_type: str = Field("proxmox", description="Value of the node.type attribute")
    collect_journal: bool = True
    scrape_node_exporter: bool = True
    hardware_info: bool = Field(True, description="Emit the static host.hardware_info gauge")


class LoggingSettings(BaseModel):
    """Log destinations and levels."""

    model_config = ConfigDict(extra="forbid")

    directory: str = "/var/log/alloy-pipeline"
    console_level: LogLevel = "INFO"
    file_level: LogLevel = "DEBUG"
    use_json: bool = False


class GeneratorSettings(BaseModel):
    """Complete generator settings."""

    model_config = ConfigDict(extra="forbid")

    output: OutputSettings = Field(default_factory=OutputSettings)
    exporter: ExporterSettings = Field(default_factory=ExporterSettings)
    proxmox: ProxmoxSettings = Field(default_factory=ProxmoxSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "GeneratorSettings":
        """
        Load settings from a YAML file.

        Args:
            path: Settings file

        Returns:
            Parsed settings

        Raises:
            SettingsError: If the file is missing, not YAML, or fails validation
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise SettingsError(f"Settings file not found: {path}")
        except yaml.YAMLError as e:
            raise SettingsError(f"Failed to parse YAML in {path}: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SettingsError(f"Settings file {path} must contain a mapping")

        try:
            settings = cls.model_validate(data)
        except ValidationError as e:
            raise SettingsError(f"Invalid settings in {path}: {e}")

        logger.debug(f"Loaded settings from {path}")
        return settings

    def save(self, path: Union[str, Path]) -> None:
        """Write settings to a YAML file, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved settings to {path}")
