"""
alloy-pipeline CLI entry point.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from alloy_pipeline import __version__
from alloy_pipeline.builder import PipelineBuilder
from alloy_pipeline.errors import InvalidParamsError, PipelineConfigError
from alloy_pipeline.loader import load_pipeline
from alloy_pipeline.logging_config import setup_logging as setup_full_logging
from alloy_pipeline.proxmox import HOST_ATTRIBUTES, SelectedAttribute, build_proxmox_pipeline
from alloy_pipeline.settings import DEFAULT_SETTINGS_PATH, GeneratorSettings
from alloy_pipeline.writer import ConfigWriter

logger = logging.getLogger(__name__)


def setup_logging(settings: GeneratorSettings, verbose: bool = False) -> None:
    """Setup logging, falling back to console-only when the log directory is not writable."""
    console_level = "DEBUG" if verbose else settings.logging.console_level

    log_dir = settings.logging.directory
    parent = Path(log_dir).parent
    if not os.access(log_dir if Path(log_dir).exists() else parent, os.W_OK):
        log_dir = str(Path.home() / ".local" / "log" / "alloy-pipeline")

    try:
        setup_full_logging(
            log_dir=log_dir,
            console_level=console_level,
            file_level=settings.logging.file_level,
            use_json=settings.logging.use_json,
        )
    except OSError:
        logging.basicConfig(
            level=getattr(logging, console_level),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler(sys.stderr)],
        )


def parse_attributes(assignments: List[str], optional: List[str]) -> List[SelectedAttribute]:
    """
    Turn ``--attribute name=value`` and ``--optional-attribute name`` flags into selections.

    An attribute named by both flags keeps its value and is marked optional.
    """
    selected: List[SelectedAttribute] = []
    optional_names = list(dict.fromkeys(optional))

    for assignment in assignments:
        name, sep, value = assignment.partition("=")
        if not sep or not name:
            raise InvalidParamsError(f"Expected NAME=VALUE, got {assignment!r}")
        try:
            selected.append(
                SelectedAttribute(name=name, value=value, optional=name in optional_names)
            )
        except ValidationError as e:
            raise InvalidParamsError(f"Invalid attribute {name!r}: {e}")

    given = {attribute.name for attribute in selected}
    for name in optional_names:
        if name not in given:
            selected.append(SelectedAttribute(name=name, optional=True))
    return selected


def load_settings(config_path: Optional[str]) -> GeneratorSettings:
    """Load settings from ``config_path``, or the default path when it exists."""
    if config_path:
        return GeneratorSettings.from_file(config_path)
    if Path(DEFAULT_SETTINGS_PATH).exists():
        return GeneratorSettings.from_file(DEFAULT_SETTINGS_PATH)
    return GeneratorSettings()


def emit(
    builder: PipelineBuilder, settings: GeneratorSettings, output: Optional[str], stdout: bool
) -> None:
    """Validate, serialize and write or print the pipeline."""
    builder.validate()
    text = builder.serialize(header=settings.output.header)

    if stdout:
        sys.stdout.write(text)
        return

    path = output or settings.output.path
    ConfigWriter(path, backup_count=settings.output.backup_count).write(text)
    print(f"Wrote Alloy configuration to {path}")
    print("Reload the agent to apply it: sudo systemctl restart alloy")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alloy-pipeline",
        description="Generate Grafana Alloy pipeline configuration for a Proxmox VE host",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate the standard Proxmox pipeline
  alloy-pipeline generate --endpoint collector.example.com:4317 \\
      --attribute host.name=pve1 --attribute host.kernel=6.8.12-4-pve

  # Preview without writing
  alloy-pipeline generate --endpoint collector.example.com:4317 --stdout

  # Render a pipeline described in YAML
  alloy-pipeline render pipeline.yml --output /etc/alloy/config.alloy
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help=f"Path to settings file (default: {DEFAULT_SETTINGS_PATH} if present)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Write a default settings file and exit",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate the settings file and exit"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    generate_parser = subparsers.add_parser("generate", help="Generate the Proxmox host pipeline")
    generate_parser.add_argument("--endpoint", "-e", help="External OTLP collector host:port")
    generate_parser.add_argument(
        "--attribute",
        "-a",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Host attribute to attach (repeatable)",
    )
    generate_parser.add_argument(
        "--optional-attribute",
        action="append",
        default=[],
        metavar="NAME",
        help="Host attribute to attach, defaulting to 'none' without a value (repeatable)",
    )
    generate_parser.add_argument(
        "--protocol", choices=["grpc", "http"], help="Exporter protocol (default from settings)"
    )
    generate_parser.add_argument("--output", "-o", help="Destination file (default from settings)")
    generate_parser.add_argument(
        "--stdout", action="store_true", help="Print the configuration instead of writing it"
    )

    render_parser = subparsers.add_parser("render", help="Render a YAML pipeline document")
    render_parser.add_argument("pipeline", help="Pipeline document")
    render_parser.add_argument("--output", "-o", help="Destination file (default from settings)")
    render_parser.add_argument(
        "--stdout", action="store_true", help="Print the configuration instead of writing it"
    )

    subparsers.add_parser("attributes", help="List selectable host attributes")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        path = args.config or DEFAULT_SETTINGS_PATH
        GeneratorSettings().save(path)
        print(f"Generated default settings at: {path}")
        return 0

    try:
        settings = load_settings(args.config)
    except PipelineConfigError as e:
        print(f"Settings invalid: {e}", file=sys.stderr)
        return 1

    if args.validate_config:
        if args.config or Path(DEFAULT_SETTINGS_PATH).exists():
            print(f"Settings valid: {args.config or DEFAULT_SETTINGS_PATH}")
        else:
            print(f"No settings file at {DEFAULT_SETTINGS_PATH}, using built-in defaults")
        return 0

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "attributes":
        for name in HOST_ATTRIBUTES:
            print(name)
        return 0

    setup_logging(settings, args.verbose)

    try:
        if args.command == "generate":
            endpoint = args.endpoint or settings.exporter.endpoint
            builder = build_proxmox_pipeline(
                parse_attributes(args.attribute, args.optional_attribute),
                endpoint,
                options=settings.proxmox,
                exporter_protocol=args.protocol or settings.exporter.protocol,
                insecure=settings.exporter.insecure,
            )
        else:
            builder = load_pipeline(args.pipeline)

        emit(builder, settings, args.output, args.stdout)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except PipelineConfigError as e:
        logger.error(f"Configuration generation failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, UnicodeError) as e:
        logger.error(f"I/O error: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
