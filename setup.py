#!/usr/bin/env python3
"""
Setup script for alloy-pipeline.
Installs the pipeline builder, the Proxmox pipeline and the CLI.
"""

from setuptools import setup, find_packages

# Most configuration is in pyproject.toml
# This file exists for compatibility with older pip versions

setup(
    packages=find_packages(include=["alloy_pipeline", "alloy_pipeline.*"]),
)
