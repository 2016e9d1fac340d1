"""
CLI module for hostbridge.

Provides a command-line interface for inspecting and calling the tools.
"""

from hostbridge.cli.main import cli

__all__ = ["cli"]
