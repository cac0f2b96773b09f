# access_scout/__init__.py
"""
AccessScout package initializer.
Defines package version and exposes CLI.
"""
__version__ = "0.2.0"

# Expose CLI entry point
from access_scout.cli import cli as main_cli  # noqa: E402

__all__ = ["__version__", "main_cli"]
