"""CLI utilities for infrapipe stacks."""

from infrapipe.cli.deploy import DeploymentCLI
from infrapipe.cli.main import cli

__all__ = [
    "DeploymentCLI",
    "cli",
]
