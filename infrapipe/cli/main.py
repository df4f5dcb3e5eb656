"""
infrapipe CLI - Command-line interface for the CI pipeline stacks.
"""

import json
import logging
import sys

import click
import yaml

from infrapipe.core.environment import DEFAULT_CONTEXT_FILE, load_context, resolve_environment
from infrapipe.core.stack import PipelineStack, define_pipeline_stack, synthesize
from infrapipe.errors import ConfigurationError, DeploymentError

context_option = click.option(
    "--context",
    "-c",
    "overrides",
    multiple=True,
    metavar="KEY=VALUE",
    help="Context value, e.g. -c env=dev (repeatable)",
)
config_option = click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"Context file (default: ./{DEFAULT_CONTEXT_FILE})",
)


def _define_stack(config_file: str | None, overrides: tuple[str, ...]) -> PipelineStack:
    """Resolve the environment and define its stack, exiting on bad configuration."""
    try:
        config = resolve_environment(load_context(config_file, overrides))
        return define_pipeline_stack(config)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """
    infrapipe - Continuous delivery pipeline for an infrastructure repository.

    Watches a repository branch and deploys its infrastructure project on
    every change.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@context_option
@config_option
@click.option("--format", type=click.Choice(["text", "json", "yaml"]), default="text")
def synth(overrides: tuple[str, ...], config_file: str | None, format: str):
    """
    Synthesize the pipeline topology for an environment.

    Example:
        infrapipe synth -c env=dev
        infrapipe synth -c env=prod --format json
    """
    stack = _define_stack(config_file, overrides)

    if format == "json":
        click.echo(json.dumps(synthesize(stack), indent=2))
    elif format == "yaml":
        click.echo(yaml.safe_dump(synthesize(stack), sort_keys=False))
    else:
        click.echo(f"Stack: {stack.name}")
        click.echo(stack.description)
        click.echo()
        click.echo(stack.pipeline.visualize())


@cli.command()
@context_option
@config_option
def validate(overrides: tuple[str, ...], config_file: str | None):
    """
    Validate the configuration and pipeline without deploying.

    Example:
        infrapipe validate -c env=dev
    """
    stack = _define_stack(config_file, overrides)
    try:
        stack.pipeline.validate()
    except ValueError as e:
        click.echo(f"✗ Pipeline '{stack.pipeline.name}' is invalid: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Pipeline '{stack.pipeline.name}' is valid")


@cli.command()
@context_option
@config_option
@click.option("--output", "-o", default="./.infrapipe", help="Directory for the Pulumi program")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.option("--preview-only", is_flag=True, help="Stop after pulumi preview")
def deploy(
    overrides: tuple[str, ...],
    config_file: str | None,
    output: str,
    yes: bool,
    preview_only: bool,
):
    """
    Deploy the pipeline stack with Pulumi.

    Example:
        infrapipe deploy -c env=dev
        infrapipe deploy -c env=prod --yes
    """
    from infrapipe.cli.deploy import DeploymentCLI

    stack = _define_stack(config_file, overrides)
    try:
        DeploymentCLI().deploy_stack(
            stack,
            output,
            context_file=config_file,
            overrides=overrides,
            auto_approve=yes,
            preview_only=preview_only,
        )
    except DeploymentError as e:
        click.echo(f"✗ Deployment failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Stack '{stack.name}' deployed" if not preview_only else "✓ Preview complete")


@cli.command()
@context_option
@config_option
@click.option("--output", "-o", default="./.infrapipe", help="Directory for the Pulumi program")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def destroy(overrides: tuple[str, ...], config_file: str | None, output: str, yes: bool):
    """
    Destroy the pipeline stack, including all stored artifacts.

    Example:
        infrapipe destroy -c env=dev --yes
    """
    from infrapipe.cli.deploy import DeploymentCLI

    stack = _define_stack(config_file, overrides)
    try:
        DeploymentCLI().destroy_stack(
            stack, output, context_file=config_file, overrides=overrides, auto_approve=yes
        )
    except DeploymentError as e:
        click.echo(f"✗ Destroy failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Stack '{stack.name}' destroyed")


if __name__ == "__main__":
    cli()
