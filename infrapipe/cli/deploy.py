"""
Deployment helpers for infrapipe stacks.

Exports a Pulumi program for a stack and drives the Pulumi CLI
(preview/up/destroy) against it.
"""

import json
import subprocess
from pathlib import Path
from typing import Any

import click

from infrapipe.compilation.pulumi_compiler import export_pulumi
from infrapipe.core.stack import PipelineStack
from infrapipe.errors import DeploymentError


class DeploymentCLI:
    """
    CLI interface for stack deployment.

    Provides commands for:
    - Exporting stacks to Pulumi programs
    - Running Pulumi preview/up/destroy
    - Reading stack outputs
    """

    def __init__(self, verbose: bool = True):
        """
        Initialize deployment CLI.

        Args:
            verbose: Print detailed output
        """
        self.verbose = verbose

    def _echo(self, message: str = "") -> None:
        if self.verbose:
            click.echo(message)

    def _confirm(self, prompt: str, auto_approve: bool) -> None:
        """
        Ask before a change is applied.

        Pulumi runs with captured output and cannot prompt itself, so the
        question is asked here and Pulumi is then started with --yes.

        Raises:
            DeploymentError: If the user declines
        """
        if auto_approve:
            return
        if not click.confirm(prompt, default=False):
            raise DeploymentError("Cancelled by user")

    def export_stack(
        self,
        stack: PipelineStack,
        output_dir: str | Path,
        context_file: str | Path | None = None,
        overrides: tuple[str, ...] = (),
    ) -> Path:
        """
        Export the Pulumi program deploying a stack.

        Raises:
            DeploymentError: If the program cannot be written
        """
        self._echo(f"Exporting stack '{stack.name}'...")
        self._echo(f"  Output: {output_dir}")
        try:
            path = export_pulumi(
                output_dir,
                env=stack.config.env_name,
                context_file=context_file,
                overrides=overrides,
            )
        except OSError as e:
            raise DeploymentError(f"Export failed: {e}") from e

        self._echo("✓ Export successful")
        return path

    def select_stack(self, pulumi_dir: str | Path, stack: str) -> subprocess.CompletedProcess:
        """Select the Pulumi stack, creating it if needed."""
        return self._run_pulumi_command(
            ["stack", "select", "--create", stack],
            pulumi_dir,
            description=f"Selecting stack {stack}"
        )

    def pulumi_preview(self, pulumi_dir: str | Path, stack: str | None = None) -> subprocess.CompletedProcess:
        """Run 'pulumi preview' to preview infrastructure changes."""
        return self._run_pulumi_command(
            ["preview"],
            pulumi_dir,
            stack,
            description="Previewing infrastructure changes"
        )

    def pulumi_up(
        self,
        pulumi_dir: str | Path,
        stack: str | None = None,
        yes: bool = False
    ) -> subprocess.CompletedProcess:
        """
        Run 'pulumi up' to deploy infrastructure.

        Args:
            pulumi_dir: Directory containing Pulumi program
            stack: Optional stack name
            yes: Skip confirmation prompt
        """
        extra_args = ["--yes"] if yes else []
        return self._run_pulumi_command(
            ["up"],
            pulumi_dir,
            stack,
            extra_args=extra_args,
            description="Deploying infrastructure"
        )

    def pulumi_destroy(
        self,
        pulumi_dir: str | Path,
        stack: str | None = None,
        yes: bool = False
    ) -> subprocess.CompletedProcess:
        """Run 'pulumi destroy' to tear down infrastructure, artifacts included."""
        extra_args = ["--yes"] if yes else []
        return self._run_pulumi_command(
            ["destroy"],
            pulumi_dir,
            stack,
            extra_args=extra_args,
            description="Destroying infrastructure"
        )

    def pulumi_stack_output(self, pulumi_dir: str | Path, stack: str | None = None) -> dict[str, Any]:
        """
        Get stack outputs as dictionary.

        Raises:
            DeploymentError: If getting outputs fails
        """
        result = self._run_pulumi_command(
            ["stack", "output", "--json"],
            pulumi_dir,
            stack,
            description="Getting stack outputs"
        )

        try:
            return json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise DeploymentError(f"Failed to parse stack outputs: {e}") from e

    def _run_pulumi_command(
        self,
        command: list[str],
        pulumi_dir: str | Path,
        stack: str | None = None,
        extra_args: list[str] | None = None,
        description: str | None = None
    ) -> subprocess.CompletedProcess:
        """
        Run a Pulumi CLI command.

        Raises:
            DeploymentError: If the command fails or pulumi is not installed
        """
        pulumi_path = Path(pulumi_dir)
        if not pulumi_path.exists():
            raise DeploymentError(f"Pulumi directory not found: {pulumi_dir}")

        cmd = ["pulumi", *command]
        if stack:
            cmd.extend(["--stack", stack])
        if extra_args:
            cmd.extend(extra_args)

        if description:
            self._echo(f"{description}...")
            self._echo(f"  Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                cwd=pulumi_path,
                check=True,
                capture_output=True,
                text=True
            )
        except FileNotFoundError as e:
            raise DeploymentError("pulumi CLI not found on PATH") from e
        except subprocess.CalledProcessError as e:
            error_msg = f"Pulumi command failed: {' '.join(cmd)}"
            if e.stderr:
                error_msg += f"\n{e.stderr}"
            raise DeploymentError(error_msg) from e

        if result.stdout:
            self._echo(result.stdout)
        return result

    def deploy_stack(
        self,
        stack: PipelineStack,
        output_dir: str | Path,
        context_file: str | Path | None = None,
        overrides: tuple[str, ...] = (),
        auto_approve: bool = False,
        preview_only: bool = False,
    ) -> dict[str, Any]:
        """
        One-command deployment: export, preview and deploy a stack.

        The Pulumi stack is named after the environment.

        Returns:
            Dictionary of stack outputs (empty for preview only)
        """
        env = stack.config.env_name
        path = self.export_stack(stack, output_dir, context_file, overrides)
        self.select_stack(path, env)

        self._echo("PREVIEW")
        self.pulumi_preview(path, env)
        if preview_only:
            return {}

        self._confirm(f"Deploy stack '{stack.name}'?", auto_approve)
        self._echo("DEPLOY")
        self.pulumi_up(path, env, yes=True)

        outputs = self.pulumi_stack_output(path, env)
        for key, value in outputs.items():
            self._echo(f"  {key}: {value}")
        return outputs

    def destroy_stack(
        self,
        stack: PipelineStack,
        output_dir: str | Path,
        context_file: str | Path | None = None,
        overrides: tuple[str, ...] = (),
        auto_approve: bool = False,
    ) -> None:
        """Tear down a deployed stack."""
        env = stack.config.env_name
        path = self.export_stack(stack, output_dir, context_file, overrides)
        self.select_stack(path, env)
        self._confirm(
            f"Destroy stack '{stack.name}' and every artifact it stored?", auto_approve
        )
        self.pulumi_destroy(path, env, yes=True)
