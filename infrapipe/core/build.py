"""
Build task: the sandboxed command sequence run by the Deploy stage.

A BuildTask has an install phase (pin the runtime, install the deployment
tool, install the infrastructure project's dependencies) and a build phase
(run the deployment command for the environment). Any non-zero exit in
either phase fails the task.
"""

from dataclasses import dataclass
from typing import Any

import yaml

from infrapipe.core.environment import EnvironmentConfig
from infrapipe.core.role import ExecutionRole

BUILDSPEC_VERSION = "0.2"

AMAZON_LINUX_2_5 = "aws/codebuild/amazonlinux2-x86_64-standard:5.0"
"""Amazon Linux 2 standard image, version 5"""

INFRASTRUCTURE_DIRECTORY = "infrastructure"

INSTALL = "install"
BUILD = "build"
PHASES = (INSTALL, BUILD)


@dataclass(frozen=True)
class BuildPhase:
    """One phase of a build task."""

    name: str
    commands: tuple[str, ...]
    runtime_versions: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        phase: dict[str, Any] = {}
        if self.runtime_versions:
            phase["runtime-versions"] = dict(self.runtime_versions)
        phase["commands"] = list(self.commands)
        return phase


@dataclass(frozen=True)
class BuildTask:
    """
    Parameterized, sandboxed command execution definition.

    Runs under the execution role and reads one input artifact (the source
    checkout) through the action that executes it.
    """

    logical_id: str
    """Resource identifier inside the stack"""

    role: ExecutionRole
    """Identity the build runs under"""

    install: BuildPhase
    build: BuildPhase

    environment_variables: tuple[tuple[str, str], ...] = ()
    """Plain-text variables injected into the build environment"""

    build_image: str = AMAZON_LINUX_2_5

    @property
    def phases(self) -> tuple[BuildPhase, ...]:
        """Phases in execution order"""
        return (self.install, self.build)

    @property
    def environment(self) -> dict[str, str]:
        return dict(self.environment_variables)

    def buildspec(self) -> dict[str, Any]:
        """Render the buildspec mapping consumed by the build service."""
        return {
            "version": BUILDSPEC_VERSION,
            "phases": {phase.name: phase.to_dict() for phase in self.phases},
        }

    def buildspec_yaml(self) -> str:
        return yaml.safe_dump(self.buildspec(), sort_keys=False)


def build_task(config: EnvironmentConfig, role: ExecutionRole) -> BuildTask:
    """
    Build the infrastructure deployment task for an environment.

    Args:
        config: Resolved environment configuration
        role: Shared execution role

    Returns:
        BuildTask deploying the nested infrastructure project
    """
    install = BuildPhase(
        name=INSTALL,
        runtime_versions=(("nodejs", "20.x"),),
        commands=(
            "npm install -g aws-cdk",
            f"cd {INFRASTRUCTURE_DIRECTORY}",
            "npm install",
        ),
    )
    build = BuildPhase(
        name=BUILD,
        commands=(f"cdk deploy --context env={config.env_name}",),
    )
    return BuildTask(
        logical_id="InfrastructureBuildProject",
        role=role,
        install=install,
        build=build,
        environment_variables=(("DEPLOY_ENVIRONMENT", config.env_name),),
    )
