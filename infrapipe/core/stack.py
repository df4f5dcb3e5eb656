"""
Stack: The complete CI pipeline definition for one environment.

define_pipeline_stack() is a pure construction function: given a resolved
EnvironmentConfig it builds the immutable object graph (role, artifact store,
build task, pipeline). synthesize() turns that graph into a static,
JSON-serialisable topology description.
"""

import logging
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from infrapipe.core.action import RepositorySource, build_action, source_action
from infrapipe.core.artifact import Artifact, artifact_store
from infrapipe.core.build import BuildTask, build_task
from infrapipe.core.environment import EnvironmentConfig
from infrapipe.core.pipeline import Pipeline, Stage
from infrapipe.core.role import ExecutionRole, execution_role
from infrapipe.core.secret import SecretReference

if TYPE_CHECKING:
    from infrapipe.compilation.compiler import CompiledStack, Compiler

logger = logging.getLogger(__name__)

GITHUB_TOKEN_SECRET = "github-token"

SOURCE_STAGE = "Source"
DEPLOY_STAGE = "Deploy"


@dataclass(frozen=True)
class PipelineStack:
    """
    Container for all resources of one environment's CI pipeline.

    Example:
        config = resolve_environment(load_context(overrides=["env=dev"]))
        stack = define_pipeline_stack(config)
        print(stack.pipeline.visualize())
    """

    name: str
    """Stack name"""

    description: str
    config: EnvironmentConfig
    role: ExecutionRole
    build_task: BuildTask
    pipeline: Pipeline

    github_token: SecretReference
    """Repository access token, resolved by the secret store"""

    def compile(self, compiler: 'Compiler') -> 'CompiledStack':
        """
        Compile the stack using provided compiler.

        Args:
            compiler: Compiler creating the cloud resources (injected dependency)

        Returns:
            CompiledStack with the created resources
        """
        self.pipeline.validate()
        return compiler.compile(self)


def define_pipeline_stack(config: EnvironmentConfig) -> PipelineStack:
    """
    Define the CI pipeline stack for an environment.

    Args:
        config: Resolved environment configuration

    Returns:
        Validated PipelineStack
    """
    env_name = config.env_name
    github_token = SecretReference(GITHUB_TOKEN_SECRET)

    role = execution_role()
    store = artifact_store(env_name)
    task = build_task(config, role)

    source_output = Artifact("InfrastructureSourceOutput")

    source = source_action(
        name="InfrastructureSource",
        source=RepositorySource(
            owner=config.repository_owner,
            repo=config.infrastructure_repo_name,
            branch=config.infrastructure_branch_name,
            oauth_token=github_token,
        ),
        output=source_output,
        role=role,
    )
    deploy = build_action(
        name="DeployCdkInfrastructure",
        task=task,
        input=source_output,
        role=role,
    )

    pipeline = Pipeline(
        name=f"{env_name}-CI-Pipeline",
        role=role,
        artifact_store=store,
        stages=(
            Stage(SOURCE_STAGE, (source,)),
            Stage(DEPLOY_STAGE, (deploy,)),
        ),
    )
    pipeline.validate()

    stack = PipelineStack(
        name=f"{env_name}-CI-Pipeline-Stack",
        description=config.description,
        config=config,
        role=role,
        build_task=task,
        pipeline=pipeline,
        github_token=github_token,
    )
    logger.info("Defined %s watching %s", stack.name, config.repository)
    return stack


def synthesize(stack: PipelineStack) -> dict[str, Any]:
    """
    Produce the static topology description of a stack.

    Secrets appear by reference only.
    """
    pipeline = stack.pipeline
    task = stack.build_task

    def describe_action(action) -> dict[str, Any]:
        description: dict[str, Any] = {
            "name": action.name,
            "kind": action.kind.value,
            "role": action.role.logical_id,
            "inputs": [a.name for a in action.inputs],
            "outputs": [a.name for a in action.outputs],
        }
        if action.source is not None:
            description["source"] = {
                "owner": action.source.owner,
                "repo": action.source.repo,
                "branch": action.source.branch,
                "oauth_token": {"secret": action.source.oauth_token.name},
            }
        if action.build_task is not None:
            description["project"] = action.build_task.logical_id
        return description

    return {
        "stack": stack.name,
        "description": stack.description,
        "environment": stack.config.model_dump(),
        "role": {
            "logical_id": stack.role.logical_id,
            "assume_role_policy": stack.role.trust_policy(),
            "inline_policies": stack.role.inline_policy_documents(),
        },
        "artifact_store": {
            "logical_id": pipeline.artifact_store.logical_id,
            "bucket_name": pipeline.artifact_store.bucket_name,
            "removal_policy": pipeline.artifact_store.removal_policy.value,
            "auto_delete_objects": pipeline.artifact_store.auto_delete_objects,
        },
        "build_project": {
            "logical_id": task.logical_id,
            "role": task.role.logical_id,
            "build_image": task.build_image,
            "environment_variables": task.environment,
            "buildspec": task.buildspec(),
        },
        "pipeline": {
            "name": pipeline.name,
            "role": pipeline.role.logical_id,
            "artifact_store": pipeline.artifact_store.logical_id,
            "stages": [
                {"name": stage.name, "actions": [describe_action(a) for a in stage.actions]}
                for stage in pipeline.stages
            ],
        },
    }
