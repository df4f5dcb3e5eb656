"""
Pulumi Compiler: Creates the AWS resources of a PipelineStack with pulumi_aws.

Resource arguments are rendered by plain functions (role documents, bucket,
build project, pipeline stages, webhook) so they can be inspected without a
Pulumi engine. PulumiCompiler.compile() feeds them to pulumi_aws and must run
inside a Pulumi program.
"""

import json
import logging
from pathlib import Path
from typing import Any, TYPE_CHECKING

import yaml

from infrapipe.core.action import Action, ActionKind
from infrapipe.core.artifact import ArtifactStore, RemovalPolicy
from infrapipe.core.build import BuildTask
from infrapipe.core.environment import DEFAULT_CONTEXT_FILE
from infrapipe.core.pipeline import Pipeline
from infrapipe.errors import CompilationError
from infrapipe.compilation.compiler import CompiledStack, Compiler

if TYPE_CHECKING:
    from infrapipe.core.stack import PipelineStack

logger = logging.getLogger(__name__)

COMPUTE_TYPE = "BUILD_GENERAL1_SMALL"
SOURCE_PROVIDER_VERSION = "1"


def bucket_args(store: ArtifactStore) -> dict[str, Any]:
    """Arguments for aws.s3.BucketV2"""
    return {
        "bucket": store.bucket_name,
        "force_destroy": store.auto_delete_objects,
    }


def project_args(task: BuildTask, role_arn: Any) -> dict[str, Any]:
    """Arguments for aws.codebuild.Project"""
    return {
        "service_role": role_arn,
        "artifacts": {"type": "CODEPIPELINE"},
        "environment": {
            "compute_type": COMPUTE_TYPE,
            "image": task.build_image,
            "type": "LINUX_CONTAINER",
            "environment_variables": [
                {"name": name, "value": value, "type": "PLAINTEXT"}
                for name, value in task.environment_variables
            ],
        },
        "source": {
            "type": "CODEPIPELINE",
            "buildspec": task.buildspec_yaml(),
        },
    }


def wiring_policy_document(bucket_arn: str, project_arn: str, partition: str = "aws") -> dict[str, Any]:
    """
    Grants implied by the pipeline's wiring.

    The execution role reads and writes the artifact bucket, starts and polls
    the build project, and writes the build logs.
    """
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Action": [
                    "s3:GetObject*",
                    "s3:GetBucket*",
                    "s3:List*",
                    "s3:PutObject",
                    "s3:DeleteObject*",
                    "s3:Abort*",
                ],
                "Resource": [bucket_arn, f"{bucket_arn}/*"],
            },
            {
                "Effect": "Allow",
                "Action": ["codebuild:BatchGetBuilds", "codebuild:StartBuild", "codebuild:StopBuild"],
                "Resource": [project_arn],
            },
            {
                "Effect": "Allow",
                "Action": ["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"],
                "Resource": [f"arn:{partition}:logs:*:*:log-group:/aws/codebuild/*"],
            },
        ],
    }


def action_declaration(action: Action, oauth_token: Any, project_name: Any, role_arn: Any) -> dict[str, Any]:
    """Render one action of aws.codepipeline.Pipeline `stages`."""
    declaration: dict[str, Any] = {"name": action.name, "version": SOURCE_PROVIDER_VERSION}

    if action.kind is ActionKind.SOURCE:
        declaration.update({
            "category": "Source",
            "owner": "ThirdParty",
            "provider": "GitHub",
            "configuration": {
                "Owner": action.source.owner,
                "Repo": action.source.repo,
                "Branch": action.source.branch,
                "OAuthToken": oauth_token,
                "PollForSourceChanges": "false",
            },
        })
    elif action.kind is ActionKind.BUILD:
        declaration.update({
            "category": "Build",
            "owner": "AWS",
            "provider": "CodeBuild",
            "configuration": {"ProjectName": project_name},
            "role_arn": role_arn,
        })
    else:
        raise CompilationError(f"Unsupported action kind: {action.kind}")

    if action.inputs:
        declaration["input_artifacts"] = [a.name for a in action.inputs]
    if action.outputs:
        declaration["output_artifacts"] = [a.name for a in action.outputs]
    return declaration


def pipeline_stages(pipeline: Pipeline, oauth_token: Any, project_name: Any, role_arn: Any) -> list[dict[str, Any]]:
    """Render the `stages` argument of aws.codepipeline.Pipeline"""
    return [
        {
            "name": stage.name,
            "actions": [
                action_declaration(action, oauth_token, project_name, role_arn)
                for action in stage.actions
            ],
        }
        for stage in pipeline.stages
    ]


def webhook_args(action: Action, pipeline_name: Any, oauth_token: Any) -> dict[str, Any]:
    """Arguments for the aws.codepipeline.Webhook triggering a source action"""
    return {
        "authentication": "GITHUB_HMAC",
        "authentication_configuration": {"secret_token": oauth_token},
        "target_action": action.name,
        "target_pipeline": pipeline_name,
        "filters": [{"json_path": "$.ref", "match_equals": f"refs/heads/{action.source.branch}"}],
    }


class PulumiCompiler(Compiler):
    """
    Compiles a PipelineStack to pulumi_aws resources.

    Example:
        # __main__.py of a Pulumi program
        stack = define_pipeline_stack(config)
        compiled = stack.compile(PulumiCompiler())
        compiled.export_outputs()
    """

    def __init__(self, tags: dict[str, str] | None = None):
        self.tags = tags or {}

    def compile(self, stack: 'PipelineStack') -> CompiledStack:
        try:
            import pulumi
            import pulumi_aws as aws
        except ImportError:
            raise CompilationError(
                "pulumi and pulumi-aws required for PulumiCompiler. "
                "Install with: pip install infrapipe[aws]"
            )

        try:
            return self._compile(stack, pulumi, aws)
        except CompilationError:
            raise
        except Exception as e:
            raise CompilationError(f"Failed to compile stack '{stack.name}': {e}") from e

    def _oauth_token(self, stack: 'PipelineStack', pulumi, aws) -> Any:
        """Read the repository token from Secrets Manager as a secret output."""
        return pulumi.Output.secret(
            aws.secretsmanager.get_secret_version_output(
                secret_id=stack.github_token.name
            ).secret_string
        )

    def _compile(self, stack: 'PipelineStack', pulumi, aws) -> CompiledStack:
        pipeline = stack.pipeline
        store = pipeline.artifact_store
        tags = {"Environment": stack.config.env_name, "Stack": stack.name, **self.tags}
        resources: dict[str, Any] = {}

        # Execution role and its single deploy permission
        role_spec = stack.role
        role = aws.iam.Role(
            role_spec.logical_id,
            assume_role_policy=json.dumps(role_spec.trust_policy()),
            description=stack.description,
            tags=tags,
        )
        resources[role_spec.logical_id] = role
        for policy_name, document in role_spec.inline_policy_documents().items():
            resources[policy_name] = aws.iam.RolePolicy(
                policy_name,
                name=policy_name,
                role=role.id,
                policy=json.dumps(document),
            )

        bucket = aws.s3.BucketV2(
            store.logical_id,
            **bucket_args(store),
            tags=tags,
            opts=pulumi.ResourceOptions(
                retain_on_delete=store.removal_policy is RemovalPolicy.RETAIN
            ),
        )
        resources[store.logical_id] = bucket

        task = stack.build_task
        project = aws.codebuild.Project(
            task.logical_id,
            **project_args(task, role.arn),
            tags=tags,
        )
        resources[task.logical_id] = project

        wiring = aws.iam.RolePolicy(
            "PipelineWiringPermissions",
            role=role.id,
            policy=pulumi.Output.all(bucket.arn, project.arn).apply(
                lambda arns: json.dumps(wiring_policy_document(*arns))
            ),
        )
        resources["PipelineWiringPermissions"] = wiring

        oauth_token = self._oauth_token(stack, pulumi, aws)

        codepipeline = aws.codepipeline.Pipeline(
            "CIPipeline",
            name=pipeline.name,
            role_arn=role.arn,
            artifact_stores=[{"location": bucket.bucket, "type": "S3"}],
            stages=pipeline_stages(pipeline, oauth_token, project.name, role.arn),
            tags=tags,
            opts=pulumi.ResourceOptions(depends_on=list(resources.values())),
        )
        resources["CIPipeline"] = codepipeline

        for action in pipeline.actions:
            if action.kind is ActionKind.SOURCE:
                webhook_id = f"{action.name}Webhook"
                resources[webhook_id] = aws.codepipeline.Webhook(
                    webhook_id,
                    **webhook_args(action, codepipeline.name, oauth_token),
                    tags=tags,
                )

        logger.info("Compiled %d resources for %s", len(resources), stack.name)
        return CompiledStack(
            stack_name=stack.name,
            resources=resources,
            metadata={
                "environment": stack.config.env_name,
                "pipeline": pipeline.name,
                "stage_count": len(pipeline.stages),
                "resource_count": len(resources),
            },
        )


MAIN_TEMPLATE = '''"""Pulumi program generated by infrapipe."""

from infrapipe.program import main

main(env={env!r}, context_file={context_file!r}, overrides={overrides!r})
'''


def export_pulumi(
    output_dir: str | Path,
    env: str,
    context_file: str | Path | None = None,
    overrides: tuple[str, ...] = (),
    project_name: str = "infrapipe",
) -> Path:
    """
    Write a Pulumi project that deploys the stack for `env`.

    Args:
        output_dir: Directory for Pulumi.yaml and __main__.py
        env: Environment selector
        context_file: Context file the program loads (made absolute).
            Defaults to ./infrapipe.yaml when that file exists, because
            Pulumi runs the program from output_dir
        overrides: Context overrides baked into the program
        project_name: Pulumi project name

    Returns:
        Path to the Pulumi project directory
    """
    path = Path(output_dir)
    path.mkdir(parents=True, exist_ok=True)

    project = {
        "name": project_name,
        "runtime": "python",
        "description": f"CI pipeline for the {env} environment",
    }
    (path / "Pulumi.yaml").write_text(yaml.safe_dump(project, sort_keys=False))

    if context_file is None and Path(DEFAULT_CONTEXT_FILE).exists():
        context_file = DEFAULT_CONTEXT_FILE
    context = str(Path(context_file).resolve()) if context_file else None
    (path / "__main__.py").write_text(
        MAIN_TEMPLATE.format(env=env, context_file=context, overrides=tuple(overrides))
    )

    logger.debug("Exported Pulumi program to %s", path)
    return path
