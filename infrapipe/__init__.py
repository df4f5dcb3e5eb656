"""
infrapipe: Continuous delivery pipeline for an infrastructure repository.

infrapipe defines, as one immutable object graph, a two-stage pipeline that
watches a repository branch and deploys the infrastructure project it
contains.

Core concepts:
- Environment: Named configuration (dev, prod) selected at startup
- ExecutionRole: Single identity shared by all actions
- ArtifactStore: Bucket holding artifacts passed between stages
- BuildTask: Sandboxed install/build command sequence
- Pipeline: Ordered stages (Source -> Deploy) of actions

Example:
    from infrapipe import load_context, resolve_environment, define_pipeline_stack

    config = resolve_environment(load_context(overrides=["env=dev"]))
    stack = define_pipeline_stack(config)
    print(stack.pipeline.visualize())
"""

from infrapipe.core.environment import EnvironmentConfig, load_context, resolve_environment
from infrapipe.core.action import Action, ActionKind
from infrapipe.core.artifact import Artifact, ArtifactStore
from infrapipe.core.build import BuildTask
from infrapipe.core.pipeline import Pipeline, Stage
from infrapipe.core.role import ExecutionRole
from infrapipe.core.secret import SecretReference
from infrapipe.core.stack import PipelineStack, define_pipeline_stack, synthesize
from infrapipe.errors import (
    BuildFailure,
    ConfigurationError,
    PermissionDenied,
    SourceFetchError,
)

__version__ = "0.1.0"
__all__ = [
    "EnvironmentConfig",
    "load_context",
    "resolve_environment",
    "Action",
    "ActionKind",
    "Artifact",
    "ArtifactStore",
    "BuildTask",
    "Pipeline",
    "Stage",
    "ExecutionRole",
    "SecretReference",
    "PipelineStack",
    "define_pipeline_stack",
    "synthesize",
    "BuildFailure",
    "ConfigurationError",
    "PermissionDenied",
    "SourceFetchError",
]
