"""
Execution module: run pipelines against local collaborators.
"""

from infrapipe.execution.executor import Executor
from infrapipe.execution.local import (
    BuildRunner,
    CommandResult,
    LocalArtifactStore,
    LocalExecutor,
    SourceFetcher,
)
from infrapipe.execution.run import ActionStatus, PipelineRun, RunEvent, RunState

__all__ = [
    "Executor",
    "BuildRunner",
    "CommandResult",
    "LocalArtifactStore",
    "LocalExecutor",
    "SourceFetcher",
    "ActionStatus",
    "PipelineRun",
    "RunEvent",
    "RunState",
]
