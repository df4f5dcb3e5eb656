"""
Local Executor: Runs an infrapipe pipeline against pluggable collaborators.

Fetching source and running build phases are delegated to a SourceFetcher and
a BuildRunner. Artifacts go through a write-once LocalArtifactStore keyed the
same way as the S3 artifact bucket, so a consumer only ever sees a complete
artifact written by an earlier stage.
"""

import itertools
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from infrapipe.core.action import Action, ActionKind, RepositorySource
from infrapipe.core.artifact import Artifact, ArtifactStore
from infrapipe.core.build import BuildPhase
from infrapipe.core.pipeline import Pipeline
from infrapipe.core.role import ExecutionRole
from infrapipe.core.secret import EnvironmentSecretResolver, SecretResolver
from infrapipe.errors import ActionFailure, BuildFailure, SourceFetchError
from infrapipe.execution.executor import Executor
from infrapipe.execution.run import (
    ACTION_FINISHED,
    ACTION_STARTED,
    ARTIFACT_CONSUMED,
    ARTIFACT_PRODUCED,
    RUN_FINISHED,
    RUN_STARTED,
    STAGE_FINISHED,
    STAGE_STARTED,
    ActionExecution,
    ActionStatus,
    PipelineRun,
    RunEvent,
    RunState,
)

logger = logging.getLogger(__name__)


class SourceFetcher(ABC):
    """Checks out a repository branch."""

    @abstractmethod
    def fetch(self, source: RepositorySource, token: str) -> bytes:
        """
        Return a complete checkout of the branch head.

        Raises:
            SourceFetchError: If the repository or branch cannot be read
        """
        pass


@dataclass
class CommandResult:
    """Result of running one build phase."""

    exit_code: int
    logs: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class BuildRunner(ABC):
    """Sandboxed command runner for build phases."""

    @abstractmethod
    def run(
        self,
        phase: BuildPhase,
        workspace: bytes,
        environment: dict[str, str],
        role: ExecutionRole,
    ) -> CommandResult:
        """
        Run the commands of one build phase.

        Calls that assume deployment roles go through `role.assume()`, which
        raises PermissionDenied outside the policy boundary.
        """
        pass


class LocalArtifactStore:
    """
    In-process backend for an ArtifactStore.

    Objects are write-once per key; purge() removes everything, mirroring
    the auto-delete-on-teardown policy of the bucket.
    """

    def __init__(self, store: ArtifactStore):
        self.store = store
        self._objects: dict[str, bytes] = {}
        self.writes = 0
        self.reads = 0

    def put(self, run_id: str, artifact: Artifact, data: bytes) -> str:
        key = self.store.object_key(run_id, artifact)
        if key in self._objects:
            raise ValueError(f"Artifact '{key}' already written to {self.store.bucket_name}")
        self._objects[key] = data
        self.writes += 1
        return key

    def get(self, run_id: str, artifact: Artifact) -> bytes:
        key = self.store.object_key(run_id, artifact)
        if key not in self._objects:
            raise KeyError(f"Artifact '{key}' not found in {self.store.bucket_name}")
        self.reads += 1
        return self._objects[key]

    def keys(self) -> list[str]:
        return list(self._objects)

    def has_run(self, run_id: str) -> bool:
        """Whether any object was written under the run's prefix."""
        prefix = f"{run_id}/"
        return any(key.startswith(prefix) for key in self._objects)

    def purge(self) -> int:
        count = len(self._objects)
        self._objects.clear()
        return count


class LocalExecutor(Executor):
    """
    Local executor running stages sequentially.

    Each stage runs to completion before the next begins; the first failing
    stage ends the run in the Failed state and later stages are never
    invoked. No retries, cancellation or timeouts are applied.

    Example:
        executor = LocalExecutor(source_fetcher=GitFetcher(), build_runner=Runner())
        run = executor.execute(stack.pipeline)
        assert run.state is RunState.SUCCEEDED
    """

    def __init__(
        self,
        source_fetcher: SourceFetcher,
        build_runner: BuildRunner,
        secret_resolver: SecretResolver | None = None,
    ):
        self.source_fetcher = source_fetcher
        self.build_runner = build_runner
        self.secret_resolver = secret_resolver or EnvironmentSecretResolver()
        self.stores: dict[str, LocalArtifactStore] = {}
        self.run_ids: set[str] = set()
        self.execution_status: dict[str, Any] = {
            "state": "initialized",
            "actions": {},
        }

    def artifact_store(self, pipeline: Pipeline) -> LocalArtifactStore:
        bucket = pipeline.artifact_store.bucket_name
        if bucket not in self.stores:
            self.stores[bucket] = LocalArtifactStore(pipeline.artifact_store)
        return self.stores[bucket]

    def execute(self, pipeline: Pipeline, run_id: str | None = None) -> PipelineRun:
        """
        Execute one run of the pipeline.

        Args:
            pipeline: Pipeline to execute
            run_id: Optional run identifier (generated if omitted)

        Returns:
            PipelineRun with final state, event log and action results

        Raises:
            ValueError: If the pipeline is invalid or run_id was already used
        """
        pipeline.validate()

        run_id = run_id or uuid.uuid4().hex
        store = self.artifact_store(pipeline)
        if run_id in self.run_ids or store.has_run(run_id):
            raise ValueError(
                f"Run id '{run_id}' already used for {store.store.bucket_name}; "
                "artifacts are write-once per run"
            )
        self.run_ids.add(run_id)

        run = PipelineRun(run_id=run_id, pipeline_name=pipeline.name)
        clock = itertools.count(1)

        def emit(kind: str, **kwargs: Any) -> None:
            run.events.append(RunEvent(tick=next(clock), kind=kind, **kwargs))

        self.execution_status = {"state": "running", "run_id": run.run_id, "actions": {}}
        emit(RUN_STARTED)
        logger.info("Started run %s of %s", run.run_id, pipeline.name)

        for stage in pipeline.stages:
            emit(STAGE_STARTED, stage=stage.name)

            for action in stage.actions:
                execution = self._execute_action(run, store, stage.name, action, emit)
                run.executions.append(execution)
                self.execution_status["actions"][action.name] = execution.status.value
                if execution.error is not None and run.failure is None:
                    run.failure = execution.error

            stage_failed = any(
                e.status is ActionStatus.FAILED for e in run.executions if e.stage == stage.name
            )
            stage_status = ActionStatus.FAILED if stage_failed else ActionStatus.SUCCEEDED
            emit(STAGE_FINISHED, stage=stage.name, status=stage_status.value)

            if stage_failed:
                run.state = RunState.FAILED
                break
        else:
            run.state = RunState.SUCCEEDED

        emit(RUN_FINISHED, status=run.state.value)
        self.execution_status["state"] = run.state.value

        if run.state is RunState.FAILED:
            logger.error("Run %s of %s failed: %s", run.run_id, pipeline.name, run.failure)
        else:
            logger.info("Run %s of %s succeeded", run.run_id, pipeline.name)
        return run

    def _execute_action(
        self,
        run: PipelineRun,
        store: LocalArtifactStore,
        stage: str,
        action: Action,
        emit,
    ) -> ActionExecution:
        emit(ACTION_STARTED, stage=stage, action=action.name)
        logs: list[str] = []

        try:
            if action.kind is ActionKind.SOURCE:
                self._run_source(run, store, stage, action, emit)
            else:
                self._run_build(run, store, stage, action, emit, logs)
        except ActionFailure as e:
            e.attribute(stage, action.name)
            if isinstance(e, BuildFailure) and e.logs:
                logs = logs or e.logs
            emit(ACTION_FINISHED, stage=stage, action=action.name, status=ActionStatus.FAILED.value)
            logger.warning("Action %s/%s failed: %s", stage, action.name, e.message)
            return ActionExecution(stage, action.name, ActionStatus.FAILED, logs, e)

        emit(ACTION_FINISHED, stage=stage, action=action.name, status=ActionStatus.SUCCEEDED.value)
        return ActionExecution(stage, action.name, ActionStatus.SUCCEEDED, logs)

    def _run_source(self, run, store, stage, action, emit) -> None:
        source = action.source
        try:
            token = source.oauth_token.resolve(self.secret_resolver)
        except KeyError as e:
            raise SourceFetchError(f"Token for {source} unavailable: {e}") from e

        try:
            checkout = self.source_fetcher.fetch(source, token)
        except SourceFetchError:
            raise
        except Exception as e:
            raise SourceFetchError(f"Failed to fetch {source}: {e}") from e

        for artifact in action.outputs:
            key = store.put(run.run_id, artifact, checkout)
            emit(ARTIFACT_PRODUCED, stage=stage, action=action.name, artifact=artifact.name)
            logger.debug("Stored %s at s3://%s/%s", artifact.name, store.store.bucket_name, key)

    def _run_build(self, run, store, stage, action, emit, logs: list[str]) -> None:
        task = action.build_task
        try:
            workspace = store.get(run.run_id, action.input)
        except KeyError as e:
            raise BuildFailure(f"Input artifact unavailable: {e}") from e
        emit(ARTIFACT_CONSUMED, stage=stage, action=action.name, artifact=action.input.name)

        for phase in task.phases:
            try:
                result = self.build_runner.run(phase, workspace, task.environment, action.role)
            except BuildFailure as e:
                e.phase = e.phase or phase.name
                logs.extend(e.logs)
                raise
            except Exception as e:
                raise BuildFailure(
                    f"Build runner error in {phase.name} phase: {e}", phase=phase.name
                ) from e

            logs.extend(result.logs)
            if not result.succeeded:
                raise BuildFailure(
                    f"Phase {phase.name} exited with code {result.exit_code}",
                    phase=phase.name,
                    exit_code=result.exit_code,
                    logs=result.logs,
                )

        for artifact in action.outputs:
            store.put(run.run_id, artifact, workspace)
            emit(ARTIFACT_PRODUCED, stage=stage, action=action.name, artifact=artifact.name)

    def get_status(self) -> dict[str, Any]:
        """Get execution status"""
        return self.execution_status
