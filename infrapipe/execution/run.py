"""
Run records: state, event log and per-action results of a pipeline run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from infrapipe.errors import ActionFailure


class RunState(str, Enum):
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class ActionStatus(str, Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


# Event kinds
RUN_STARTED = "run_started"
RUN_FINISHED = "run_finished"
STAGE_STARTED = "stage_started"
STAGE_FINISHED = "stage_finished"
ACTION_STARTED = "action_started"
ACTION_FINISHED = "action_finished"
ARTIFACT_PRODUCED = "artifact_produced"
ARTIFACT_CONSUMED = "artifact_consumed"


@dataclass(frozen=True)
class RunEvent:
    """An entry in the run's event log, ordered by a logical clock."""

    tick: int
    kind: str
    stage: str | None = None
    action: str | None = None
    artifact: str | None = None
    status: str | None = None


@dataclass
class ActionExecution:
    """Outcome of one action invocation."""

    stage: str
    action: str
    status: ActionStatus
    logs: list[str] = field(default_factory=list)
    error: ActionFailure | None = None


@dataclass
class PipelineRun:
    """
    Record of a single pipeline run.

    The run's state plus the failing action's logs are the failure surface.
    """

    run_id: str
    pipeline_name: str
    state: RunState = RunState.IN_PROGRESS
    events: list[RunEvent] = field(default_factory=list)
    executions: list[ActionExecution] = field(default_factory=list)
    failure: ActionFailure | None = None

    def events_of(self, kind: str) -> list[RunEvent]:
        return [event for event in self.events if event.kind == kind]

    def invocations(self, action: str) -> int:
        """Number of times an action was started in this run."""
        return sum(1 for event in self.events_of(ACTION_STARTED) if event.action == action)

    def first_tick(self, kind: str, **match: Any) -> int | None:
        for event in self.events_of(kind):
            if all(getattr(event, key) == value for key, value in match.items()):
                return event.tick
        return None

    @property
    def artifacts_produced(self) -> list[str]:
        return [event.artifact for event in self.events_of(ARTIFACT_PRODUCED)]

    @property
    def artifacts_consumed(self) -> list[str]:
        return [event.artifact for event in self.events_of(ARTIFACT_CONSUMED)]

    @property
    def failed_execution(self) -> ActionExecution | None:
        for execution in self.executions:
            if execution.status is ActionStatus.FAILED:
                return execution
        return None

    def raise_for_failure(self) -> None:
        """Re-raise the failure that ended the run, if any."""
        if self.failure is not None:
            raise self.failure

    def to_dict(self) -> dict[str, Any]:
        failed = self.failed_execution
        return {
            "run_id": self.run_id,
            "pipeline": self.pipeline_name,
            "state": self.state.value,
            "actions": [
                {"stage": e.stage, "action": e.action, "status": e.status.value}
                for e in self.executions
            ],
            "failure": None if failed is None else {
                "stage": failed.stage,
                "action": failed.action,
                "error": str(failed.error),
                "logs": failed.logs,
            },
        }
