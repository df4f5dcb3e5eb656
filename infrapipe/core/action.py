"""
Actions: units of work inside a pipeline stage.

Actions are a tagged variant rather than a class hierarchy. The `kind`
field says which payload is set: a SOURCE action carries a RepositorySource,
a BUILD action carries a BuildTask. Both are bound to the execution role.
"""

from dataclasses import dataclass
from enum import Enum

from infrapipe.core.artifact import Artifact
from infrapipe.core.build import BuildTask
from infrapipe.core.role import ExecutionRole
from infrapipe.core.secret import SecretReference


class ActionKind(str, Enum):
    """Action variants."""

    SOURCE = "Source"
    BUILD = "Build"


@dataclass(frozen=True)
class RepositorySource:
    """A watched repository branch."""

    owner: str
    repo: str
    branch: str
    oauth_token: SecretReference

    def __str__(self):
        return f"{self.owner}/{self.repo}@{self.branch}"


@dataclass(frozen=True)
class Action:
    """
    A single unit of work within a stage.

    Use source_action() and build_action() to construct one; they fill in the
    payload that matches the kind.
    """

    name: str
    kind: ActionKind
    role: ExecutionRole
    inputs: tuple[Artifact, ...] = ()
    outputs: tuple[Artifact, ...] = ()
    source: RepositorySource | None = None
    build_task: BuildTask | None = None

    def __post_init__(self):
        if self.kind is ActionKind.SOURCE:
            if self.source is None or self.build_task is not None:
                raise ValueError(f"Source action '{self.name}' needs a repository source only")
            if self.inputs:
                raise ValueError(f"Source action '{self.name}' cannot consume artifacts")
            if len(self.outputs) != 1:
                raise ValueError(f"Source action '{self.name}' must produce exactly one artifact")
        elif self.kind is ActionKind.BUILD:
            if self.build_task is None or self.source is not None:
                raise ValueError(f"Build action '{self.name}' needs a build task only")
            if len(self.inputs) != 1:
                raise ValueError(f"Build action '{self.name}' must consume exactly one artifact")

    @property
    def input(self) -> Artifact | None:
        return self.inputs[0] if self.inputs else None

    def __repr__(self):
        return f"Action({self.name}, kind={self.kind.value})"


def source_action(
    name: str,
    source: RepositorySource,
    output: Artifact,
    role: ExecutionRole,
) -> Action:
    """Create a SOURCE action emitting a checkout of `source` as `output`."""
    return Action(name=name, kind=ActionKind.SOURCE, role=role, outputs=(output,), source=source)


def build_action(
    name: str,
    task: BuildTask,
    input: Artifact,
    role: ExecutionRole,
    outputs: tuple[Artifact, ...] = (),
) -> Action:
    """Create a BUILD action running `task` on the `input` artifact."""
    return Action(
        name=name,
        kind=ActionKind.BUILD,
        role=role,
        inputs=(input,),
        outputs=outputs,
        build_task=task,
    )
