"""
Pipeline: An ordered sequence of stages passing artifacts between actions.

Stages run strictly one after another. Artifact dependencies between actions
are inferred from what each action produces and consumes, and validated
against the stage order.
"""

from dataclasses import dataclass

from infrapipe.core.action import Action, ActionKind
from infrapipe.core.artifact import Artifact, ArtifactStore
from infrapipe.core.role import ExecutionRole


@dataclass(frozen=True)
class PipelineEdge:
    """Represents an artifact hand-off between two actions"""
    from_action: Action
    to_action: Action
    artifact: Artifact


@dataclass(frozen=True)
class Stage:
    """A sequential phase of the pipeline containing one or more actions."""

    name: str
    actions: tuple[Action, ...]

    def get_action(self, name: str) -> Action | None:
        for action in self.actions:
            if action.name == name:
                return action
        return None


@dataclass(frozen=True)
class Pipeline:
    """
    Immutable pipeline definition.

    Example:
        pipeline = Pipeline(
            name="dev-CI-Pipeline",
            role=role,
            artifact_store=store,
            stages=(
                Stage("Source", (source,)),
                Stage("Deploy", (deploy,)),
            ),
        )
        pipeline.validate()
    """

    name: str
    role: ExecutionRole
    """Role the pipeline service runs under"""

    artifact_store: ArtifactStore
    stages: tuple[Stage, ...]

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    @property
    def actions(self) -> list[Action]:
        """All actions in stage order"""
        return [action for stage in self.stages for action in stage.actions]

    @property
    def artifacts(self) -> list[Artifact]:
        """All artifacts produced by the pipeline, in production order"""
        return [artifact for action in self.actions for artifact in action.outputs]

    def get_stage(self, name: str) -> Stage | None:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def stage_of(self, action: Action) -> Stage:
        for stage in self.stages:
            if action in stage.actions:
                return stage
        raise ValueError(f"Action '{action.name}' is not part of pipeline '{self.name}'")

    def _producers(self) -> dict[Artifact, Action]:
        producers: dict[Artifact, Action] = {}
        for action in self.actions:
            for artifact in action.outputs:
                if artifact in producers:
                    raise ValueError(
                        f"Artifact '{artifact.name}' is produced by multiple actions: "
                        f"'{producers[artifact].name}' and '{action.name}'"
                    )
                producers[artifact] = action
        return producers

    @property
    def edges(self) -> list[PipelineEdge]:
        """Producer -> consumer edges, one per consumed artifact"""
        producers = self._producers()
        edges = []
        for action in self.actions:
            for artifact in action.inputs:
                producer = producers.get(artifact)
                if producer is not None:
                    edges.append(PipelineEdge(producer, action, artifact))
        return edges

    def validate(self) -> bool:
        """
        Validate the pipeline structure.

        Checks:
        - At least one stage, stage and action names unique
        - Source actions only (and all) in the first stage
        - Each artifact produced by at most one action
        - Every consumed artifact produced by an action in an earlier stage

        Returns:
            True if valid

        Raises:
            ValueError if invalid
        """
        if not self.stages:
            raise ValueError(f"Pipeline '{self.name}' has no stages")

        names = self.stage_names
        if len(set(names)) != len(names):
            raise ValueError(f"Pipeline '{self.name}' has duplicate stage names: {names}")

        action_names = [action.name for action in self.actions]
        if len(set(action_names)) != len(action_names):
            raise ValueError(f"Pipeline '{self.name}' has duplicate action names")

        for index, stage in enumerate(self.stages):
            if not stage.actions:
                raise ValueError(f"Stage '{stage.name}' has no actions")
            for action in stage.actions:
                is_source = action.kind is ActionKind.SOURCE
                if index == 0 and not is_source:
                    raise ValueError(
                        f"First stage '{stage.name}' may only contain source actions, "
                        f"found '{action.name}'"
                    )
                if index > 0 and is_source:
                    raise ValueError(
                        f"Source action '{action.name}' must be in the first stage"
                    )

        producers = self._producers()
        stage_index = {
            action: index
            for index, stage in enumerate(self.stages)
            for action in stage.actions
        }
        for action in self.actions:
            for artifact in action.inputs:
                producer = producers.get(artifact)
                if producer is None:
                    raise ValueError(
                        f"Artifact '{artifact.name}' consumed by '{action.name}' "
                        f"is not produced by any action"
                    )
                if stage_index[producer] >= stage_index[action]:
                    raise ValueError(
                        f"Artifact '{artifact.name}' must be produced in a stage "
                        f"before '{self.stage_of(action).name}'"
                    )

        return True

    def visualize(self) -> str:
        """
        Generate a text visualization of the pipeline.

        Returns:
            String representation of the stages and artifact flow
        """
        lines = [f"Pipeline: {self.name}", "=" * 50, ""]
        lines.append(f"Artifact store: {self.artifact_store.bucket_name}")
        lines.append(f"Role: {self.role.logical_id}")
        lines.append("")

        for index, stage in enumerate(self.stages, 1):
            lines.append(f"{index}. {stage.name}")
            for action in stage.actions:
                lines.append(f"  {action.name} ({action.kind.value})")
                if action.source is not None:
                    lines.append(f"    watches: {action.source}")
                if action.inputs:
                    lines.append(f"    inputs: {', '.join(a.name for a in action.inputs)}")
                if action.outputs:
                    lines.append(f"    outputs: {', '.join(a.name for a in action.outputs)}")
            lines.append("")

        lines.append("Artifacts:")
        for edge in self.edges:
            lines.append(
                f"  {edge.from_action.name} -> {edge.to_action.name} "
                f"(via {edge.artifact.name})"
            )

        return "\n".join(lines)

    def __repr__(self):
        return f"Pipeline({self.name}, stages={self.stage_names})"
