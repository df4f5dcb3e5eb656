"""
Artifacts and the artifact store.

An Artifact is a named, opaque handle to data passed between actions. Its
contents live in the pipeline's ArtifactStore (an S3 bucket), never in memory
of the pipeline definition.
"""

import re
from dataclasses import dataclass
from enum import Enum

from infrapipe.errors import ConfigurationError

ARTIFACT_BUCKET_PREFIX = "kuriaks1"
"""Owner tag that prefixes every artifact bucket name"""

_BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


class RemovalPolicy(str, Enum):
    """What happens to a resource when its stack is deleted."""

    DESTROY = "destroy"
    RETAIN = "retain"


@dataclass(frozen=True)
class Artifact:
    """
    Named handle to an inter-stage artifact.

    Example:
        source_output = Artifact("InfrastructureSourceOutput")
    """

    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError("Artifact name must not be empty")

    def __repr__(self):
        return f"Artifact({self.name})"


@dataclass(frozen=True)
class ArtifactStore:
    """
    Durable bucket holding the pipeline's inter-stage artifacts.

    The store's lifecycle is tied to the pipeline: it is destroyed with the
    stack and its objects are purged first.
    """

    logical_id: str
    """Resource identifier inside the stack"""

    bucket_name: str
    """Globally unique bucket name"""

    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY
    auto_delete_objects: bool = True

    @property
    def arn(self) -> str:
        return f"arn:aws:s3:::{self.bucket_name}"

    def object_key(self, run_id: str, artifact: Artifact) -> str:
        """Key under which an artifact of a given run is stored."""
        return f"{run_id}/{artifact.name}"


def artifact_bucket_name(env_name: str, prefix: str = ARTIFACT_BUCKET_PREFIX) -> str:
    """
    Deterministic artifact bucket name for an environment.

    Raises:
        ConfigurationError: If the result is not a valid bucket name
    """
    name = f"{prefix}-{env_name}-codepipeline-artifact-bucket"
    if not _BUCKET_NAME.match(name) or ".." in name:
        raise ConfigurationError(f"Invalid artifact bucket name: '{name}'")
    return name


def artifact_store(env_name: str) -> ArtifactStore:
    """Build the artifact store for an environment."""
    return ArtifactStore(
        logical_id="ArtifactBucket",
        bucket_name=artifact_bucket_name(env_name),
    )
