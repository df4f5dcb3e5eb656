"""
Tests for artifacts and the artifact store.
"""

import re

import pytest

from infrapipe.core.artifact import (
    Artifact,
    RemovalPolicy,
    artifact_bucket_name,
    artifact_store,
)
from infrapipe.errors import ConfigurationError

TEMPLATE = re.compile(r"^kuriaks1-(dev|prod)-codepipeline-artifact-bucket$")


class TestArtifactStore:
    """Tests for artifact_store()."""

    def test_bucket_names_distinct_per_environment(self):
        """dev and prod get different, template-conforming bucket names."""
        dev = artifact_store("dev")
        prod = artifact_store("prod")

        assert dev.bucket_name != prod.bucket_name
        assert TEMPLATE.match(dev.bucket_name)
        assert TEMPLATE.match(prod.bucket_name)

    def test_bucket_name_deterministic(self):
        assert artifact_store("dev") == artifact_store("dev")
        assert artifact_bucket_name("dev") == "kuriaks1-dev-codepipeline-artifact-bucket"

    def test_teardown_policy(self):
        """The store and its objects are destroyed with the pipeline."""
        store = artifact_store("prod")

        assert store.removal_policy is RemovalPolicy.DESTROY
        assert store.auto_delete_objects is True

    def test_invalid_bucket_name(self):
        """Names that S3 would reject are configuration errors."""
        with pytest.raises(ConfigurationError):
            artifact_bucket_name("Dev_Env")

    def test_object_key(self):
        store = artifact_store("dev")

        assert store.object_key("run-1", Artifact("Out")) == "run-1/Out"
        assert store.arn == "arn:aws:s3:::kuriaks1-dev-codepipeline-artifact-bucket"


class TestArtifact:
    """Tests for Artifact handles."""

    def test_equality_by_name(self):
        assert Artifact("a") == Artifact("a")
        assert hash(Artifact("a")) == hash(Artifact("a"))

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            Artifact("")
