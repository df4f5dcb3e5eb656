"""
Tests for PulumiCompiler.compile() against the Pulumi mock engine.

Resources are created once at import, after the mocks are registered, and
inspected through their outputs.
"""

import json

import pytest

pulumi = pytest.importorskip("pulumi")
pytest.importorskip("pulumi_aws")

from infrapipe.compilation.pulumi_compiler import PulumiCompiler  # noqa: E402
from infrapipe.core.environment import resolve_environment  # noqa: E402
from infrapipe.core.stack import define_pipeline_stack  # noqa: E402

WEBHOOK_URL = "https://webhooks.example.com/InfrastructureSourceWebhook"


class PipelineMocks(pulumi.runtime.Mocks):
    """Echo resource inputs back as outputs with a fake arn."""

    def __init__(self):
        self.resources = {}

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.resources[args.name] = args
        outputs = {**args.inputs, "arn": f"arn:aws:mock::{args.name}"}
        if args.typ == "aws:codepipeline/webhook:Webhook":
            outputs["url"] = WEBHOOK_URL
        return [f"{args.name}-id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}


class StaticTokenCompiler(PulumiCompiler):
    """Skips the Secrets Manager lookup."""

    def _oauth_token(self, stack, pulumi, aws):
        return pulumi.Output.secret("mock-token")


mocks = PipelineMocks()
pulumi.runtime.set_mocks(mocks, project="infrapipe", stack="dev", preview=False)

stack = define_pipeline_stack(resolve_environment({
    "env": "dev",
    "repository_owner": "acme",
    "infrastructure_repo_name": "infra",
    "dev": {"infrastructure_branch_name": "main"},
}))
compiled = stack.compile(StaticTokenCompiler(tags={"Team": "platform"}))


class TestResourceGraph:
    """Tests for the resources created by compile()."""

    def test_resource_ids(self):
        assert sorted(compiled.list_resources()) == sorted([
            "InfrastructureDeployRole",
            "CdkDeployPermissions",
            "ArtifactBucket",
            "InfrastructureBuildProject",
            "PipelineWiringPermissions",
            "CIPipeline",
            "InfrastructureSourceWebhook",
        ])

    def test_metadata(self):
        assert compiled.stack_name == "dev-CI-Pipeline-Stack"
        assert compiled.metadata["environment"] == "dev"
        assert compiled.metadata["pipeline"] == "dev-CI-Pipeline"
        assert compiled.metadata["stage_count"] == 2
        assert compiled.metadata["resource_count"] == 7

    @pulumi.runtime.test
    def test_bucket_is_destroyed_with_its_objects(self):
        bucket = compiled.get_resource("ArtifactBucket")

        def check(args):
            name, force_destroy = args
            assert name == "kuriaks1-dev-codepipeline-artifact-bucket"
            assert force_destroy is True

        return pulumi.Output.all(bucket.bucket, bucket.force_destroy).apply(check)

    @pulumi.runtime.test
    def test_deploy_permission_is_the_cdk_boundary(self):
        policy = compiled.get_resource("CdkDeployPermissions")

        def check(document):
            statements = json.loads(document)["Statement"]
            assert len(statements) == 1
            assert statements[0]["Action"] == ["sts:AssumeRole"]
            assert statements[0]["Resource"] == ["arn:aws:iam::*:role/cdk-*"]

        return policy.policy.apply(check)

    @pulumi.runtime.test
    def test_wiring_policy_uses_created_arns(self):
        policy = compiled.get_resource("PipelineWiringPermissions")

        def check(document):
            resources = [r for s in json.loads(document)["Statement"] for r in s["Resource"]]
            assert "arn:aws:mock::ArtifactBucket" in resources
            assert "arn:aws:mock::ArtifactBucket/*" in resources
            assert "arn:aws:mock::InfrastructureBuildProject" in resources

        return policy.policy.apply(check)

    @pulumi.runtime.test
    def test_tags(self):
        role = compiled.get_resource("InfrastructureDeployRole")

        def check(tags):
            assert tags["Environment"] == "dev"
            assert tags["Stack"] == "dev-CI-Pipeline-Stack"
            assert tags["Team"] == "platform"

        return role.tags.apply(check)

    @pulumi.runtime.test
    def test_pipeline_name(self):
        return compiled.get_resource("CIPipeline").name.apply(
            lambda name: _assert_equal(name, "dev-CI-Pipeline")
        )

    @pulumi.runtime.test
    def test_webhook_targets_source_action(self):
        webhook = compiled.get_resource("InfrastructureSourceWebhook")

        def check(args):
            target_action, authentication = args
            assert target_action == "InfrastructureSource"
            assert authentication == "GITHUB_HMAC"

        return pulumi.Output.all(webhook.target_action, webhook.authentication).apply(check)


class TestExportOutputs:
    """Tests for CompiledStack.export_outputs()."""

    def test_webhook_url_is_exported(self, monkeypatch):
        exported = {}
        monkeypatch.setattr(pulumi, "export", lambda name, value: exported.setdefault(name, value))

        outputs = compiled.export_outputs()

        assert "InfrastructureSourceWebhook_url" in outputs
        assert "InfrastructureSourceWebhook_arn" in outputs
        assert "ArtifactBucket_arn" in outputs
        assert "CdkDeployPermissions" in outputs
        assert set(exported) == set(outputs)

    @pulumi.runtime.test
    def test_webhook_url_value(self, monkeypatch):
        monkeypatch.setattr(pulumi, "export", lambda name, value: None)

        outputs = compiled.export_outputs()

        return outputs["InfrastructureSourceWebhook_url"].apply(
            lambda url: _assert_equal(url, WEBHOOK_URL)
        )


def _assert_equal(actual, expected):
    assert actual == expected
