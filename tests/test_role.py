"""
Tests for the shared execution role and its authorization boundary.
"""

import pytest

from infrapipe.core.role import (
    ASSUME_ROLE_ACTION,
    BUILD_SERVICE_PRINCIPAL,
    PIPELINE_SERVICE_PRINCIPAL,
    PolicyStatement,
    execution_role,
)
from infrapipe.errors import BuildFailure, PermissionDenied


class TestExecutionRole:
    """Tests for execution_role()."""

    def test_trusted_principals(self):
        """The role is trusted by the build and pipeline services."""
        role = execution_role()

        assert role.trusted_principals == (BUILD_SERVICE_PRINCIPAL, PIPELINE_SERVICE_PRINCIPAL)
        statement = role.trust_policy()["Statement"][0]
        assert statement["Principal"]["Service"] == [
            "codebuild.amazonaws.com",
            "codepipeline.amazonaws.com",
        ]
        assert statement["Action"] == "sts:AssumeRole"

    def test_single_inline_statement(self):
        """Exactly one inline statement grants sts:AssumeRole on cdk-* roles."""
        role = execution_role()

        assert len(role.statements) == 1
        documents = role.inline_policy_documents()
        assert list(documents) == ["CdkDeployPermissions"]
        assert documents["CdkDeployPermissions"]["Statement"] == [{
            "Effect": "Allow",
            "Action": ["sts:AssumeRole"],
            "Resource": ["arn:aws:iam::*:role/cdk-*"],
        }]

    @pytest.mark.parametrize("arn", [
        "arn:aws:iam::123456789012:role/cdk-hnb659fds-deploy-role-123456789012-us-east-1",
        "arn:aws:iam::210987654321:role/cdk-hnb659fds-file-publishing-role",
    ])
    def test_allows_deployment_roles(self, arn):
        """Any account's cdk-* role can be assumed."""
        role = execution_role()

        assert role.can_assume(arn)
        assert role.assume(arn) == arn

    @pytest.mark.parametrize("arn", [
        "arn:aws:iam::123456789012:role/admin",
        "arn:aws:iam::123456789012:role/my-cdk-role",
        "arn:aws:iam::123456789012:user/cdk-user",
        "arn:aws-cn:iam::123456789012:role/cdk-deploy",
    ])
    def test_denies_other_roles(self, arn):
        """Roles outside the pattern are denied."""
        role = execution_role()

        assert not role.can_assume(arn)
        with pytest.raises(PermissionDenied) as exc_info:
            role.assume(arn)
        assert exc_info.value.role_arn == arn

    def test_only_assume_role_is_allowed(self):
        """Other actions on matching resources are not granted."""
        role = execution_role()

        assert not role.allows("iam:PassRole", "arn:aws:iam::1:role/cdk-deploy")
        assert role.allows("STS:assumerole", "arn:aws:iam::1:role/cdk-deploy")

    def test_partition(self):
        """The partition is part of the resource pattern."""
        role = execution_role(partition="aws-cn")

        assert role.can_assume("arn:aws-cn:iam::1:role/cdk-deploy")
        assert not role.can_assume("arn:aws:iam::1:role/cdk-deploy")

    def test_permission_denied_is_a_build_failure(self):
        """Denials surface as build failures."""
        assert issubclass(PermissionDenied, BuildFailure)

    def test_role_is_immutable(self):
        role = execution_role()

        with pytest.raises(AttributeError):
            role.logical_id = "Other"


class TestPolicyStatement:
    """Tests for wildcard matching."""

    def test_question_mark_wildcard(self):
        statement = PolicyStatement(actions=(ASSUME_ROLE_ACTION,), resources=("arn:aws:iam::?:role/x",))

        assert statement.matches("sts:AssumeRole", "arn:aws:iam::1:role/x")
        assert not statement.matches("sts:AssumeRole", "arn:aws:iam::12:role/x")

    def test_action_wildcard(self):
        statement = PolicyStatement(actions=("s3:Get*",), resources=("*",))

        assert statement.matches("s3:GetObject", "anything")
        assert not statement.matches("s3:PutObject", "anything")

    def test_brackets_are_literal(self):
        """IAM has no character classes, so [ab] only matches itself."""
        statement = PolicyStatement(actions=(ASSUME_ROLE_ACTION,), resources=("arn:aws:iam::1:role/[ab]",))

        assert statement.matches("sts:AssumeRole", "arn:aws:iam::1:role/[ab]")
        assert not statement.matches("sts:AssumeRole", "arn:aws:iam::1:role/a")

    def test_dots_are_literal(self):
        statement = PolicyStatement(actions=(ASSUME_ROLE_ACTION,), resources=("arn:aws:iam::1:role/cdk.x",))

        assert not statement.matches("sts:AssumeRole", "arn:aws:iam::1:role/cdkAx")
