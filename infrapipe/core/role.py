"""
Execution role: the single identity shared by every pipeline action.

The role is trusted by both the build service and the pipeline service and
carries one inline statement allowing it to assume the deployment roles
created by the infrastructure tooling bootstrap (`role/cdk-*`). Any action in
the pipeline can therefore assume any matching deployment role.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from infrapipe.errors import PermissionDenied

logger = logging.getLogger(__name__)

BUILD_SERVICE_PRINCIPAL = "codebuild.amazonaws.com"
PIPELINE_SERVICE_PRINCIPAL = "codepipeline.amazonaws.com"

ASSUME_ROLE_ACTION = "sts:AssumeRole"
DEPLOY_ROLE_PATTERN = "arn:{partition}:iam::*:role/cdk-*"

POLICY_VERSION = "2012-10-17"


def _wildcard(pattern: str, flags: int = 0) -> re.Pattern:
    """Compile an IAM pattern. Only `*` and `?` are special."""
    regex = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(regex, flags | re.DOTALL)


@dataclass(frozen=True)
class PolicyStatement:
    """An Allow statement of an inline IAM policy."""

    actions: tuple[str, ...]
    resources: tuple[str, ...]

    def matches(self, action: str, resource: str) -> bool:
        """
        Check whether this statement covers an action on a resource.

        Actions compare case-insensitively, resources case-sensitively, and
        both support IAM `*` and `?` wildcards.
        """
        action_ok = any(
            _wildcard(pattern, re.IGNORECASE).fullmatch(action) for pattern in self.actions
        )
        return action_ok and any(
            _wildcard(pattern).fullmatch(resource) for pattern in self.resources
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "Effect": "Allow",
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }


@dataclass(frozen=True)
class ExecutionRole:
    """
    Immutable trust/permission record for the pipeline's actions.

    Created once per pipeline, referenced by every action, never mutated.
    """

    logical_id: str
    """Resource identifier inside the stack"""

    trusted_principals: tuple[str, ...]
    """Service principals allowed to assume this role"""

    inline_policies: tuple[tuple[str, tuple[PolicyStatement, ...]], ...]
    """Named inline policies: (policy name, statements)"""

    @property
    def statements(self) -> tuple[PolicyStatement, ...]:
        return tuple(s for _, statements in self.inline_policies for s in statements)

    def allows(self, action: str, resource: str) -> bool:
        """Check whether the inline policies allow an action on a resource."""
        return any(s.matches(action, resource) for s in self.statements)

    def can_assume(self, role_arn: str) -> bool:
        return self.allows(ASSUME_ROLE_ACTION, role_arn)

    def assume(self, role_arn: str) -> str:
        """
        Authorize an sts:AssumeRole call made under this role.

        Args:
            role_arn: ARN of the role to assume

        Returns:
            The assumed role ARN

        Raises:
            PermissionDenied: If the role ARN is outside the policy boundary
        """
        if not self.can_assume(role_arn):
            logger.warning("Denied %s on %s for %s", ASSUME_ROLE_ACTION, role_arn, self.logical_id)
            raise PermissionDenied(role_arn, principal=self.logical_id)
        logger.debug("Allowed %s on %s", ASSUME_ROLE_ACTION, role_arn)
        return role_arn

    def trust_policy(self) -> dict[str, Any]:
        """Render the assume-role (trust) policy document."""
        return {
            "Version": POLICY_VERSION,
            "Statement": [{
                "Effect": "Allow",
                "Principal": {"Service": list(self.trusted_principals)},
                "Action": ASSUME_ROLE_ACTION,
            }],
        }

    def inline_policy_documents(self) -> dict[str, dict[str, Any]]:
        """Render each inline policy as an IAM policy document."""
        return {
            name: {
                "Version": POLICY_VERSION,
                "Statement": [s.to_dict() for s in statements],
            }
            for name, statements in self.inline_policies
        }


def execution_role(partition: str = "aws") -> ExecutionRole:
    """
    Build the shared execution role.

    Args:
        partition: AWS partition used in the deployment role pattern

    Returns:
        ExecutionRole trusted by the build and pipeline services
    """
    deploy_permissions = PolicyStatement(
        actions=(ASSUME_ROLE_ACTION,),
        resources=(DEPLOY_ROLE_PATTERN.format(partition=partition),),
    )
    return ExecutionRole(
        logical_id="InfrastructureDeployRole",
        trusted_principals=(BUILD_SERVICE_PRINCIPAL, PIPELINE_SERVICE_PRINCIPAL),
        inline_policies=(("CdkDeployPermissions", (deploy_permissions,)),),
    )
