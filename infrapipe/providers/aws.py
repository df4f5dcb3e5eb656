"""
AWS Provider: Secret resolution against AWS Secrets Manager.
"""

import logging
from typing import Any

from infrapipe.core.secret import SecretResolver

logger = logging.getLogger(__name__)


class SecretsManagerResolver(SecretResolver):
    """
    Resolves secret references with AWS Secrets Manager.

    The client is created on first use, so constructing the resolver needs
    neither boto3 nor credentials.

    Args:
        region: AWS region
        profile: AWS profile name (optional)
        client: Pre-built secretsmanager client (optional)
    """

    def __init__(self, region: str = "us-east-1", profile: str | None = None, client: Any = None):
        self.region = region
        self.profile = profile
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                import boto3
            except ImportError:
                raise ImportError(
                    "boto3 not installed. Run: pip install infrapipe[aws]"
                )
            session = boto3.Session(profile_name=self.profile, region_name=self.region)
            self._client = session.client("secretsmanager")
        return self._client

    def resolve(self, name: str) -> str:
        try:
            response = self.client.get_secret_value(SecretId=name)
        except self.client.exceptions.ResourceNotFoundException:
            raise KeyError(f"Secret '{name}' not found in Secrets Manager ({self.region})") from None

        logger.debug("Resolved secret %s", name)
        if "SecretString" in response:
            return response["SecretString"]
        return response["SecretBinary"].decode()

    def __repr__(self):
        return f"SecretsManagerResolver(region={self.region})"
