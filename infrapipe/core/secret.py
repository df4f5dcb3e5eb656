"""
Secret references.

The pipeline never holds credential material. A SecretReference is an opaque
handle that a SecretResolver turns into a value only when an action needs it
(at execution time for local runs, at deploy time for Pulumi).
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass


class SecretResolver(ABC):
    """Resolves secret references against a secret store."""

    @abstractmethod
    def resolve(self, name: str) -> str:
        """
        Fetch the current value of a secret.

        Raises:
            KeyError: If the secret does not exist
        """
        pass


@dataclass(frozen=True)
class SecretReference:
    """
    Reference to a named secret in an external secret store.

    Example:
        github_token = SecretReference("github-token")
        token = github_token.resolve(EnvironmentSecretResolver())
    """

    name: str

    def resolve(self, resolver: SecretResolver) -> str:
        return resolver.resolve(self.name)

    def __repr__(self):
        return f"SecretReference({self.name})"


class EnvironmentSecretResolver(SecretResolver):
    """
    Resolves secrets from environment variables.

    `github-token` is read from `GITHUB_TOKEN` (upper-cased, dashes replaced
    by underscores, with an optional prefix).
    """

    def __init__(self, prefix: str = "", environ: dict[str, str] | None = None):
        self.prefix = prefix
        self.environ = os.environ if environ is None else environ

    def variable_name(self, name: str) -> str:
        return f"{self.prefix}{name}".upper().replace("-", "_")

    def resolve(self, name: str) -> str:
        variable = self.variable_name(name)
        try:
            return self.environ[variable]
        except KeyError:
            raise KeyError(f"Secret '{name}' not found in environment variable {variable}") from None
