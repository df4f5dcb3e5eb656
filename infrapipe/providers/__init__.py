"""
Provider integrations.
"""

from infrapipe.providers.aws import SecretsManagerResolver

__all__ = ["SecretsManagerResolver"]
