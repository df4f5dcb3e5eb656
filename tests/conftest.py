"""
Shared fixtures for infrapipe tests.
"""

import pytest

from infrapipe.core.environment import resolve_environment
from infrapipe.core.stack import define_pipeline_stack


@pytest.fixture
def context():
    """Context with both environments configured."""
    return {
        "env": "dev",
        "repository_owner": "acme",
        "infrastructure_repo_name": "infra",
        "dev": {"env_name": "dev", "infrastructure_branch_name": "main"},
        "prod": {"env_name": "prod", "infrastructure_branch_name": "release"},
    }


@pytest.fixture
def dev_config(context):
    return resolve_environment(context)


@pytest.fixture
def dev_stack(dev_config):
    return define_pipeline_stack(dev_config)
