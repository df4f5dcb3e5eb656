"""
Tests for the build task definition.
"""

import yaml

from infrapipe.core.build import AMAZON_LINUX_2_5, build_task
from infrapipe.core.role import execution_role


class TestBuildTask:
    """Tests for build_task()."""

    def test_install_phase(self, dev_config):
        """Install pins the runtime, installs the tool and the project."""
        task = build_task(dev_config, execution_role())

        assert task.install.runtime_versions == (("nodejs", "20.x"),)
        assert task.install.commands == (
            "npm install -g aws-cdk",
            "cd infrastructure",
            "npm install",
        )

    def test_build_phase_uses_environment(self, context):
        """The deploy command is parameterized by the environment name."""
        from infrapipe.core.environment import resolve_environment

        prod = resolve_environment({**context, "env": "prod"})
        task = build_task(prod, execution_role())

        assert task.build.commands == ("cdk deploy --context env=prod",)
        assert task.environment == {"DEPLOY_ENVIRONMENT": "prod"}

    def test_runs_under_execution_role(self, dev_config):
        role = execution_role()
        task = build_task(dev_config, role)

        assert task.role is role
        assert task.build_image == AMAZON_LINUX_2_5

    def test_phase_order(self, dev_config):
        task = build_task(dev_config, execution_role())

        assert [phase.name for phase in task.phases] == ["install", "build"]

    def test_buildspec(self, dev_config):
        """The buildspec matches the build service format."""
        task = build_task(dev_config, execution_role())

        assert task.buildspec() == {
            "version": "0.2",
            "phases": {
                "install": {
                    "runtime-versions": {"nodejs": "20.x"},
                    "commands": ["npm install -g aws-cdk", "cd infrastructure", "npm install"],
                },
                "build": {"commands": ["cdk deploy --context env=dev"]},
            },
        }

    def test_buildspec_yaml(self, dev_config):
        task = build_task(dev_config, execution_role())

        assert yaml.safe_load(task.buildspec_yaml()) == task.buildspec()
