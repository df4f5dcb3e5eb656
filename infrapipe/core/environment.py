"""
Environment: Resolves the deployment environment configuration.

The environment is selected once at startup by the `env` context value and
merged with the global repository parameters. Every other component is built
from the resulting EnvironmentConfig, so resolution happens first and fails
fast with ConfigurationError.
"""

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

from infrapipe.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENVIRONMENTS = ("dev", "prod")
"""Known deployment environments"""

DEFAULT_CONTEXT_FILE = "infrapipe.yaml"

DESCRIPTION_TEMPLATE = (
    "Stack for the {env} CI pipeline deployed using infrapipe. "
    "If you need to delete this stack, delete the {env} infrastructure stack first."
)


class EnvironmentBlock(BaseModel):
    """
    Per-environment section of the context (the `dev:` / `prod:` blocks).

    Example:
        dev:
          infrastructure_branch_name: main
    """

    env_name: str | None = Field(
        default=None, description="Environment name, defaults to the selector"
    )
    infrastructure_branch_name: str = Field(
        ..., min_length=1, description="Branch the pipeline watches"
    )

    class Config:
        extra = "allow"


class EnvironmentConfig(BaseModel):
    """
    Resolved, immutable configuration for one deployment environment.

    Holds the environment block merged with the repository owner, the
    infrastructure repository name and a human-readable description.
    """

    env_name: str = Field(..., description="Environment name (dev, prod)")
    infrastructure_branch_name: str = Field(..., min_length=1)
    repository_owner: str = Field(..., min_length=1)
    infrastructure_repo_name: str = Field(..., min_length=1)
    description: str

    class Config:
        frozen = True
        extra = "allow"

    @property
    def repository(self) -> str:
        """Repository as owner/name@branch"""
        return (
            f"{self.repository_owner}/{self.infrastructure_repo_name}"
            f"@{self.infrastructure_branch_name}"
        )


def resolve_environment(context: Mapping[str, Any]) -> EnvironmentConfig:
    """
    Resolve the environment configuration selected by `context["env"]`.

    Args:
        context: Context mapping (see load_context)

    Returns:
        Merged EnvironmentConfig

    Raises:
        ConfigurationError: If the selector is missing, unknown, or the
            selected configuration is incomplete

    Example:
        config = resolve_environment({
            "env": "dev",
            "repository_owner": "acme",
            "infrastructure_repo_name": "infra",
            "dev": {"infrastructure_branch_name": "main"},
        })
    """
    selector = context.get("env")
    if not selector or selector not in ENVIRONMENTS:
        raise ConfigurationError(
            "Please supply the env context variable: "
            f"infrapipe deploy -c env={'/'.join(ENVIRONMENTS)}"
        )

    raw_block = context.get(selector)
    if not isinstance(raw_block, Mapping):
        raise ConfigurationError(
            f"Missing configuration block for environment '{selector}'"
        )

    try:
        block = EnvironmentBlock(**raw_block)
        if block.env_name is not None and block.env_name != selector:
            raise ConfigurationError(
                f"Environment block '{selector}' declares env_name '{block.env_name}'"
            )
        config = EnvironmentConfig(**{
            **block.model_dump(),
            "env_name": selector,
            "repository_owner": context.get("repository_owner"),
            "infrastructure_repo_name": context.get("infrastructure_repo_name"),
            "description": DESCRIPTION_TEMPLATE.format(env=selector),
        })
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration for environment '{selector}': {e}"
        ) from e

    logger.debug("Resolved environment %s: %s", selector, config.repository)
    return config


def parse_overrides(overrides: Iterable[str]) -> dict[str, Any]:
    """
    Parse `key=value` context overrides.

    Dotted keys address nested blocks, so `dev.infrastructure_branch_name=main`
    sets the branch of the dev block.
    """
    context: dict[str, Any] = {}
    for item in overrides:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigurationError(f"Context override must be key=value, got '{item}'")

        target = context
        *parents, leaf = key.split(".")
        for part in parents:
            target = target.setdefault(part, {})
            if not isinstance(target, dict):
                raise ConfigurationError(f"Context key '{part}' is not a block")
        target[leaf] = value.strip()
    return context


def merge_context(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge overrides into a copy of base."""
    merged = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_context(current, value)
        else:
            merged[key] = value
    return merged


def load_context(
    path: str | Path | None = None,
    overrides: Iterable[str] = (),
) -> dict[str, Any]:
    """
    Load the context from a YAML file and apply command-line overrides.

    A missing file yields an empty context, so everything can also be
    supplied through overrides.

    Args:
        path: Context file (defaults to ./infrapipe.yaml)
        overrides: `key=value` strings applied on top of the file

    Returns:
        Context mapping

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping
    """
    context_path = Path(path or DEFAULT_CONTEXT_FILE)
    context: dict[str, Any] = {}

    if context_path.exists():
        try:
            loaded = yaml.safe_load(context_path.read_text())
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid context file {context_path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Context file {context_path} must contain a mapping")
        context = loaded
        logger.debug("Loaded context from %s", context_path)
    elif path is not None:
        logger.warning("Context file %s not found, using overrides only", context_path)

    return merge_context(context, parse_overrides(overrides))
