"""
Pulumi program entry point.

Resolves the environment, defines the stack and compiles it. Resolution
happens first, so a bad selector aborts before any resource is declared.
"""

from typing import Iterable

from infrapipe.compilation.pulumi_compiler import PulumiCompiler
from infrapipe.core.environment import load_context, resolve_environment
from infrapipe.core.stack import define_pipeline_stack


def main(
    env: str | None = None,
    context_file: str | None = None,
    overrides: Iterable[str] = (),
):
    import pulumi

    env = env or pulumi.Config("infrapipe").get("env")
    overrides = list(overrides)
    if env:
        overrides.append(f"env={env}")

    config = resolve_environment(load_context(context_file, overrides))
    stack = define_pipeline_stack(config)
    compiled = stack.compile(PulumiCompiler())
    compiled.export_outputs()
    return compiled
