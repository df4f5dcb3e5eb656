"""
Compilation module: stack to provisioning-engine resources.
"""

from infrapipe.compilation.compiler import CompiledStack, Compiler
from infrapipe.compilation.pulumi_compiler import PulumiCompiler, export_pulumi

__all__ = ["CompiledStack", "Compiler", "PulumiCompiler", "export_pulumi"]
