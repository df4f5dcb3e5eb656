"""
Compiler: Turns a PipelineStack into provisioning-engine resources.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, TypedDict, TYPE_CHECKING

if TYPE_CHECKING:
    from infrapipe.core.stack import PipelineStack


class StackMetadata(TypedDict, total=False):
    """Metadata about stack compilation."""
    environment: str
    pipeline: str
    stage_count: int
    resource_count: int


@dataclass
class CompiledStack:
    """
    A compiled stack with all infrastructure resources.

    Resources are keyed by their logical id inside the stack.
    """

    stack_name: str
    resources: dict[str, Any]
    metadata: StackMetadata = field(default_factory=dict)

    def get_resource(self, name: str) -> Any | None:
        """Get a resource by logical id."""
        return self.resources.get(name)

    def list_resources(self) -> list[str]:
        """List all resource logical ids."""
        return list(self.resources.keys())

    def export_outputs(self) -> dict[str, Any]:
        """
        Create Pulumi stack outputs for all resources.

        Resources with a url (the source webhooks) also export it, since it
        is registered with the repository host after deployment.

        Returns:
            Dictionary of outputs
        """
        try:
            import pulumi
        except ImportError:
            raise ImportError("pulumi required for export_outputs()")

        outputs = {}
        for name, resource in self.resources.items():
            if hasattr(resource, 'arn'):
                pulumi.export(f"{name}_arn", resource.arn)
                outputs[f"{name}_arn"] = resource.arn
            elif hasattr(resource, 'id'):
                pulumi.export(name, resource.id)
                outputs[name] = resource.id
            if hasattr(resource, 'url'):
                pulumi.export(f"{name}_url", resource.url)
                outputs[f"{name}_url"] = resource.url

        return outputs


class Compiler(ABC):
    """
    Abstract compiler interface.

    Compilers transform the immutable stack definition into resources of a
    concrete provisioning engine.
    """

    @abstractmethod
    def compile(self, stack: 'PipelineStack') -> CompiledStack:
        """
        Compile a stack to infrastructure resources.

        Args:
            stack: The stack to compile

        Returns:
            CompiledStack with the created resources

        Raises:
            CompilationError: If compilation fails
        """
        pass
