"""
Executor: Abstract interface for pipeline execution.

Executors run a pipeline definition against a concrete substrate. The cloud
substrate (CodePipeline) is the deployed target; LocalExecutor simulates the
same stage semantics with pluggable source and build collaborators.
"""

from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from infrapipe.core.pipeline import Pipeline


class Executor(ABC):
    """
    Abstract executor interface.

    The executor is responsible for:
    1. Running stages strictly in order, one at a time
    2. Passing artifacts from producers to consumers
    3. Stopping the run at the first failing stage
    """

    @abstractmethod
    def execute(self, pipeline: 'Pipeline') -> Any:
        """
        Execute a pipeline.

        Args:
            pipeline: The pipeline to execute

        Returns:
            Execution result (executor-specific)
        """
        pass

    @abstractmethod
    def get_status(self) -> dict[str, Any]:
        """
        Get execution status.

        Returns:
            Dictionary with execution status information
        """
        pass
