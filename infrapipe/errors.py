"""
Error taxonomy for infrapipe.

Startup errors (ConfigurationError) abort before anything is defined.
Run-time errors (ActionFailure and subclasses) are always attributed to
exactly one stage/action so operators can localize the cause.
"""


class InfrapipeError(Exception):
    """Base class for all infrapipe errors."""
    pass


class ConfigurationError(InfrapipeError):
    """Raised when the environment selector or its configuration is invalid."""
    pass


class ActionFailure(InfrapipeError):
    """
    Raised when a pipeline action fails during a run.

    Args:
        message: Human-readable failure description
        stage: Name of the stage containing the failing action
        action: Name of the failing action
    """

    def __init__(self, message: str, stage: str | None = None, action: str | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.action = action

    def attribute(self, stage: str, action: str) -> "ActionFailure":
        """Bind the failure to the stage/action it happened in."""
        self.stage = stage
        self.action = action
        return self

    def __str__(self):
        if self.stage and self.action:
            return f"[{self.stage}/{self.action}] {self.message}"
        return self.message


class SourceFetchError(ActionFailure):
    """Repository unreachable, branch missing, or token invalid."""
    pass


class BuildFailure(ActionFailure):
    """
    Raised when a build task exits non-zero in its install or build phase.

    Args:
        message: Human-readable failure description
        phase: Build phase that failed ("install" or "build")
        exit_code: Exit code reported by the build runner
        logs: Log lines captured from the build runner
    """

    def __init__(
        self,
        message: str,
        phase: str | None = None,
        exit_code: int | None = None,
        logs: list[str] | None = None,
        stage: str | None = None,
        action: str | None = None,
    ):
        super().__init__(message, stage=stage, action=action)
        self.phase = phase
        self.exit_code = exit_code
        self.logs = list(logs or [])


class PermissionDenied(BuildFailure):
    """The execution role is not allowed to assume the requested role."""

    def __init__(self, role_arn: str, principal: str | None = None, **kwargs):
        who = f"'{principal}'" if principal else "execution role"
        super().__init__(f"{who} is not authorized to perform sts:AssumeRole on '{role_arn}'", **kwargs)
        self.role_arn = role_arn


class CompilationError(InfrapipeError):
    """Raised when stack compilation to Pulumi resources fails."""
    pass


class DeploymentError(InfrapipeError):
    """Raised when deployment fails."""
    pass
