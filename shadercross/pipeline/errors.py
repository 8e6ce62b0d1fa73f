"""
Exceptions raised by the shader cross-compilation pipeline.

Compilation failures caused by user code are never raised; they are returned
as ``CompilationResult`` values. The exceptions defined here signal
operational problems with the environment the pipeline runs in.
"""

from pathlib import Path


class ShaderCrossError(Exception):
    """Base class for operational pipeline errors.

    Examples:
        >>> raise ShaderCrossError("slangc crashed")
        ShaderCrossError: slangc crashed
    """

    def __init__(self, message: str):
        """Initialize the exception with a message.

        Args:
            message: The error message
        """
        self.message = message
        super().__init__(message)


class ToolchainUnavailableError(ShaderCrossError):
    """An external compiler executable could not be launched at all."""

    def __init__(self, tool: str, path: str, reason: str = "not found"):
        """Initialize with the tool identity.

        Args:
            tool: Tool name as shown to users
            path: Configured executable path
            reason: Short description of the launch failure
        """
        self.tool = tool
        self.path = path
        super().__init__(f"{tool} is unavailable at '{path}': {reason}")


class WorkspaceError(ShaderCrossError):
    """The scratch workspace could not be created, written or removed."""

    def __init__(self, message: str, path: Path | None = None):
        """Initialize with the offending path.

        Args:
            message: The error message
            path: Workspace path involved, if known
        """
        self.path = path
        location = f" ({path})" if path is not None else ""
        super().__init__(f"{message}{location}")
