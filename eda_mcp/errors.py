"""
Error types shared by the EDA tool server.

Only ToolArgumentError and UnknownToolError are meant to reach the protocol
layer. Everything else is caught by the flow drivers and turned into a
``{"success": False, "error": ...}`` envelope.
"""


class EDAServerError(Exception):
    """Base class for all server errors."""


class ToolArgumentError(EDAServerError):
    def __init__(self, tool_name: str, parameter: str, reason: str = "Missing required parameter"):
        self.tool_name = tool_name
        self.parameter = parameter
        super().__init__(f"{reason} '{parameter}' for tool '{tool_name}'")


class UnknownToolError(EDAServerError):
    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")


class WorkspaceNotFoundError(EDAServerError):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found.")


class ProcessError(EDAServerError):
    """Base class for failures of an external command."""

    def __init__(self, message: str, command: str):
        self.command = command
        super().__init__(message)


class ProcessLaunchError(ProcessError):
    def __init__(self, command: str, reason: str):
        self.reason = reason
        super().__init__(f"Failed to launch command: {command} ({reason})", command)


class ProcessTimeoutError(ProcessError):
    def __init__(self, command: str, timeout: float):
        self.timeout = timeout
        super().__init__(f"Command timed out after {int(timeout * 1000)}ms: {command}", command)


class NonZeroExitError(ProcessError):
    def __init__(self, command: str, returncode: int, stdout: str = "", stderr: str = ""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"Command failed with exit code {returncode}: {command}\n{stderr}", command)


class OutputLimitError(ProcessError):
    def __init__(self, command: str, stream: str, limit: int):
        self.stream = stream
        self.limit = limit
        super().__init__(f"{stream} exceeded {limit} bytes: {command}", command)
