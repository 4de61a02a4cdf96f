"""
Exceptions raised by the pipe orchestrator and its collaborators.

Failures of tool execution abort the current turn of the orchestration
loop and propagate to the caller of `Pipe.run`. Conditions that are not
errors (a stream downgraded to a single response, the call budget
running out, no local execution target) are reported through the
logger and never raised.
"""


class PipeError(Exception):
    """Base class for all errors raised by this package."""


class ToolError(PipeError):
    """Base class for failures of the tool execution phase."""


class ToolNotFoundError(ToolError, LookupError):
    """A tool call requested a name that the pipe does not declare."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Tool {name} not found. If this is intentional, please set "
            "run_tools to False to disable tool execution by default."
        )


class MalformedToolArgumentsError(ToolError, ValueError):
    """The arguments of a tool call are not a JSON object."""

    def __init__(self, name: str, arguments: str, reason: str):
        self.name = name
        self.arguments = arguments
        super().__init__(
            f"Invalid arguments for tool {name}: {reason}"
        )


class DuplicateToolError(PipeError, ValueError):
    """Two tools of the same pipe share a function name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Tool {name} is declared more than once in the pipe"
        )


class APIError(PipeError):
    """The pipe endpoint answered with a non-success status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        body: object | None = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(f"{status_code} {message}")
