"""
Exception hierarchy for crosstrain.

Nothing here is meant to reach the host process: converters and the
watcher catch these, log them, and keep running with the last valid state.
The only exception the host sees is HookBlockedError, raised by the
pre-invocation handler to abort a tool call.
"""


class CrosstrainError(Exception):
    """Base error for all crosstrain failures."""

    pass


class ConversionError(CrosstrainError):
    """A single asset could not be converted."""

    pass


class HookConfigError(CrosstrainError):
    """A settings document declaring hooks could not be read or decoded."""

    pass


class HookBlockedError(CrosstrainError):
    """A pre-invocation hook exited with status 2.

    Attributes:
        tool_name: Name of the tool whose invocation was aborted.
        reason: Error output of the blocking command.
    """

    def __init__(self, tool_name: str, reason: str) -> None:
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(f"Hook blocked tool execution: {reason}")
