"""Failure outcomes of privilege tool invocations.

Gateway operations return one of these instead of raising, so the control
loop can decide per call site whether a failure is retried, logged or fatal
to the session.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class GatewayError:
    """Base class for all gateway failures."""

    @property
    def message(self) -> str:
        return self.__class__.__name__


@dataclass(frozen=True)
class ToolNotFound(GatewayError):
    """The configured executable does not exist or is not executable.

    Attributes:
        path: Expanded path that was checked
    """

    path: str

    @property
    def message(self) -> str:
        return f"Privileges tool not found at {self.path}"


@dataclass(frozen=True)
class NonZeroExit(GatewayError):
    """The tool ran but exited with a non-zero code.

    Attributes:
        code: Process exit code
        output: Combined stdout and stderr
    """

    code: int
    output: str

    @property
    def message(self) -> str:
        detail = self.output.strip()
        if detail:
            return f"Tool exited with code {self.code}: {detail}"
        return f"Tool exited with code {self.code}"


@dataclass(frozen=True)
class SpawnFailure(GatewayError):
    """The process could not be started or did not finish.

    Attributes:
        description: OS error text or timeout description
    """

    description: str

    @property
    def message(self) -> str:
        return f"Failed to run tool: {self.description}"


@dataclass(frozen=True)
class UnexpectedOutput(GatewayError):
    """The tool output could not be interpreted.

    Attributes:
        text: Raw output
    """

    text: str

    @property
    def message(self) -> str:
        return f"Unexpected tool output: {self.text.strip()[:200]!r}"
