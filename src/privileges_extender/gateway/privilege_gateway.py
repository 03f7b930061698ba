"""Gateway to the external privilege-control tool."""

import os
import re
from pathlib import Path

from ..models.errors import (
    GatewayError,
    NonZeroExit,
    SpawnFailure,
    ToolNotFound,
    UnexpectedOutput,
)
from ..models.session import PrivilegeStatus
from .runner import CommandRunner, SubprocessRunner, ToolTimeoutError

STATUS_ARGS = ["--status"]
ADD_ARGS = ["--add", "--reason"]
REMOVE_ARGS = ["--remove"]

_NEGATION = re.compile(r"\bnot\b")


def parse_status(output: str) -> PrivilegeStatus:
    """Classify the tool's status text.

    Negated phrasing is checked before the positive "admin" match, otherwise
    "User is not an admin" would read as elevated.

    Args:
        output: Text printed by the tool for --status

    Returns:
        Parsed PrivilegeStatus

    Examples:
        >>> parse_status("User has admin privileges.")
        <PrivilegeStatus.ELEVATED: 'elevated'>
        >>> parse_status("User is not an admin.")
        <PrivilegeStatus.STANDARD: 'standard'>
    """
    lowered = output.lower()
    if _NEGATION.search(lowered) or "standard" in lowered:
        return PrivilegeStatus.STANDARD
    if "admin" in lowered:
        return PrivilegeStatus.ELEVATED
    return PrivilegeStatus.UNKNOWN


class PrivilegeGateway:
    """Invokes the privilege tool to query, elevate or revoke.

    Every call is a single attempt; retry policy belongs to the caller.
    The gateway does not log, callers log each outcome.

    Attributes:
        tool_path: Configured executable path (may contain ~)
        runner: Process runner used for every call
    """

    def __init__(self, tool_path: str, runner: CommandRunner | None = None) -> None:
        self.tool_path = tool_path
        self.runner = runner or SubprocessRunner()

    @property
    def resolved_path(self) -> str:
        return str(Path(self.tool_path).expanduser())

    def is_available(self) -> bool:
        """Check that the tool exists and is executable."""
        path = self.resolved_path
        return os.path.isfile(path) and os.access(path, os.X_OK)

    async def check_status(self) -> PrivilegeStatus:
        """Query the current privilege status.

        Any failure to run the tool or to read its answer maps to UNKNOWN.
        """
        result = await self.check_status_detailed()
        if isinstance(result, GatewayError):
            return PrivilegeStatus.UNKNOWN
        return result

    async def check_status_detailed(self) -> PrivilegeStatus | GatewayError:
        """Query the current privilege status, keeping the failure reason.

        Returns:
            Parsed status, or the GatewayError explaining why none is available
        """
        outcome = await self._invoke(STATUS_ARGS)
        if isinstance(outcome, GatewayError):
            return outcome

        status = parse_status(outcome)
        if status is PrivilegeStatus.UNKNOWN:
            return UnexpectedOutput(outcome)
        return status

    async def elevate(self, reason: str) -> GatewayError | None:
        """Request admin privileges.

        Args:
            reason: Justification passed to the tool

        Returns:
            None on success, otherwise the failure
        """
        outcome = await self._invoke([*ADD_ARGS, reason])
        return outcome if isinstance(outcome, GatewayError) else None

    async def revoke(self) -> GatewayError | None:
        """Drop admin privileges.

        Returns:
            None on success, otherwise the failure
        """
        outcome = await self._invoke(REMOVE_ARGS)
        return outcome if isinstance(outcome, GatewayError) else None

    async def _invoke(self, args: list[str]) -> str | GatewayError:
        """Run the tool once.

        Args:
            args: Arguments for the tool

        Returns:
            Standard output on exit code 0, otherwise a GatewayError
        """
        if not self.is_available():
            return ToolNotFound(self.resolved_path)

        try:
            result = await self.runner.run(self.resolved_path, args)
        except ToolTimeoutError as e:
            return SpawnFailure(str(e))
        except OSError as e:
            return SpawnFailure(str(e) or e.__class__.__name__)
        except ValueError as e:
            # Arguments the OS cannot pass: embedded NUL, unencodable text
            return SpawnFailure(f"Invalid argument: {e}")

        if result.exit_code != 0:
            return NonZeroExit(result.exit_code, result.combined_output)
        return result.stdout
