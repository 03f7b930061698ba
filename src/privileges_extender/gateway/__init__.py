"""Gateway package wrapping the external privilege-control tool.

- PrivilegeGateway: query / elevate / revoke with typed failure results.
- SubprocessRunner: asyncio process runner used by the gateway by default.
"""

from .privilege_gateway import PrivilegeGateway, parse_status
from .runner import CommandResult, CommandRunner, SubprocessRunner, ToolTimeoutError

__all__ = [
    "CommandResult",
    "CommandRunner",
    "PrivilegeGateway",
    "SubprocessRunner",
    "ToolTimeoutError",
    "parse_status",
]
