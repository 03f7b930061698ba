"""Test doubles for the privilege tool and the clock."""

from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from privileges_extender.gateway.runner import CommandResult

STANDARD_OUTPUT = "User has standard user privileges.\n"
ADMIN_OUTPUT = "User has admin privileges.\n"

T0 = datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)


class FakeRunner:
    """CommandRunner returning scripted results keyed by the first argument.

    Attributes:
        results: Result per first argument ("--status", "--add", "--remove")
        calls: Every argument list received, in order
        on_run: Optional coroutine invoked during each call, before it returns
        raise_error: Exception raised instead of returning a result
    """

    def __init__(self) -> None:
        self.results: dict[str, CommandResult] = {
            "--status": CommandResult(0, STANDARD_OUTPUT),
            "--add": CommandResult(0, ""),
            "--remove": CommandResult(0, ""),
        }
        self.calls: list[list[str]] = []
        self.executables: list[str] = []
        self.on_run: Callable[[list[str]], Awaitable[None]] | None = None
        self.raise_error: Exception | None = None

    def set_status(self, output: str, exit_code: int = 0) -> None:
        self.results["--status"] = CommandResult(exit_code, output)

    def fail(self, command: str, exit_code: int = 1, output: str = "", stderr: str = "") -> None:
        self.results[command] = CommandResult(exit_code, output, stderr)

    def count(self, command: str) -> int:
        return sum(1 for args in self.calls if args and args[0] == command)

    async def run(self, executable: str, args: list[str]) -> CommandResult:
        self.calls.append(list(args))
        self.executables.append(executable)
        if self.on_run is not None:
            await self.on_run(list(args))
        if self.raise_error is not None:
            raise self.raise_error
        result = self.results.get(args[0], CommandResult(0, ""))
        # A successful --add/--remove changes what --status reports next
        if result.exit_code == 0 and args[0] == "--add":
            self.results["--status"] = CommandResult(0, ADMIN_OUTPUT)
        elif result.exit_code == 0 and args[0] == "--remove":
            self.results["--status"] = CommandResult(0, STANDARD_OUTPUT)
        return result


class FakeClock:
    """Clock advanced by hand."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now
