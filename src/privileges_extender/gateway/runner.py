"""Process execution for the privilege tool."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class ToolTimeoutError(Exception):
    """Raised when the tool does not finish within the configured timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


@dataclass(frozen=True)
class CommandResult:
    """Captured result of one tool invocation.

    Attributes:
        exit_code: Process return code
        stdout: Decoded standard output
        stderr: Decoded standard error
    """

    exit_code: int
    stdout: str
    stderr: str = ""

    @property
    def combined_output(self) -> str:
        return self.stdout + self.stderr


class CommandRunner(Protocol):
    """Runs an executable and captures its output.

    Implementations raise OSError when the process cannot be spawned and
    ToolTimeoutError when it does not finish in time.
    """

    async def run(self, executable: str, args: list[str]) -> CommandResult: ...


class SubprocessRunner:
    """CommandRunner backed by asyncio subprocesses.

    Attributes:
        timeout_seconds: Upper bound for a single call, None for no limit
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds

    async def run(self, executable: str, args: list[str]) -> CommandResult:
        """Spawn the executable, wait for it and capture both streams.

        Args:
            executable: Path to the executable
            args: Command line arguments

        Returns:
            CommandResult with exit code and decoded output

        Raises:
            OSError: If the process cannot be started
            ToolTimeoutError: If the process exceeds timeout_seconds
        """
        process = await asyncio.create_subprocess_exec(
            executable,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            raise ToolTimeoutError(self.timeout_seconds or 0) from None

        return CommandResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Gracefully terminate the process."""
        if process.returncode is not None:
            return
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning(f"[Runner] Process {process.pid} ignored SIGTERM, killing")
            process.kill()
            await process.wait()
