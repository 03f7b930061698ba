"""FastMCP server exposing the privilege elevation commands."""

import asyncio
import logging
import signal
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastmcp import FastMCP
from pydantic import Field

from .config import Settings
from .core.session_host import SessionHost
from .models.errors import GatewayError
from .storage.log_store import LogStore

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> LogStore:
    """Send logs to stderr and to the configured log file.

    Args:
        settings: Application settings

    Returns:
        LogStore for the configured log file
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("privileges_extender").setLevel(level)

    log_store = LogStore(settings.get_log_path())
    try:
        logging.getLogger("privileges_extender").addHandler(log_store.create_handler(level))
    except OSError as e:
        logger.warning(f"Cannot write log file {log_store.path}: {e}")
    return log_store


def _command_result(host: SessionHost, error: GatewayError | None) -> dict[str, Any]:
    return {
        "success": error is None,
        "error": error.message if error else None,
        "status": host.current_status_snapshot().to_dict(),
    }


def _invalid_request(host: SessionHost, message: str) -> dict[str, Any]:
    return {
        "success": False,
        "error": message,
        "status": host.current_status_snapshot().to_dict(),
    }


def create_server(host: SessionHost, log_store: LogStore | None = None) -> FastMCP:
    """Build the MCP server for a host.

    The server's lifespan starts the host and shuts it down, so an
    "until exit" elevation is revoked when the server stops.

    Args:
        host: Session host receiving the commands
        log_store: Log file access for the log tools

    Returns:
        Configured FastMCP server
    """
    log_store = log_store or LogStore(host.settings.get_log_path())

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        await host.start()
        try:
            yield {}
        finally:
            await host.shutdown()

    mcp = FastMCP("privileges-extender", lifespan=lifespan)

    @mcp.tool(
        annotations={
            "title": "Elevate privileges",
            "readOnlyHint": False,
            "destructiveHint": False,
        }
    )
    async def elevate(
        reason: Annotated[str, Field(description="Why admin privileges are needed")],
        duration_minutes: Annotated[int, Field(
            default=30,
            description="Grant length in minutes; -1 until exit, 0 indefinitely",
        )] = 30,
    ) -> dict[str, Any]:
        """Grant admin privileges and keep them alive for the chosen duration."""
        try:
            duration = host.duration_for_minutes(duration_minutes)
            error = await host.request_elevate(reason, duration)
        except ValueError as e:
            return _invalid_request(host, str(e))
        return _command_result(host, error)

    @mcp.tool(annotations={"title": "Revoke privileges", "destructiveHint": True})
    async def revoke() -> dict[str, Any]:
        """Drop admin privileges now and stop tracking the session."""
        error = await host.request_revoke()
        return _command_result(host, error)

    @mcp.tool(annotations={"title": "Toggle auto-extend"})
    async def toggle_auto_extend() -> dict[str, Any]:
        """Turn re-elevation after an external timeout on or off."""
        enabled = await host.toggle_auto_extend()
        return {"auto_extend_enabled": enabled}

    @mcp.tool(annotations={"title": "Status", "readOnlyHint": True})
    async def get_status() -> dict[str, Any]:
        """Current elevation session and last observed privilege status."""
        return host.current_status_snapshot().to_dict()

    @mcp.tool(annotations={"title": "Options", "readOnlyHint": True})
    async def list_options() -> dict[str, Any]:
        """Configured reasons and durations."""
        return {
            "reasons": list(host.settings.reasons),
            "durations": [
                {"label": d.label, "minutes": d.minutes} for d in host.durations
            ],
        }

    @mcp.tool(annotations={"title": "Update configuration"})
    async def update_config(
        re_elevation_interval_seconds: Annotated[int | None, Field(
            default=None,
            description="Seconds between re-elevations (minimum 60)",
        )] = None,
        privileges_tool_path: Annotated[str | None, Field(
            default=None,
            description="Path to the privileges command line tool",
        )] = None,
    ) -> dict[str, Any]:
        """Apply configuration changes without restarting."""
        await host.apply_config_update(
            re_elevation_interval_seconds=re_elevation_interval_seconds,
            privileges_tool_path=privileges_tool_path,
        )
        return host.current_status_snapshot().to_dict()

    @mcp.tool(annotations={"title": "Read logs", "readOnlyHint": True})
    async def read_logs(
        lines: Annotated[int, Field(default=200, description="Number of trailing lines")] = 200,
    ) -> dict[str, Any]:
        """Last lines of the application log."""
        return {"path": str(log_store.path), "content": log_store.tail(lines)}

    @mcp.tool(annotations={"title": "Clear logs", "destructiveHint": True})
    async def clear_logs() -> dict[str, Any]:
        """Empty the application log file."""
        log_store.clear()
        return {"path": str(log_store.path), "cleared": True}

    return mcp


async def _graceful_shutdown(host: SessionHost, sig: signal.Signals) -> None:
    """Handle graceful shutdown on signal.

    Args:
        host: Host to shut down
        sig: Signal that triggered shutdown
    """
    logger.info(f"Received {sig.name}, initiating graceful shutdown...")
    try:
        await host.shutdown()
    except Exception as e:
        logger.warning(f"Error during host shutdown: {e}")

    logger.info("Graceful shutdown complete")
    sys.exit(0)


def _setup_signal_handlers(host: SessionHost) -> None:
    """Setup signal handlers for graceful shutdown.

    Uses signal.signal() to work before the event loop is running.
    The handler schedules the async shutdown task on the running event loop.
    """
    def _signal_handler(sig: int, frame: Any) -> None:
        signal_enum = signal.Signals(sig)
        logger.info(f"Received {signal_enum.name}, scheduling graceful shutdown...")

        try:
            loop = asyncio.get_running_loop()
            loop.create_task(_graceful_shutdown(host, signal_enum))
        except RuntimeError:
            logger.warning("No event loop running, cannot schedule graceful shutdown")
            sys.exit(1)

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            signal.signal(sig, _signal_handler)
            logger.debug(f"Registered signal handler for {sig.name}")
        except (ValueError, OSError) as e:
            logger.debug(f"Signal handler for {sig.name} not supported: {e}")


def main() -> None:
    """Main entry point for the privileges extender server."""
    settings = Settings()
    log_store = configure_logging(settings)

    logger.info("Starting privileges extender...")
    host = SessionHost(settings)
    mcp = create_server(host, log_store)

    _setup_signal_handlers(host)

    mcp.run(show_banner=False)


if __name__ == "__main__":
    main()
