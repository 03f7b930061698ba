"""Owner of the session, gateway and control loop for one process."""

import logging
from datetime import datetime
from typing import Callable

from ..config import Settings
from ..gateway.privilege_gateway import PrivilegeGateway
from ..gateway.runner import CommandRunner, SubprocessRunner
from ..models.errors import GatewayError
from ..models.session import INDEFINITE_MINUTES, UNTIL_EXIT_MINUTES, DurationOption
from ..models.status import StatusSnapshot
from .control_loop import ControlLoop, utc_now
from .elevation_session import ElevationSession

logger = logging.getLogger(__name__)

ADOPTED_REASON = "Elevated outside privileges-extender"
ADOPTED_DURATION = DurationOption(label="Indefinitely", minutes=INDEFINITE_MINUTES)

SnapshotListener = Callable[[StatusSnapshot], None]


class SessionHost:
    """Wires one ElevationSession, PrivilegeGateway and ControlLoop together.

    Built once at startup and handed to whatever surface issues commands.
    Collaborators read snapshots and push configuration through
    ``apply_config_update``; only the control loop mutates the session.

    Attributes:
        settings: Current settings
        session: The tracked elevation session
        loop: Control loop driving the session
        durations: Duration options offered to the user
        tool_available: Result of the last tool availability check
    """

    def __init__(
        self,
        settings: Settings,
        runner: CommandRunner | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize host.

        Args:
            settings: Application settings
            runner: Process runner override (tests inject fakes)
            clock: Source of the current time
        """
        self.settings = settings
        self._runner = runner
        self._clock = clock
        self._listeners: list[SnapshotListener] = []

        self.durations = [DurationOption(d.label, d.minutes) for d in settings.durations]
        self.session = ElevationSession(settings.clamped_interval())
        self.loop = ControlLoop(
            session=self.session,
            gateway=self._build_gateway(settings.privileges_tool_path),
            tick_interval_seconds=settings.tick_interval_seconds,
            auto_extend_enabled=settings.auto_extend_enabled,
            clock=clock,
            on_refresh=self._refresh,
            on_session_lost=self._session_lost,
        )
        self.tool_available = False
        self._shut_down = False

    def _build_gateway(self, tool_path: str) -> PrivilegeGateway:
        runner = self._runner or SubprocessRunner(self.settings.tool_timeout_seconds)
        return PrivilegeGateway(tool_path, runner)

    # Lifecycle

    async def start(self) -> None:
        """Check the tool and pick up an elevation that already exists."""
        logger.info(
            f"[SessionHost] Starting: tool={self.settings.privileges_tool_path}, "
            f"interval={self.session.re_elevation_interval_seconds:g}s, "
            f"tick={self.settings.tick_interval_seconds:g}s"
        )

        self.tool_available = self.loop.gateway.is_available()
        if not self.tool_available:
            logger.error(
                f"[SessionHost] Privileges tool not available at "
                f"{self.loop.gateway.resolved_path}; commands will fail until the path is fixed"
            )
            self._refresh()
            return

        if not self.settings.adopt_existing_elevation:
            logger.info("[SessionHost] Not adopting existing elevation (disabled in settings)")
            self._refresh()
            return

        if await self.loop.adopt_existing_elevation(ADOPTED_REASON, ADOPTED_DURATION):
            logger.info("[SessionHost] Privileges already elevated at startup, tracking indefinitely")

    async def shutdown(self) -> None:
        """Stop ticking and release an 'until exit' grant. Runs once."""
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("[SessionHost] Shutting down")
        await self.loop.stop()
        await self.loop.release_on_exit()

    # Commands

    async def request_elevate(self, reason: str, duration: DurationOption) -> GatewayError | None:
        """Elevate for the given reason and duration.

        Raises:
            ValueError: If reason is empty
        """
        reason = reason.strip()
        if not reason:
            raise ValueError("A reason is required to elevate privileges")
        return await self.loop.elevate(reason, duration)

    async def request_revoke(self) -> GatewayError | None:
        return await self.loop.revoke()

    async def toggle_auto_extend(self) -> bool:
        return await self.loop.toggle_auto_extend()

    async def apply_config_update(
        self,
        re_elevation_interval_seconds: int | None = None,
        privileges_tool_path: str | None = None,
    ) -> None:
        """Apply new configuration values between ticks.

        The gateway is only rebuilt when the tool path actually changed.

        Args:
            re_elevation_interval_seconds: New interval (clamped to >= 60)
            privileges_tool_path: New tool path
        """
        updates: dict[str, object] = {}
        gateway = None

        if re_elevation_interval_seconds is not None:
            updates["re_elevation_interval_seconds"] = re_elevation_interval_seconds

        if privileges_tool_path and privileges_tool_path != self.loop.gateway.tool_path:
            updates["privileges_tool_path"] = privileges_tool_path
            gateway = self._build_gateway(privileges_tool_path)
            logger.info(f"[SessionHost] Tool path changed to {privileges_tool_path}")

        if updates:
            self.settings = self.settings.model_copy(update=updates)

        await self.loop.apply_config(
            re_elevation_interval_seconds=re_elevation_interval_seconds,
            gateway=gateway,
        )
        self.tool_available = self.loop.gateway.is_available()
        if gateway is not None and not self.tool_available:
            logger.error(f"[SessionHost] Privileges tool not available at {gateway.resolved_path}")

    def duration_for_minutes(self, minutes: int) -> DurationOption:
        """Resolve a configured duration, or build one for an ad-hoc length.

        Raises:
            ValueError: If minutes is below the "until exit" sentinel
        """
        for option in self.durations:
            if option.minutes == minutes:
                return option
        if minutes == UNTIL_EXIT_MINUTES:
            return DurationOption(label="Until exit", minutes=minutes)
        if minutes == INDEFINITE_MINUTES:
            return DurationOption(label="Indefinitely", minutes=minutes)
        if minutes < UNTIL_EXIT_MINUTES:
            raise ValueError(f"Invalid duration: {minutes} minutes")
        return DurationOption(
            label=ElevationSession.format_remaining_time(minutes * 60),
            minutes=minutes,
        )

    # Snapshots

    def add_listener(self, listener: SnapshotListener) -> None:
        """Register a callback receiving a snapshot after every change."""
        self._listeners.append(listener)

    def current_status_snapshot(self) -> StatusSnapshot:
        now = self._clock()
        session = self.session
        duration = session.active_duration
        remaining = session.remaining_time(now)

        return StatusSnapshot(
            state=session.state.kind.value,
            reason=session.active_reason,
            duration_label=duration.label if duration else None,
            duration_minutes=duration.minutes if duration else None,
            started_at=session.active_start_time,
            remaining_seconds=remaining,
            remaining_label=(
                ElevationSession.format_remaining_time(remaining) if remaining is not None else None
            ),
            auto_extend_enabled=self.loop.auto_extend_enabled,
            privilege_status=self.loop.last_status.value,
            tick_armed=self.loop.is_armed,
            tool_path=self.loop.gateway.tool_path,
            tool_available=self.tool_available,
            last_error=self.loop.last_error,
        )

    def _refresh(self) -> None:
        if not self._listeners:
            return
        snapshot = self.current_status_snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"[SessionHost] Listener failed: {e}")

    def _session_lost(self, message: str) -> None:
        logger.warning(f"[SessionHost] {message}")
