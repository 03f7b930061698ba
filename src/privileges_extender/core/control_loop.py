"""Periodic reconciliation between the tracked session and the privilege tool."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from ..models.errors import GatewayError
from ..models.session import DurationOption, PrivilegeStatus
from ..gateway.privilege_gateway import PrivilegeGateway
from .elevation_session import ElevationSession

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_SECONDS = 30.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ControlLoop:
    """Drives the elevation session from a periodic tick and user commands.

    Serialization contract: every tick, command and configuration update
    runs under ``_lock``, so at most one of them touches the session or
    calls the gateway at a time. Gateway calls await a subprocess, which is
    where a pending tick could otherwise run; the lock and the
    disarm-before-revoke ordering in ``revoke`` keep that window closed.

    Attributes:
        session: The single tracked elevation session
        gateway: Privilege tool gateway
        tick_interval_seconds: Delay between reconciliation ticks
        auto_extend_enabled: Re-elevate after privileges are lost externally
        last_status: Privilege status observed on the most recent tick
        last_error: Message of the most recent failure, if any
    """

    def __init__(
        self,
        session: ElevationSession,
        gateway: PrivilegeGateway,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        auto_extend_enabled: bool = True,
        clock: Callable[[], datetime] = utc_now,
        on_refresh: Callable[[], None] | None = None,
        on_session_lost: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize control loop.

        Args:
            session: Session to drive
            gateway: Gateway used for status, elevate and revoke
            tick_interval_seconds: Delay between ticks
            auto_extend_enabled: Initial auto-extend setting
            clock: Source of the current time
            on_refresh: Called after every tick and command
            on_session_lost: Called with a message when tracking is abandoned
        """
        self.session = session
        self.gateway = gateway
        self.tick_interval_seconds = tick_interval_seconds
        self.auto_extend_enabled = auto_extend_enabled
        self.clock = clock
        self.on_refresh = on_refresh
        self.on_session_lost = on_session_lost

        self.last_status = PrivilegeStatus.UNKNOWN
        self.last_error: str | None = None

        self._lock = asyncio.Lock()
        self._ticker: asyncio.Task | None = None
        # Expired but the tool has not confirmed the revoke yet
        self._revoke_pending = False

    # Tick scheduling

    @property
    def is_armed(self) -> bool:
        return self._ticker is not None

    @property
    def revoke_pending(self) -> bool:
        return self._revoke_pending

    def arm(self) -> None:
        """Start periodic ticks. No-op if already armed."""
        if self._ticker is not None:
            return
        self._ticker = asyncio.create_task(self._run_ticks())
        logger.debug(f"[ControlLoop] Tick armed (every {self.tick_interval_seconds:g}s)")

    def disarm(self) -> None:
        """Stop periodic ticks. Safe to call repeatedly and from inside a tick."""
        task = self._ticker
        self._ticker = None
        if task is None:
            return
        if task is not asyncio.current_task() and not task.done():
            task.cancel()
        logger.debug("[ControlLoop] Tick disarmed")

    async def stop(self) -> None:
        """Disarm and wait for the tick task to finish."""
        async with self._lock:
            task = self._ticker
            self.disarm()
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run_ticks(self) -> None:
        current = asyncio.current_task()
        while self._ticker is current:
            await asyncio.sleep(self.tick_interval_seconds)
            async with self._lock:
                # Disarmed while waiting for the lock
                if self._ticker is not current:
                    break
                try:
                    await self._reconcile(self.clock())
                except Exception:
                    logger.exception("[ControlLoop] Reconciliation tick failed")

    async def tick(self, now: datetime | None = None) -> None:
        """Run one reconciliation immediately."""
        async with self._lock:
            await self._reconcile(now or self.clock())

    # Reconciliation

    async def _reconcile(self, now: datetime) -> None:
        """One reconciliation pass. Caller must hold the lock."""
        status = await self.gateway.check_status()
        self.last_status = status
        logger.debug(f"[ControlLoop] Status check: {status.value}")

        try:
            if self.session.is_active and status is PrivilegeStatus.STANDARD:
                if not await self._handle_drift(now):
                    return

            if self._revoke_pending and status is PrivilegeStatus.STANDARD:
                logger.info("[ControlLoop] Privileges already standard, expired session finished")
                self._finish_expired()
                return

            if self._revoke_pending or self.session.check_expiry(now):
                await self._revoke_expired()
                return

            if self.session.should_re_elevate(now):
                await self._re_elevate(now)
        finally:
            self._notify()

    async def _handle_drift(self, now: datetime) -> bool:
        """Privileges were lost while the session is active.

        Returns:
            True if the tick should continue with the remaining steps
        """
        if self.session.is_expired(now):
            logger.info("[ControlLoop] Privileges lost after session expired, ending session")
            self.session.stop()
            self.disarm()
            self._report_lost("Elevation session ended: privileges expired")
            return False

        if not self.auto_extend_enabled:
            logger.info("[ControlLoop] Privileges lost externally, auto-extend disabled, not re-elevating")
            return True

        reason = self.session.active_reason or ""
        logger.info(f"[ControlLoop] Privileges lost externally, re-elevating with reason: {reason}")
        error = await self.gateway.elevate(reason)
        if error is None:
            self.session.record_re_elevation(now)
            logger.info("[ControlLoop] Re-elevation after external timeout successful")
            return True

        logger.error(f"[ControlLoop] Re-elevation after external timeout failed: {error.message}")
        self.session.stop()
        self.disarm()
        self._report_lost(f"Could not restore privileges: {error.message}")
        return False

    async def _revoke_expired(self) -> None:
        logger.info("[ControlLoop] Session expired, revoking privileges")
        error = await self.gateway.revoke()
        if error is None:
            self._finish_expired()
            logger.info("[ControlLoop] Privileges revoked after expiry")
            return

        self._revoke_pending = True
        self.last_error = error.message
        logger.error(f"[ControlLoop] Revoke after expiry failed, retrying next tick: {error.message}")

    def _finish_expired(self) -> None:
        self._revoke_pending = False
        self.session.stop()
        self.disarm()

    async def _re_elevate(self, now: datetime) -> None:
        reason = self.session.active_reason or ""
        logger.info(f"[ControlLoop] Scheduled re-elevation with reason: {reason}")
        error = await self.gateway.elevate(reason)
        if error is None:
            self.session.record_re_elevation(now)
            logger.info("[ControlLoop] Scheduled re-elevation successful")
            return

        self.last_error = error.message
        logger.warning(f"[ControlLoop] Scheduled re-elevation failed, retrying next tick: {error.message}")

    # Commands

    async def elevate(self, reason: str, duration: DurationOption) -> GatewayError | None:
        """Elevate now and start tracking the grant.

        Args:
            reason: Reason passed to the tool
            duration: Grant length

        Returns:
            None on success, otherwise the gateway failure
        """
        async with self._lock:
            logger.info(f"[ControlLoop] Elevating with reason: {reason}, duration: {duration.label}")
            error = await self.gateway.elevate(reason)
            if error is None:
                self.session.start(reason, duration, self.clock())
                self._revoke_pending = False
                self.last_status = PrivilegeStatus.ELEVATED
                self.last_error = None
                self.arm()
                logger.info("[ControlLoop] Elevation successful")
            else:
                self.last_error = error.message
                logger.error(f"[ControlLoop] Elevation failed: {error.message}")
            self._notify()
            return error

    async def revoke(self) -> GatewayError | None:
        """Revoke privileges at the user's request.

        The tick is disarmed before the tool runs: a tick firing while the
        revoke is in flight would see an active session with standard
        privileges, treat it as drift and re-elevate. The session stays
        active until the tool confirms, and the tick is re-armed on failure.

        Returns:
            None on success, otherwise the gateway failure
        """
        async with self._lock:
            self.disarm()
            logger.info("[ControlLoop] Revoking privileges")
            error = await self.gateway.revoke()
            if error is None:
                self.session.stop()
                self._revoke_pending = False
                self.last_status = PrivilegeStatus.STANDARD
                self.last_error = None
                logger.info("[ControlLoop] Privileges revoked")
            else:
                self.last_error = error.message
                logger.error(f"[ControlLoop] Revoke failed: {error.message}")
                if self.session.is_active or self._revoke_pending:
                    self.arm()
            self._notify()
            return error

    async def toggle_auto_extend(self) -> bool:
        """Flip auto-extend between ticks and return the new value."""
        async with self._lock:
            self.auto_extend_enabled = not self.auto_extend_enabled
            logger.info(f"[ControlLoop] Auto-extend {'enabled' if self.auto_extend_enabled else 'disabled'}")
            self._notify()
            return self.auto_extend_enabled

    async def adopt_existing_elevation(self, reason: str, duration: DurationOption) -> bool:
        """Track privileges that were already elevated when we started.

        Returns:
            True if the tool reported elevated privileges and a session was started
        """
        async with self._lock:
            status = await self.gateway.check_status()
            self.last_status = status
            if status is not PrivilegeStatus.ELEVATED or self.session.is_active:
                return False
            self.session.start(reason, duration, self.clock())
            self.arm()
            logger.info(f"[ControlLoop] Adopted existing elevation as '{duration.label}'")
            self._notify()
            return True

    async def apply_config(
        self,
        re_elevation_interval_seconds: float | None = None,
        gateway: PrivilegeGateway | None = None,
    ) -> None:
        """Apply a configuration update between ticks.

        Args:
            re_elevation_interval_seconds: New interval, clamped to the minimum
            gateway: Replacement gateway when the tool path changed
        """
        async with self._lock:
            if re_elevation_interval_seconds is not None:
                self.session.re_elevation_interval_seconds = re_elevation_interval_seconds
                logger.info(
                    f"[ControlLoop] Re-elevation interval set to "
                    f"{self.session.re_elevation_interval_seconds:g}s"
                )
            if gateway is not None:
                self.gateway = gateway
                logger.info(f"[ControlLoop] Gateway now uses {gateway.tool_path}")
            self._notify()

    async def release_on_exit(self) -> GatewayError | None:
        """Revoke once if the grant was meant to last only until process exit.

        Best effort: a failure is logged and not retried.

        Returns:
            The revoke failure, or None if revoked or nothing to do
        """
        async with self._lock:
            duration = self.session.active_duration
            if duration is None or not duration.is_until_process_exit:
                return None
            logger.info("[ControlLoop] Revoking 'until exit' elevation on shutdown")
            error = await self.gateway.revoke()
            if error is None:
                self.session.stop()
                logger.info("[ControlLoop] Privileges revoked on shutdown")
            else:
                logger.error(f"[ControlLoop] Revoke on shutdown failed: {error.message}")
            return error

    # Notifications

    def _report_lost(self, message: str) -> None:
        self.last_error = message
        if self.on_session_lost:
            try:
                self.on_session_lost(message)
            except Exception as e:
                logger.warning(f"[ControlLoop] Session-lost callback failed: {e}")

    def _notify(self) -> None:
        if self.on_refresh:
            try:
                self.on_refresh()
            except Exception as e:
                logger.warning(f"[ControlLoop] Refresh callback failed: {e}")
