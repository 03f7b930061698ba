"""Elevation session state machine."""

from datetime import datetime

from ..config import MIN_RE_ELEVATION_INTERVAL_SECONDS
from ..models.session import Active, DurationOption, ElevationState, Expired, Idle


class ElevationSession:
    """Tracks the current grant: reason, timing and re-elevation schedule.

    Every time-dependent operation takes ``now`` explicitly so callers (and
    tests) control the clock.

    Attributes:
        state: Current Idle / Active / Expired state
        last_elevation_time: Time of the initial elevation or latest
            re-elevation; None whenever the state is not Active
    """

    def __init__(self, re_elevation_interval_seconds: float = 1500) -> None:
        self.state: ElevationState = Idle()
        self.last_elevation_time: datetime | None = None
        self._re_elevation_interval_seconds = float(MIN_RE_ELEVATION_INTERVAL_SECONDS)
        self.re_elevation_interval_seconds = re_elevation_interval_seconds

    @property
    def re_elevation_interval_seconds(self) -> float:
        return self._re_elevation_interval_seconds

    @re_elevation_interval_seconds.setter
    def re_elevation_interval_seconds(self, value: float) -> None:
        self._re_elevation_interval_seconds = float(
            max(MIN_RE_ELEVATION_INTERVAL_SECONDS, value)
        )

    @property
    def is_active(self) -> bool:
        return isinstance(self.state, Active)

    # Lifecycle

    def start(self, reason: str, duration: DurationOption, now: datetime) -> None:
        """Begin a grant, replacing whatever was tracked before."""
        self.state = Active(reason=reason, start_time=now, duration=duration)
        self.last_elevation_time = now

    def stop(self) -> None:
        self.state = Idle()
        self.last_elevation_time = None

    # Expiry

    def is_expired(self, now: datetime) -> bool:
        """Whether a finite grant has run its full length.

        Sentinel durations never expire.
        """
        if not isinstance(self.state, Active):
            return False
        total = self.state.duration.total_seconds
        if total is None:
            return False
        return (now - self.state.start_time).total_seconds() >= total

    def check_expiry(self, now: datetime) -> bool:
        """Move to Expired if the grant has run out.

        Returns:
            True if the session expired on this call
        """
        if not self.is_expired(now):
            return False
        self.state = Expired()
        self.last_elevation_time = None
        return True

    def remaining_time(self, now: datetime) -> float | None:
        """Seconds left in a finite grant, clamped at zero.

        Returns:
            Remaining seconds, or None when idle/expired or for sentinel durations
        """
        if not isinstance(self.state, Active):
            return None
        total = self.state.duration.total_seconds
        if total is None:
            return None
        elapsed = (now - self.state.start_time).total_seconds()
        return max(0.0, total - elapsed)

    # Re-elevation

    def should_re_elevate(self, now: datetime) -> bool:
        """True when the grant is live and a full interval passed since the last elevation."""
        if not isinstance(self.state, Active) or self.is_expired(now):
            return False
        if self.last_elevation_time is None:
            return True
        elapsed = (now - self.last_elevation_time).total_seconds()
        return elapsed >= self.re_elevation_interval_seconds

    def record_re_elevation(self, now: datetime) -> None:
        """Restart the re-elevation interval. Ignored unless Active."""
        if isinstance(self.state, Active):
            self.last_elevation_time = now

    # Accessors

    @property
    def active_reason(self) -> str | None:
        return self.state.reason if isinstance(self.state, Active) else None

    @property
    def active_duration(self) -> DurationOption | None:
        return self.state.duration if isinstance(self.state, Active) else None

    @property
    def active_start_time(self) -> datetime | None:
        return self.state.start_time if isinstance(self.state, Active) else None

    @staticmethod
    def format_remaining_time(seconds: float) -> str:
        """Render seconds as a compact label.

        Examples:
            >>> ElevationSession.format_remaining_time(5400)
            '1h 30m'
            >>> ElevationSession.format_remaining_time(7200)
            '2h'
            >>> ElevationSession.format_remaining_time(2700)
            '45m'
        """
        total_minutes = int(seconds) // 60
        if total_minutes >= 60:
            hours, minutes = divmod(total_minutes, 60)
            if minutes == 0:
                return f"{hours}h"
            return f"{hours}h {minutes}m"
        return f"{total_minutes}m"
