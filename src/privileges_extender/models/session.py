"""Session models for privilege elevation tracking."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

UNTIL_EXIT_MINUTES = -1
INDEFINITE_MINUTES = 0


@dataclass(frozen=True)
class DurationOption:
    """How long a grant lasts.

    Attributes:
        label: Text shown to the user (e.g. "30 minutes")
        minutes: Positive for a finite grant, -1 until process exit, 0 indefinitely
    """

    label: str
    minutes: int

    @property
    def is_until_process_exit(self) -> bool:
        """True for the sentinel revoked only on shutdown or by the user."""
        return self.minutes == UNTIL_EXIT_MINUTES

    @property
    def is_indefinite(self) -> bool:
        return self.minutes == INDEFINITE_MINUTES

    @property
    def is_sentinel(self) -> bool:
        """True when the duration never auto-expires."""
        return self.is_until_process_exit or self.is_indefinite

    @property
    def total_seconds(self) -> float | None:
        """Grant length in seconds, or None for sentinel durations."""
        if self.is_sentinel:
            return None
        return float(self.minutes * 60)


class PrivilegeStatus(Enum):
    """Privilege status as reported by the external tool."""

    ELEVATED = "elevated"
    STANDARD = "standard"
    UNKNOWN = "unknown"


class ElevationStateKind(Enum):
    """Discriminator for the elevation state variants."""

    IDLE = "idle"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Idle:
    """Not elevated."""

    kind = ElevationStateKind.IDLE


@dataclass(frozen=True)
class Active:
    """An elevation grant currently tracked.

    Attributes:
        reason: Reason passed to the tool when elevating
        start_time: When the grant started
        duration: Chosen grant length
    """

    reason: str
    start_time: datetime
    duration: DurationOption

    kind = ElevationStateKind.ACTIVE


@dataclass(frozen=True)
class Expired:
    """Grant ran out; stays here until the session is reset to idle."""

    kind = ElevationStateKind.EXPIRED


ElevationState = Idle | Active | Expired
