"""Read-only view of the elevation session for rendering."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time copy of everything a UI needs to draw the session.

    Attributes:
        state: "idle", "active" or "expired"
        reason: Active reason
        duration_label: Label of the active duration
        duration_minutes: Minutes of the active duration (sentinels included)
        started_at: Start of the active grant
        remaining_seconds: Seconds left for finite grants
        remaining_label: remaining_seconds formatted as "1h 30m"
        auto_extend_enabled: Whether drift triggers re-elevation
        privilege_status: Last status observed from the tool
        tick_armed: Whether periodic reconciliation is running
        tool_path: Configured tool path
        tool_available: Whether the tool exists and is executable
        last_error: Most recent failure message
    """

    state: str
    reason: str | None
    duration_label: str | None
    duration_minutes: int | None
    started_at: datetime | None
    remaining_seconds: float | None
    remaining_label: str | None
    auto_extend_enabled: bool
    privilege_status: str
    tick_armed: bool
    tool_path: str
    tool_available: bool
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        if self.started_at is not None:
            data["started_at"] = self.started_at.isoformat()
        return data
