"""Configuration settings for the privileges extender."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_RE_ELEVATION_INTERVAL_SECONDS = 60


class DurationSetting(BaseModel):
    """A configurable elevation length as it appears in settings.

    Attributes:
        label: Text shown to the user
        minutes: Grant length; -1 means until exit, 0 means indefinitely
    """

    label: str
    minutes: int


def _default_durations() -> list[DurationSetting]:
    return [
        DurationSetting(label="30 minutes", minutes=30),
        DurationSetting(label="1 hour", minutes=60),
        DurationSetting(label="2 hours", minutes=120),
        DurationSetting(label="4 hours", minutes=240),
        DurationSetting(label="Until exit", minutes=-1),
        DurationSetting(label="Indefinitely", minutes=0),
    ]


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with PRIVEXT_ prefix.
    List values are read as JSON.

    Examples:
        >>> settings = Settings()
        >>> settings.re_elevation_interval_seconds
        1500
    """

    model_config = SettingsConfigDict(env_prefix="PRIVEXT_")

    # Privilege tool
    privileges_tool_path: str = "/Applications/Privileges.app/Contents/MacOS/PrivilegesCLI"
    tool_timeout_seconds: float | None = 120.0

    # Scheduling
    re_elevation_interval_seconds: int = 1500
    tick_interval_seconds: float = 30.0
    auto_extend_enabled: bool = True
    adopt_existing_elevation: bool = True

    # Menu options
    reasons: list[str] = Field(default_factory=list)
    durations: list[DurationSetting] = Field(default_factory=_default_durations)

    # Read by the notification collaborator only
    dismiss_notifications: bool = True

    # Logging
    log_file: str = "~/Library/Logs/privileges-extender.log"
    log_level: str = "INFO"

    def get_log_path(self) -> Path:
        """Get expanded log file path.

        Returns:
            Absolute path to the log file
        """
        return Path(self.log_file).expanduser()

    def clamped_interval(self) -> int:
        """Re-elevation interval with the minimum applied."""
        return max(MIN_RE_ELEVATION_INTERVAL_SECONDS, self.re_elevation_interval_seconds)
