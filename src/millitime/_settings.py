"""Configuration via pydantic-settings.

Configuration is loaded from environment variables and/or ``.env``
files.  Nested models use ``__`` as the delimiter in env var names,
e.g. ``NTP__DEFAULT_SERVER=time.example.org``.

Two concerns are configurable:

* **NTP** — default server, the initial network-suppression flag and
  the reachability poll interval.
* **Logging** — level, format, optional file sink, rotation.

Protocol constants (UDP port 123, 48-byte packets, the 3-second
receive timeout) are not settings.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from millitime._network import NETWORK_POLL_INTERVAL_S
from millitime._ntp import FALLBACK_SERVER

# -------------------------------------------------------------------
# Sub-models (BaseModel, NOT BaseSettings; nested via composition)
# -------------------------------------------------------------------


class NtpSettings(BaseModel):
    """Network time source configuration.

    Environment variables (with ``__`` nesting)::

        NTP__DEFAULT_SERVER=time.example.org
        NTP__SUPPRESS_NETWORK_CALLS=false
        NTP__NETWORK_POLL_INTERVAL=5
    """

    default_server: str = Field(
        default=FALLBACK_SERVER,
        description=(
            "Hostname queried when no server is passed explicitly. "
            "An empty value falls back to the built-in pool."
        ),
    )
    suppress_network_calls: bool = Field(
        default=True,
        description=(
            "Initial value of the network gate.  While true the clock "
            "runs on device time only and never touches the network."
        ),
    )
    network_poll_interval: Annotated[float, Field(gt=0)] | None = Field(
        default=NETWORK_POLL_INTERVAL_S,
        description=(
            "Seconds between background reachability checks.  ``None`` "
            "disables the background check."
        ),
    )

    @field_validator("default_server")
    @classmethod
    def _strip_server(cls, value: str) -> str:
        return value.strip()


class LoggingSettings(BaseModel):
    """Logging configuration.

    When ``file`` is set, logs are also written to a rotating file
    (size-based rotation, ``backup_count`` generations kept).  When
    ``None``, logs go to stderr only.

    The ``format`` field selects the output format:

    - ``"json"`` (default) — structured JSON lines.
    - ``"text"`` — human-readable timestamped lines.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format: 'json' lines or human-readable 'text'.",
    )
    file: str | None = Field(
        default=None,
        description="Optional log file path. ``None`` means stderr only.",
    )
    max_file_size_mb: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description=(
            "Maximum log file size in megabytes before rotation. "
            "Only applies when ``file`` is set."
        ),
    )
    backup_count: Annotated[int, Field(ge=0)] = Field(
        default=3,
        description="Number of rotated log files to keep.",
    )


# -------------------------------------------------------------------
# Root settings
# -------------------------------------------------------------------


class Settings(BaseSettings):
    """Root settings for millitime.

    Example ``.env``::

        NTP__DEFAULT_SERVER=time.cloudflare.com
        NTP__SUPPRESS_NETWORK_CALLS=false
        NTP__NETWORK_POLL_INTERVAL=5
        LOGGING__LEVEL=DEBUG
        LOGGING__FORMAT=text
    """

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ntp: NtpSettings = Field(
        default_factory=NtpSettings,
        description="Network time source settings.",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )
