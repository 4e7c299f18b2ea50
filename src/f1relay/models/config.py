from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from f1relay.errors import ConfigError


class RelaySettings(BaseSettings):
    """Relay settings populated from environment variables and a .env file.

    Variable names carry no prefix (``UDP_PORT``, ``SAMPLE_EVERY_N_FRAMES``,
    ...) so existing deployments keep working.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        extra="ignore",
    )

    udp_host: str = "0.0.0.0"
    udp_port: int = Field(default=20777, ge=0, le=65535)
    sample_every_n_frames: int = Field(default=2, ge=1)
    """Forward one car telemetry packet every N overall frames."""

    ws_host: str = "0.0.0.0"
    ws_port: int = Field(default=8080, ge=0, le=65535)
    ws_path: str = "/telemetry"
    send_timeout: float = Field(default=1.0, gt=0)
    """Seconds a single subscriber send may take before it is evicted."""

    queue_size: int = Field(default=256, ge=1)
    reset_on_new_session: bool = True
    stats_interval: float = Field(default=0.0, ge=0)
    """Seconds between stats log lines; ``0`` disables the reporter."""

    @field_validator("ws_path")
    @classmethod
    def _path_is_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("ws_path must start with '/'")
        return value

    @classmethod
    def load(cls, **overrides: Any) -> RelaySettings:
        """Build settings from the environment with non-``None`` *overrides* applied.

        Raises:
            ConfigError: If any value fails validation.
        """
        try:
            return cls(**{k: v for k, v in overrides.items() if v is not None})
        except ValidationError as exc:
            raise ConfigError(_format_validation_error(exc)) from exc

    def merge_overrides(self, **overrides: Any) -> RelaySettings:
        """Return a copy with non-``None`` *overrides* applied and re-validated."""
        data: dict[str, Any] = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return RelaySettings.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(_format_validation_error(exc)) from exc


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "settings"
        parts.append(f"{loc}: {err['msg']}")
    return "Invalid configuration: " + "; ".join(parts)
