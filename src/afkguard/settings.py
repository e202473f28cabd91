# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Application settings."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from afkguard import constants as c
from afkguard.errors import ConfigurationError

SIMULATED_SESSION_FACTORY = "afkguard.session.simulated:SimulatedSession"


class ReconnectConfig(BaseModel):
    """Backoff policy for reconnection attempts."""

    base_delay_s: float = Field(default=c.DEFAULT_RECONNECT_BASE_S, gt=0)
    multiplier: float = Field(default=c.DEFAULT_RECONNECT_MULTIPLIER, ge=1.0)
    max_delay_s: float = Field(default=c.DEFAULT_RECONNECT_CAP_S, gt=0)
    max_attempts: int = Field(default=c.DEFAULT_RECONNECT_MAX_ATTEMPTS, ge=1)
    window_s: float = Field(default=c.DEFAULT_RECONNECT_WINDOW_S, gt=0)
    cooldown_s: float = Field(default=c.DEFAULT_RECONNECT_COOLDOWN_S, gt=0)


class LivenessConfig(BaseModel):
    """Staleness and stuck detection thresholds."""

    timeout_s: float = Field(default=c.DEFAULT_LIVENESS_TIMEOUT_S, gt=0)
    check_interval_s: float = Field(default=c.DEFAULT_LIVENESS_CHECK_INTERVAL_S, gt=0)
    stuck_epsilon: float = Field(default=c.STUCK_EPSILON, ge=0)
    stuck_threshold: int = Field(default=c.STUCK_COUNTER_THRESHOLD, ge=1)
    # Empty means every mode.
    stuck_modes: list[str] = Field(default_factory=lambda: [c.SPECTATOR_MODE])


class ActionIntervals(BaseModel):
    """Fixed delays between keepalive action firings, in seconds."""

    heartbeat_s: float = Field(default=c.DEFAULT_HEARTBEAT_S, gt=0)
    look_around_s: float = Field(default=c.DEFAULT_LOOK_AROUND_S, gt=0)
    move_s: float = Field(default=c.DEFAULT_MOVE_S, gt=0)
    patrol_s: float = Field(default=c.DEFAULT_PATROL_S, gt=0)
    status_report_s: float = Field(default=c.DEFAULT_STATUS_REPORT_S, gt=0)
    player_list_s: float = Field(default=c.DEFAULT_PLAYER_LIST_S, gt=0)
    status_report_delay_s: float = Field(default=c.DEFAULT_STATUS_REPORT_DELAY_S, ge=0)
    player_list_delay_s: float = Field(default=c.DEFAULT_PLAYER_LIST_DELAY_S, ge=0)


class NavigationConfig(BaseModel):
    """Spectator waypoint layout and forced-ascent parameters."""

    rings: int = Field(default=c.DEFAULT_RINGS, ge=1)
    points_per_ring: int = Field(default=c.DEFAULT_POINTS_PER_RING, ge=1)
    ring_spacing: float = Field(default=c.DEFAULT_RING_SPACING, gt=0)
    vertical_jitter: float = Field(default=c.DEFAULT_VERTICAL_JITTER, ge=0)
    safe_min_y: float = c.DEFAULT_SAFE_MIN_Y
    safe_max_y: float = c.DEFAULT_SAFE_MAX_Y
    ascent_margin: float = Field(default=c.DEFAULT_ASCENT_MARGIN, ge=0)
    ascent_steps: int = Field(default=c.DEFAULT_ASCENT_STEPS, ge=1)
    ascent_step_delay_s: float = Field(default=c.DEFAULT_ASCENT_STEP_DELAY_S, ge=0)

    @model_validator(mode="after")
    def _check_band(self) -> NavigationConfig:
        if self.safe_min_y >= self.safe_max_y:
            raise ValueError("navigation.safe_min_y must be below navigation.safe_max_y")
        return self


class Settings(BaseSettings):
    host: str | None = None
    port: int = Field(default=c.DEFAULT_PORT, gt=0, lt=65536)
    username: str = c.DEFAULT_USERNAME
    game_version: str = c.DEFAULT_GAME_VERSION
    connect_timeout_s: float = Field(default=c.DEFAULT_CONNECT_TIMEOUT_S, gt=0)
    session_factory: str = SIMULATED_SESSION_FACTORY

    log_webhook: str | None = Field(
        default=None,
        validation_alias=AliasChoices("log_webhook", "AFKGUARD_LOG_WEBHOOK", "DISCORD_WEBHOOK"),
    )
    chat_webhook: str | None = Field(
        default=None,
        validation_alias=AliasChoices("chat_webhook", "AFKGUARD_CHAT_WEBHOOK", "CHAT_WEBHOOK"),
    )
    webhook_timeout_s: float = Field(default=10.0, gt=0)

    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    liveness: LivenessConfig = Field(default_factory=LivenessConfig)
    actions: ActionIntervals = Field(default_factory=ActionIntervals)
    navigation: NavigationConfig = Field(default_factory=NavigationConfig)

    status_host: str = c.DEFAULT_STATUS_HOST
    status_port: int | None = Field(
        default=None,
        validation_alias=AliasChoices("status_port", "AFKGUARD_STATUS_PORT", "PORT"),
    )
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="AFKGUARD_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def endpoint(self) -> tuple[str, int]:
        if not self.host:
            raise ConfigurationError("AFKGUARD_HOST is not set")
        return self.host, self.port


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment and validate required values.

    Args:
        **overrides: Explicit values taking precedence over the environment

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the endpoint is missing or a value is invalid
    """
    try:
        settings = Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
    if not settings.host:
        raise ConfigurationError("AFKGUARD_HOST is required (the game server endpoint)")
    return settings
